"""Provisioner built from a caller-supplied install/remove pair.

Lets library users plug in any validation strategy (DNS-01 through a
provider API, for instance) without subclassing::

    def add_record(authorization, context):
        return api.create_txt(authorization.name, ...)

    def drop_record(record_id):
        api.delete(record_id)

    provisioner = CallbackProvisioner(
        add_record, drop_record, challenge_type=ChallengeType.DNS_01,
    )

Whatever *install* returns is handed back to *remove* untouched.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from acmerenew.challenge.base import (
    ChallengeArtifact,
    ChallengeProvisioner,
    ProvisioningContext,
    ProvisioningError,
)
from acmerenew.core.types import ChallengeType

if TYPE_CHECKING:
    from collections.abc import Callable

    from acmerenew.acme.models import Authorization

log = logging.getLogger(__name__)


class CallbackProvisioner(ChallengeProvisioner):
    """Adapts an ``install(authorization, context)`` / ``remove(handle)`` pair."""

    def __init__(
        self,
        install: Callable[[Authorization, ProvisioningContext], Any],
        remove: Callable[[Any], None],
        *,
        challenge_type: ChallengeType = ChallengeType.HTTP_01,
    ) -> None:
        super().__init__()
        self._install = install
        self._remove = remove
        # Instance attribute shadows the class default.
        self.challenge_type = challenge_type

    def install(
        self,
        authorization: Authorization,
        context: ProvisioningContext,
    ) -> ChallengeArtifact:
        challenge = self.challenge_for(authorization)
        try:
            handle = self._install(authorization, context)
        except ProvisioningError:
            raise
        except Exception as exc:
            msg = f"Install callback failed for {authorization.name}: {exc}"
            raise ProvisioningError(msg) from exc
        return ChallengeArtifact(
            name=authorization.name,
            token=challenge.token,
            handle=handle,
        )

    def remove(self, artifact: ChallengeArtifact) -> None:
        try:
            self._remove(artifact.handle)
        except Exception:
            log.warning(
                "Remove callback failed for %s",
                artifact.name,
                exc_info=True,
            )
