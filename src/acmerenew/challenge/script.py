"""Provisioner that delegates to external deploy/cleanup scripts.

Configuration (``provisioner_options``):

- ``deploy_script``: called as ``deploy_script <name> <token> <value>``
- ``cleanup_script``: called as ``cleanup_script <name> <token>``
- ``challenge_type``: ``http-01`` (default) or ``dns-01``
- ``script_timeout``: seconds per invocation (default 60)

``value`` is the key authorization for HTTP-01 and the TXT record
value (``_acme-challenge.<name>``) for DNS-01.
"""

from __future__ import annotations

import logging
import subprocess
from typing import TYPE_CHECKING, Any

from acmerenew.challenge.base import (
    ChallengeArtifact,
    ChallengeProvisioner,
    ProvisioningContext,
    ProvisioningError,
)
from acmerenew.core.types import ChallengeType

if TYPE_CHECKING:
    from acmerenew.acme.models import Authorization

log = logging.getLogger(__name__)

_SUPPORTED_TYPES = frozenset({ChallengeType.HTTP_01, ChallengeType.DNS_01})


class ScriptProvisioner(ChallengeProvisioner):
    """Runs one script to publish a challenge answer and one to retract it."""

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        super().__init__(options)
        self.deploy_script = self.options.get("deploy_script")
        self.cleanup_script = self.options.get("cleanup_script")
        if not self.deploy_script:
            msg = "script provisioner requires 'deploy_script' in provisioner_options"
            raise ProvisioningError(msg)
        if not self.cleanup_script:
            msg = "script provisioner requires 'cleanup_script' in provisioner_options"
            raise ProvisioningError(msg)

        try:
            challenge_type = ChallengeType(self.options.get("challenge_type", "http-01"))
        except ValueError:
            challenge_type = None
        if challenge_type not in _SUPPORTED_TYPES:
            msg = (
                f"script provisioner does not support challenge type "
                f"'{self.options.get('challenge_type')}'"
            )
            raise ProvisioningError(msg)
        self.challenge_type = challenge_type
        self.script_timeout = self.options.get("script_timeout", 60)

    def install(
        self,
        authorization: Authorization,
        context: ProvisioningContext,
    ) -> ChallengeArtifact:
        challenge = self.challenge_for(authorization)
        if self.challenge_type is ChallengeType.DNS_01:
            value = challenge.txt_record_value
            location = f"_acme-challenge.{authorization.name}"
        else:
            value = challenge.key_authorization
            location = challenge.filename

        log.info(
            "Deploying %s challenge for %s via %s",
            self.challenge_type.value,
            authorization.name,
            self.deploy_script,
        )
        try:
            subprocess.run(  # noqa: S603
                [self.deploy_script, authorization.name, challenge.token, value],
                check=True,
                timeout=self.script_timeout,
                capture_output=True,
                text=True,
            )
        except subprocess.CalledProcessError as exc:
            msg = (
                f"Deploy script exited with status {exc.returncode} for "
                f"{authorization.name}: {(exc.stderr or '').strip()}"
            )
            raise ProvisioningError(msg) from exc
        except (subprocess.TimeoutExpired, OSError) as exc:
            msg = f"Deploy script failed for {authorization.name}: {exc}"
            raise ProvisioningError(msg) from exc

        return ChallengeArtifact(
            name=authorization.name,
            token=challenge.token,
            location=location,
        )

    def remove(self, artifact: ChallengeArtifact) -> None:
        log.info("Cleaning up challenge for %s via %s", artifact.name, self.cleanup_script)
        try:
            subprocess.run(  # noqa: S603
                [self.cleanup_script, artifact.name, artifact.token],
                check=True,
                timeout=self.script_timeout,
                capture_output=True,
                text=True,
            )
        except (subprocess.SubprocessError, OSError):
            log.warning("Cleanup script failed for %s", artifact.name, exc_info=True)
