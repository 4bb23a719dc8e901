"""Abstract base class for challenge provisioners.

A provisioner makes a challenge answerable before the CA is asked to
validate it, and takes the answer down afterwards.  Built-in and custom
provisioners inherit from :class:`ChallengeProvisioner` and implement
:meth:`install` and :meth:`remove`.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from acmerenew.core.errors import AcmeRenewError
from acmerenew.core.types import ChallengeType

if TYPE_CHECKING:
    from acmerenew.acme.models import Authorization, Challenge
    from acmerenew.config.settings import CertificateSettings
    from acmerenew.storage.files import FileManager

log = logging.getLogger(__name__)


class ProvisioningError(AcmeRenewError):
    """Raised when a challenge artifact cannot be installed."""


@dataclass(frozen=True)
class ProvisioningContext:
    """What a provisioner may use besides the authorization itself."""

    settings: CertificateSettings
    files: FileManager


@dataclass(frozen=True)
class ChallengeArtifact:
    """Handle returned by :meth:`ChallengeProvisioner.install`.

    Attributes
    ----------
    name:
        Identifier the artifact proves control of.
    token:
        Challenge token.
    location:
        Where the artifact lives (a file path, a record name ...).
    handle:
        Provisioner-specific state, passed back untouched to
        :meth:`ChallengeProvisioner.remove`.

    """

    name: str
    token: str
    location: str | None = None
    handle: Any = None


class ChallengeProvisioner(abc.ABC):
    """Base class for all challenge provisioners.

    Subclasses must set :attr:`challenge_type` as a class attribute.

    Parameters
    ----------
    options:
        The certificate's ``provisioner_options`` mapping.

    """

    challenge_type: ClassVar[ChallengeType] = ChallengeType.HTTP_01
    """The ACME challenge type this provisioner answers."""

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        self.options = dict(options or {})

    @abc.abstractmethod
    def install(
        self,
        authorization: Authorization,
        context: ProvisioningContext,
    ) -> ChallengeArtifact:
        """Make the challenge for *authorization* answerable.

        Must raise :class:`ProvisioningError` on failure.
        """

    @abc.abstractmethod
    def remove(self, artifact: ChallengeArtifact) -> None:
        """Take down *artifact*.

        Called exactly once per successful :meth:`install`, whatever
        the validation outcome.  Best-effort: implementations log
        failures instead of raising.
        """

    def challenge_for(self, authorization: Authorization) -> Challenge:
        """Return this provisioner's challenge, or raise ProvisioningError."""
        challenge = authorization.challenge(self.challenge_type)
        if challenge is None:
            msg = (
                f"Authorization for {authorization.name} offers no "
                f"{self.challenge_type.value} challenge"
            )
            raise ProvisioningError(msg)
        return challenge
