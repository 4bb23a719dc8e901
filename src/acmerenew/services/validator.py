"""Single-authorization validation.

Drives one authorization through install → trigger-and-wait → remove
and reduces the outcome to an :class:`AuthorizationResult`.  Failures
of one authorization are reported in its result, never raised, so the
other authorizations of the order are still attempted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from acmerenew.acme.transport import TransportError
from acmerenew.challenge.base import ProvisioningError
from acmerenew.core.errors import AcmeRenewError
from acmerenew.core.types import AuthorizationStatus

if TYPE_CHECKING:
    from acmerenew.acme.models import Authorization
    from acmerenew.acme.transport import AcmeTransport
    from acmerenew.challenge.base import (
        ChallengeArtifact,
        ChallengeProvisioner,
        ProvisioningContext,
    )

log = logging.getLogger(__name__)


class ValidationError(AcmeRenewError):
    """One authorization ended in a non-valid state.

    Collected into :class:`AuthorizationResult`; only the orchestrator's
    aggregate error is raised to callers.
    """

    def __init__(self, url: str, status: AuthorizationStatus, detail: str | None) -> None:
        self.url = url
        self.status = status
        self.error = detail
        super().__init__(f"{{url: {url}, status: {status.value}, error: {detail}}}")


@dataclass(frozen=True)
class AuthorizationResult:
    """Terminal outcome of one authorization."""

    url: str
    name: str
    status: AuthorizationStatus
    error: str | None = None

    @property
    def valid(self) -> bool:
        return self.status is AuthorizationStatus.VALID

    def as_error(self) -> ValidationError | None:
        """Return the structured error for a non-valid result."""
        if self.valid:
            return None
        return ValidationError(self.url, self.status, self.error)


class AuthorizationValidator:
    """Validates authorizations through an ACME transport.

    Parameters
    ----------
    transport:
        Used for ``trigger_and_await``.
    timeout:
        Maximum seconds to wait for the CA to finish validating.

    """

    def __init__(self, transport: AcmeTransport, timeout: float) -> None:
        self._transport = transport
        self._timeout = timeout

    def validate(
        self,
        authorization: Authorization,
        provisioner: ChallengeProvisioner,
        context: ProvisioningContext,
    ) -> AuthorizationResult:
        """Validate *authorization* and return its terminal result.

        The artifact installed by *provisioner* is removed on every exit
        path once installation succeeded, including interrupts.
        """
        if authorization.status is AuthorizationStatus.VALID:
            log.info("Authorization for %s is already valid", authorization.name)
            return self._result(authorization)
        if authorization.status is not AuthorizationStatus.PENDING:
            log.warning(
                "Authorization for %s is %s before validation",
                authorization.name,
                authorization.status.value,
            )
            return self._result(authorization)

        try:
            artifact = provisioner.install(authorization, context)
        except ProvisioningError as exc:
            log.warning("Provisioning failed for %s: %s", authorization.name, exc.detail)
            authorization.transition(AuthorizationStatus.ERRORED, exc.detail)
            return self._result(authorization)
        except Exception as exc:
            log.warning("Provisioning failed for %s", authorization.name, exc_info=True)
            authorization.transition(AuthorizationStatus.ERRORED, str(exc) or type(exc).__name__)
            return self._result(authorization)

        try:
            self._transport.trigger_and_await(
                authorization,
                provisioner.challenge_type,
                self._timeout,
            )
        except TimeoutError as exc:
            self._mark_errored(authorization, str(exc) or "validation timed out")
        except TransportError as exc:
            self._mark_errored(authorization, exc.detail)
        except Exception as exc:
            log.warning("Validation of %s failed unexpectedly", authorization.name, exc_info=True)
            self._mark_errored(authorization, str(exc) or type(exc).__name__)
        finally:
            self._remove(provisioner, artifact)

        result = self._result(authorization)
        if result.valid:
            log.info("Authorization for %s is valid", authorization.name)
        else:
            log.warning(
                "Authorization for %s is %s: %s",
                authorization.name,
                result.status.value,
                result.error,
            )
        return result

    @staticmethod
    def _remove(provisioner: ChallengeProvisioner, artifact: ChallengeArtifact) -> None:
        try:
            provisioner.remove(artifact)
        except Exception:
            log.warning("Cleanup failed for %s", artifact.name, exc_info=True)

    @staticmethod
    def _mark_errored(authorization: Authorization, detail: str) -> None:
        if authorization.status is AuthorizationStatus.PENDING:
            authorization.transition(AuthorizationStatus.ERRORED, detail)

    @staticmethod
    def _result(authorization: Authorization) -> AuthorizationResult:
        status = authorization.status
        if status is AuthorizationStatus.PENDING:
            status = AuthorizationStatus.ERRORED
            authorization.transition(status, "authorization did not reach a final status")
        return AuthorizationResult(
            url=authorization.url,
            name=authorization.name,
            status=status,
            error=authorization.error,
        )
