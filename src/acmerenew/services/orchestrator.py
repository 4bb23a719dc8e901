"""Renewal orchestration for one managed certificate.

State machine (see :mod:`acmerenew.core.state`)::

    deciding ──► skipped
        │
        ▼
    order-requested ──► validating ──► all-valid ──► issuing ──► issued
                                  │                        └──► issuance-failed
                                  └──► some-invalid ──► aborted

The ``deciding`` step reads only the key file and the current
certificate; when no renewal is due nothing else is touched.  Issuance
is all-or-nothing: one non-valid authorization aborts the order, and
the certificate file is only ever replaced with a chain the CA issued
for the full name set.
"""

from __future__ import annotations

import contextvars
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from acmerenew.acme.transport import AcmeTransport, TransportError
from acmerenew.certificate.inspector import CertificateInspector, ParseError
from acmerenew.certificate.policy import RenewalDecision, RenewalPolicy
from acmerenew.challenge.base import ProvisioningContext
from acmerenew.challenge.registry import load_provisioner
from acmerenew.core.errors import AcmeRenewError
from acmerenew.core.state import ORCHESTRATOR_TRANSITIONS, assert_transition
from acmerenew.core.types import OrchestratorState
from acmerenew.logging import bind_certificate
from acmerenew.services.validator import AuthorizationResult, AuthorizationValidator
from acmerenew.storage.files import FileManagerError

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from acmerenew.acme.models import Order
    from acmerenew.certificate.keys import KeyFileManager
    from acmerenew.certificate.writer import CertificateWriter
    from acmerenew.challenge.base import ChallengeProvisioner
    from acmerenew.config.settings import CertificateSettings
    from acmerenew.storage.files import FileManager

log = logging.getLogger(__name__)


class AggregateValidationError(AcmeRenewError):
    """Raised once per order when any authorization is not valid.

    Attributes
    ----------
    failures:
        Every non-valid :class:`AuthorizationResult` of the order.

    """

    def __init__(self, common_name: str, failures: list[AuthorizationResult]) -> None:
        self.common_name = common_name
        self.failures = failures
        errors = ", ".join(str(result.as_error()) for result in failures)
        super().__init__(
            f"[{common_name}] Validation failed, unable to request certificate, "
            f"Errors: [{errors}]",
        )


class IssuanceTransportError(AcmeRenewError):
    """The CA did not issue the certificate for a fully validated order."""

    def __init__(self, common_name: str, detail: str, *, retryable: bool = False) -> None:
        self.common_name = common_name
        super().__init__(
            f"[{common_name}] Certificate request failed: {detail}",
            retryable=retryable,
        )


@dataclass
class RenewalOutcome:
    """Record of one orchestration run."""

    common_name: str
    state: OrchestratorState = OrchestratorState.DECIDING
    decision: RenewalDecision | None = None
    results: list[AuthorizationResult] = field(default_factory=list)
    certificate_path: Path | None = None

    def advance(self, target: OrchestratorState) -> None:
        assert_transition(self.state, target, ORCHESTRATOR_TRANSITIONS)
        self.state = target


class OrderOrchestrator:
    """Decides, validates and issues for one certificate at a time.

    Parameters
    ----------
    transport:
        An :class:`AcmeTransport`, or a zero-argument callable returning
        one.  A callable is only invoked when an order is needed.
    keys:
        Ensures the certificate key exists before the decision.
    writer:
        Persists the issued chain.
    files:
        Handed to provisioners through :class:`ProvisioningContext`.
    provisioner:
        Overrides the provisioner named in each certificate's settings.
    validation_timeout:
        Seconds to wait for each authorization.
    max_workers:
        Authorizations validated in parallel; ``1`` is sequential.
    clock:
        Returns the current aware datetime.

    """

    def __init__(  # noqa: PLR0913
        self,
        transport: AcmeTransport | Callable[[], AcmeTransport],
        *,
        keys: KeyFileManager,
        writer: CertificateWriter,
        files: FileManager,
        provisioner: ChallengeProvisioner | None = None,
        validation_timeout: float = 60,
        max_workers: int = 4,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._transport_source = transport
        self._transport: AcmeTransport | None = (
            transport if isinstance(transport, AcmeTransport) else None
        )
        self._keys = keys
        self._writer = writer
        self._files = files
        self._provisioner = provisioner
        self._validation_timeout = validation_timeout
        self._max_workers = max(1, max_workers)
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def transport(self) -> AcmeTransport:
        if self._transport is None:
            self._transport = self._transport_source()
        return self._transport

    # -- public API ----------------------------------------------------------

    def evaluate(self, settings: CertificateSettings) -> RenewalDecision:
        """Return the renewal decision for *settings* without side effects."""
        existing = CertificateInspector(settings).current()
        policy = RenewalPolicy(settings.renewal_window)
        return policy.evaluate(existing, frozenset(settings.names), self._clock())

    def run(self, settings: CertificateSettings) -> RenewalOutcome:
        """Converge one certificate to its desired state.

        Raises
        ------
        AggregateValidationError
            If any authorization of the order is not valid.
        IssuanceTransportError
            If the CA fails to issue for a fully validated order.
        TransportError
            If the order itself cannot be created.
        FileManagerError
            If the issued chain cannot be written; the previous
            certificate is left in place.

        """
        with bind_certificate(settings.common_name):
            return self._run(settings)

    # -- steps ---------------------------------------------------------------

    def _run(self, settings: CertificateSettings) -> RenewalOutcome:
        outcome = RenewalOutcome(common_name=settings.common_name)

        key = self._keys.ensure_key(
            settings.key_path,
            settings.key_size,
            owner=settings.owner,
            group=settings.group,
        )
        outcome.decision = self.evaluate(settings)
        if not outcome.decision.renew:
            outcome.advance(OrchestratorState.SKIPPED)
            log.info("Certificate is up to date, nothing to do")
            return outcome

        log.info(
            "Renewing certificate for %s (%s)",
            ", ".join(settings.names),
            outcome.decision.reason.value,
        )
        provisioner = self._provisioner or load_provisioner(
            settings.provisioner,
            settings.provisioner_options,
        )
        outcome.advance(OrchestratorState.ORDER_REQUESTED)
        order = self.transport.create_order(settings.names)

        outcome.advance(OrchestratorState.VALIDATING)
        outcome.results = self._validate_all(order, settings, provisioner)

        failures = [result for result in outcome.results if not result.valid]
        if failures:
            outcome.advance(OrchestratorState.SOME_INVALID)
            outcome.advance(OrchestratorState.ABORTED)
            raise AggregateValidationError(settings.common_name, failures)

        outcome.advance(OrchestratorState.ALL_VALID)
        outcome.advance(OrchestratorState.ISSUING)
        try:
            pem_chain = self.transport.finalize(order, key)
            outcome.certificate_path = self._writer.write(settings, pem_chain)
        except TransportError as exc:
            outcome.advance(OrchestratorState.ISSUANCE_FAILED)
            raise IssuanceTransportError(
                settings.common_name,
                exc.detail,
                retryable=exc.retryable,
            ) from exc
        except ParseError as exc:
            outcome.advance(OrchestratorState.ISSUANCE_FAILED)
            raise IssuanceTransportError(
                settings.common_name,
                f"CA returned an unusable certificate chain: {exc.detail}",
            ) from exc
        except FileManagerError:
            outcome.advance(OrchestratorState.ISSUANCE_FAILED)
            raise

        outcome.advance(OrchestratorState.ISSUED)
        return outcome

    def _validate_all(
        self,
        order: Order,
        settings: CertificateSettings,
        provisioner: ChallengeProvisioner,
    ) -> list[AuthorizationResult]:
        """Validate every authorization of *order*; wait for all of them."""
        context = ProvisioningContext(settings=settings, files=self._files)
        validator = AuthorizationValidator(self.transport, self._validation_timeout)

        workers = min(self._max_workers, len(order.authorizations)) or 1
        with ThreadPoolExecutor(
            max_workers=workers,
            thread_name_prefix="authz",
        ) as pool:
            futures = [
                pool.submit(
                    contextvars.copy_context().run,
                    validator.validate,
                    authorization,
                    provisioner,
                    context,
                )
                for authorization in order.authorizations
            ]
            return [future.result() for future in futures]
