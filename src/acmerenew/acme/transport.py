"""Abstract ACME transport.

The orchestrator talks to the CA only through :class:`AcmeTransport`.
The built-in implementation is :class:`acmerenew.acme.client.HttpAcmeTransport`;
tests and alternative clients implement the same three operations.
"""

from __future__ import annotations

import abc
import logging
from typing import TYPE_CHECKING

from acmerenew.core.errors import AcmeRenewError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cryptography.hazmat.primitives.asymmetric import rsa

    from acmerenew.acme.models import Authorization, Order
    from acmerenew.core.types import AuthorizationStatus, ChallengeType

log = logging.getLogger(__name__)


class TransportError(AcmeRenewError):
    """Raised by transports on any protocol or network failure.

    Parameters
    ----------
    detail:
        Human-readable description, including the CA problem detail
        when the CA returned one.
    retryable:
        Whether the failure is transient.
    problem_type:
        RFC 7807 problem ``type`` returned by the CA, if any.

    """

    def __init__(
        self,
        detail: str,
        *,
        retryable: bool = False,
        problem_type: str | None = None,
    ) -> None:
        self.problem_type = problem_type
        super().__init__(detail, retryable=retryable)


class AcmeTransport(abc.ABC):
    """Base class for ACME protocol clients."""

    @abc.abstractmethod
    def create_order(self, names: Sequence[str]) -> Order:
        """Create an order for *names* and fetch its authorizations.

        Raises
        ------
        TransportError
            On any CA or network failure.

        """

    @abc.abstractmethod
    def trigger_and_await(
        self,
        authorization: Authorization,
        challenge_type: ChallengeType,
        timeout: float,
    ) -> AuthorizationStatus:
        """Answer the *challenge_type* challenge and wait for a final status.

        Updates *authorization* in place (status and error detail) and
        returns the final status.  Waits at most *timeout* seconds.

        Raises
        ------
        TimeoutError
            If the authorization is still pending after *timeout*.
        TransportError
            On any CA or network failure.

        """

    @abc.abstractmethod
    def finalize(self, order: Order, key: rsa.RSAPrivateKey) -> str:
        """Finalize *order* with a CSR signed by *key*; return the PEM chain.

        Raises
        ------
        TransportError
            If the CA rejects the request or the order becomes invalid.

        """
