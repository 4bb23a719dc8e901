"""Base exception for ACMERENEW.

Concrete exceptions live beside the subsystem that raises them
(``certificate.inspector.ParseError``, ``challenge.base.ProvisioningError``,
``acme.transport.TransportError`` ...).  They all derive from
:class:`AcmeRenewError` so the CLI can report any of them uniformly.
"""

from __future__ import annotations


class AcmeRenewError(Exception):
    """Root of the ACMERENEW exception hierarchy.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    retryable:
        Whether the failure is transient and a later run may succeed.

    """

    def __init__(self, detail: str, *, retryable: bool = False) -> None:
        self.detail = detail
        self.retryable = retryable
        super().__init__(detail)
