"""Validation and renewal orchestration."""

from acmerenew.services.orchestrator import (
    AggregateValidationError,
    IssuanceTransportError,
    OrderOrchestrator,
    RenewalOutcome,
)
from acmerenew.services.validator import (
    AuthorizationResult,
    AuthorizationValidator,
    ValidationError,
)

__all__ = [
    "AggregateValidationError",
    "AuthorizationResult",
    "AuthorizationValidator",
    "IssuanceTransportError",
    "OrderOrchestrator",
    "RenewalOutcome",
    "ValidationError",
]
