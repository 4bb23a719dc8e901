"""Enumerated types shared across ACMERENEW.

All string enums inherit from :class:`enum.StrEnum` so their ``.value``
is the wire/log representation.  :class:`KeySize` is an
:class:`enum.IntEnum` of the RSA modulus sizes accepted for
certificate keys.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum

# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class AuthorizationStatus(StrEnum):
    PENDING = "pending"
    VALID = "valid"
    INVALID = "invalid"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self is not AuthorizationStatus.PENDING


# ---------------------------------------------------------------------------
# Challenge types
# ---------------------------------------------------------------------------


class ChallengeType(StrEnum):
    HTTP_01 = "http-01"
    DNS_01 = "dns-01"
    TLS_ALPN_01 = "tls-alpn-01"


# ---------------------------------------------------------------------------
# Renewal
# ---------------------------------------------------------------------------


class RenewalReason(StrEnum):
    NO_EXISTING_CERTIFICATE = "no-existing-certificate"
    APPROACHING_EXPIRY = "approaching-expiry"
    NAME_SET_CHANGED = "name-set-changed"
    UP_TO_DATE = "up-to-date"


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class OrchestratorState(StrEnum):
    DECIDING = "deciding"
    SKIPPED = "skipped"
    ORDER_REQUESTED = "order-requested"
    VALIDATING = "validating"
    ALL_VALID = "all-valid"
    SOME_INVALID = "some-invalid"
    ISSUING = "issuing"
    ABORTED = "aborted"
    ISSUED = "issued"
    ISSUANCE_FAILED = "issuance-failed"


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


class KeySize(IntEnum):
    RSA_2048 = 2048
    RSA_3072 = 3072
    RSA_4096 = 4096
