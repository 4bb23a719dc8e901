"""Client-side views of ACME orders and authorizations (RFC 8555 §7.1)."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field

from acmerenew.core.jws import b64url_encode
from acmerenew.core.state import AUTHORIZATION_TRANSITIONS, assert_transition
from acmerenew.core.types import AuthorizationStatus, ChallengeType

WELL_KNOWN_PREFIX = ".well-known/acme-challenge"


@dataclass(frozen=True)
class Challenge:
    """One challenge offered by the CA for an authorization.

    Attributes
    ----------
    type:
        Challenge type (``http-01``, ``dns-01`` ...).
    url:
        Challenge URL to POST to in order to request validation.
    token:
        CA-supplied token.
    key_authorization:
        ``token.thumbprint`` for the account key.

    """

    type: ChallengeType
    url: str
    token: str
    key_authorization: str

    @property
    def filename(self) -> str:
        """HTTP-01 token file path relative to the web root."""
        return f"{WELL_KNOWN_PREFIX}/{self.token}"

    @property
    def file_content(self) -> str:
        """HTTP-01 token file content."""
        return self.key_authorization

    @property
    def txt_record_value(self) -> str:
        """DNS-01 TXT record value (RFC 8555 §8.4)."""
        digest = hashlib.sha256(self.key_authorization.encode("ascii")).digest()
        return b64url_encode(digest)


@dataclass
class Authorization:
    """One CA authorization, scoped to a single name of an order.

    Only the validator that owns it changes :attr:`status`, and only
    through :meth:`transition`.
    """

    url: str
    name: str
    status: AuthorizationStatus = AuthorizationStatus.PENDING
    error: str | None = None
    challenges: dict[ChallengeType, Challenge] = field(default_factory=dict)
    wildcard: bool = False

    @property
    def http_challenge(self) -> Challenge | None:
        return self.challenges.get(ChallengeType.HTTP_01)

    def challenge(self, challenge_type: ChallengeType) -> Challenge | None:
        return self.challenges.get(challenge_type)

    def transition(self, status: AuthorizationStatus, error: str | None = None) -> None:
        """Move to *status*; re-asserting the current status is a no-op."""
        if status is self.status:
            if error is not None:
                self.error = error
            return
        assert_transition(self.status, status, AUTHORIZATION_TRANSITIONS)
        self.status = status
        self.error = error


@dataclass
class Order:
    """An ACME order for a name set and the authorizations it owns."""

    url: str
    finalize_url: str
    names: tuple[str, ...]
    authorizations: list[Authorization] = field(default_factory=list)
    status: str = "pending"
    certificate_url: str | None = None

    @property
    def common_name(self) -> str:
        return self.names[0]
