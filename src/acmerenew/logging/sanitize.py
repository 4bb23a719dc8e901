"""Sensitive data sanitization for log output.

Provides :func:`sanitize_for_logs` which redacts key material (JWK key
values, private-key PEM bodies, key authorizations) from ACME request
and response structures before they are logged.  Certificate PEM
bodies are kept: they are public.
"""

from __future__ import annotations

import re
from typing import Any

# JWK fields that contain raw key material
_JWK_SECRET_FIELDS = frozenset({"n", "e", "x", "y", "d", "p", "q", "dp", "dq", "qi", "k"})

# ACME message fields whose value proves control or carries key material
_ACME_SECRET_FIELDS = frozenset({"keyAuthorization", "signature", "csr"})

_PRIVATE_PEM_RE = re.compile(
    r"(-----BEGIN [A-Z0-9 ]*PRIVATE KEY-----)"
    r"([\s\S]*?)"
    r"(-----END [A-Z0-9 ]*PRIVATE KEY-----)",
)

_MAX_DETAIL_LENGTH = 500


def sanitize_jwk(jwk: dict) -> dict:
    """Return a copy of *jwk* with key material replaced by ``[REDACTED]``."""
    return {
        key: "[REDACTED]" if key in _JWK_SECRET_FIELDS else value for key, value in jwk.items()
    }


def sanitize_pem(pem: str) -> str:
    """Replace the body of private-key PEM blocks with ``[REDACTED]``."""

    def _redact(m: re.Match) -> str:
        return f"{m.group(1)}\n[REDACTED]\n{m.group(3)}"

    return _PRIVATE_PEM_RE.sub(_redact, pem)


def sanitize_for_logs(data: Any) -> Any:  # noqa: ANN401
    """Recursively sanitize sensitive material in *data*."""
    if isinstance(data, dict):
        if "kty" in data:
            return sanitize_jwk(data)
        return {
            k: "[REDACTED]" if k in _ACME_SECRET_FIELDS else sanitize_for_logs(v)
            for k, v in data.items()
        }

    if isinstance(data, (list, tuple)):
        return type(data)(sanitize_for_logs(item) for item in data)

    if isinstance(data, str) and "PRIVATE KEY-----" in data:
        return sanitize_pem(data)

    return data


def truncate_detail(detail: str, limit: int = _MAX_DETAIL_LENGTH) -> str:
    """Collapse control characters and cap untrusted CA error text."""
    cleaned = "".join(ch if ch.isprintable() else " " for ch in detail)
    if len(cleaned) > limit:
        return cleaned[:limit] + "..."
    return cleaned
