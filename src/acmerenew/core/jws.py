"""JWS signing and JWK utilities for an ACME client (RFC 7515 / 7517 / 7638).

Uses the ``cryptography`` library directly -- no josepy dependency.
Only RSA account keys (``RS256``) are supported; that is what the
key-file manager generates.

Security note:
    Never log the output of :func:`key_authorization` at INFO level or
    above; it is the proof of control served to the CA.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
from typing import Any

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

log = logging.getLogger(__name__)

# --- Base64url helpers (RFC 7515 S2) -------------------------------------


def b64url_encode(b: bytes) -> str:
    """Encode bytes to base64url without padding."""
    return base64.urlsafe_b64encode(b).rstrip(b"=").decode("ascii")


def b64url_decode(s: str) -> bytes:
    """Decode a base64url string (no padding required)."""
    remainder = len(s) % 4
    if remainder:
        s += "=" * (4 - remainder)
    return base64.urlsafe_b64decode(s)


def _int_to_b64url(value: int) -> str:
    length = max(1, (value.bit_length() + 7) // 8)
    return b64url_encode(value.to_bytes(length, "big"))


# --- JWK -----------------------------------------------------------------


def jwk_from_key(key: rsa.RSAPrivateKey | rsa.RSAPublicKey) -> dict[str, str]:
    """Return the public JWK dictionary for an RSA key.

    Parameters
    ----------
    key:
        RSA private or public key.  Only the public numbers are used.

    Returns
    -------
    dict
        ``{"e": ..., "kty": "RSA", "n": ...}``

    """
    public = key.public_key() if isinstance(key, rsa.RSAPrivateKey) else key
    if not isinstance(public, rsa.RSAPublicKey):
        msg = f"Unsupported account key type: {type(key).__name__}"
        raise TypeError(msg)
    numbers = public.public_numbers()
    return {
        "e": _int_to_b64url(numbers.e),
        "kty": "RSA",
        "n": _int_to_b64url(numbers.n),
    }


def compute_thumbprint(jwk_dict: dict[str, Any]) -> str:
    """Compute the RFC 7638 JWK Thumbprint using SHA-256.

    Construct the canonical JSON representation with required members
    in lexicographic order, then return the base64url-encoded SHA-256
    hash.
    """
    kty = jwk_dict.get("kty")
    if kty == "RSA":
        canonical = {"e": jwk_dict["e"], "kty": "RSA", "n": jwk_dict["n"]}
    elif kty == "EC":
        canonical = {
            "crv": jwk_dict["crv"],
            "kty": "EC",
            "x": jwk_dict["x"],
            "y": jwk_dict["y"],
        }
    else:
        msg = f"Cannot compute thumbprint for kty '{kty}'"
        raise ValueError(msg)

    # RFC 7638 requires members in lexicographic order, no whitespace
    canonical_json = json.dumps(canonical, sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(canonical_json.encode("ascii")).digest()
    return b64url_encode(digest)


# --- Key authorization (RFC 8555 S8.1) ------------------------------------


def key_authorization(token: str, jwk_dict: dict[str, Any]) -> str:
    """Compute the key authorization string: ``token.thumbprint``."""
    return f"{token}.{compute_thumbprint(jwk_dict)}"


# --- Signing -------------------------------------------------------------


def sign_jws(
    key: rsa.RSAPrivateKey,
    protected: dict[str, Any],
    payload: dict[str, Any] | None,
) -> dict[str, str]:
    """Build a JWS Flattened JSON Serialization signed with RS256.

    Parameters
    ----------
    key:
        The account private key.
    protected:
        Protected header without ``alg``; ``alg`` is always set to
        ``RS256``.
    payload:
        JSON payload, or ``None`` for POST-as-GET (empty payload,
        RFC 8555 S6.3).

    Returns
    -------
    dict
        ``{"protected": ..., "payload": ..., "signature": ...}``

    """
    header = {**protected, "alg": "RS256"}
    protected_b64 = b64url_encode(
        json.dumps(header, separators=(",", ":")).encode("utf-8"),
    )
    if payload is None:
        payload_b64 = ""
    else:
        payload_b64 = b64url_encode(
            json.dumps(payload, separators=(",", ":")).encode("utf-8"),
        )

    signing_input = f"{protected_b64}.{payload_b64}".encode("ascii")
    signature = key.sign(signing_input, padding.PKCS1v15(), hashes.SHA256())

    return {
        "protected": protected_b64,
        "payload": payload_b64,
        "signature": b64url_encode(signature),
    }
