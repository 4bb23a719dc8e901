"""Private key files: create if missing, never overwrite.

Certificate keys and the ACME account key are RSA keys stored as
unencrypted PKCS#8 PEM with mode ``0400``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from acmerenew.core.errors import AcmeRenewError
from acmerenew.core.types import KeySize

if TYPE_CHECKING:
    from acmerenew.storage.files import FileManager

log = logging.getLogger(__name__)

KEY_FILE_MODE = 0o400


class KeyFileError(AcmeRenewError):
    """An existing key file cannot be used."""


def generate_rsa_key(key_size: int) -> rsa.RSAPrivateKey:
    """Generate an RSA key of one of the supported sizes."""
    size = KeySize(key_size)
    return rsa.generate_private_key(public_exponent=65537, key_size=size.value)


def load_key(path: str | Path) -> rsa.RSAPrivateKey:
    """Load an unencrypted RSA private key from a PEM file.

    Raises
    ------
    KeyFileError
        If the file is not a PEM RSA private key.

    """
    data = Path(path).read_bytes()
    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError) as exc:
        msg = f"Key file '{path}' is not a usable private key: {exc}"
        raise KeyFileError(msg) from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        msg = f"Key file '{path}' holds a {type(key).__name__}, expected an RSA key"
        raise KeyFileError(msg)
    return key


class KeyFileManager:
    """Ensures a private key exists at a path before it is used."""

    def __init__(self, files: FileManager) -> None:
        self._files = files

    def ensure_key(
        self,
        path: str | Path,
        key_size: int,
        *,
        owner: str | None = None,
        group: str | None = None,
    ) -> rsa.RSAPrivateKey:
        """Return the key at *path*, generating it only if absent.

        An existing key is never regenerated, whatever its size.
        """
        key_path = Path(path)
        if key_path.exists():
            return load_key(key_path)

        key = generate_rsa_key(key_size)
        pem = key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        self._files.write_file(
            key_path,
            pem,
            owner=owner,
            group=group,
            mode=KEY_FILE_MODE,
            sensitive=True,
        )
        log.info("Generated %d-bit RSA key at %s", key_size, key_path)
        return key
