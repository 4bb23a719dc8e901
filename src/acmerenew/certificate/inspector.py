"""Certificate inspection: expiry and subject-alternative-name set.

:func:`inspect_certificate` is pure: it only parses the bytes it is
given.  Reading the file is done by :func:`read_existing_certificate`,
for which a missing file is the normal "no existing certificate" case
rather than an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.x509.oid import ExtensionOID

from acmerenew.core.errors import AcmeRenewError

if TYPE_CHECKING:
    from datetime import datetime

    from acmerenew.config.settings import CertificateSettings

log = logging.getLogger(__name__)

_PEM_MARKER = b"-----BEGIN CERTIFICATE-----"


class ParseError(AcmeRenewError):
    """The bytes are not a parseable X.509 certificate."""


@dataclass(frozen=True)
class ExistingCertificate:
    """What renewal needs to know about a certificate on disk.

    Attributes
    ----------
    not_after:
        End of validity, timezone-aware UTC.
    san_names:
        DNS names of the SAN extension, or ``None`` when the
        certificate has no SAN extension at all.

    """

    not_after: datetime
    san_names: frozenset[str] | None


def inspect_certificate(data: bytes) -> ExistingCertificate:
    """Parse *data* (PEM chain or DER) and return the leaf's details.

    For a PEM chain the first certificate is the leaf.

    Raises
    ------
    ParseError
        If *data* is not a valid certificate.

    """
    try:
        if _PEM_MARKER in data:
            cert = x509.load_pem_x509_certificate(data)
        else:
            cert = x509.load_der_x509_certificate(data)
    except ValueError as exc:
        msg = f"Not a valid X.509 certificate: {exc}"
        raise ParseError(msg) from exc

    try:
        san = cert.extensions.get_extension_for_oid(
            ExtensionOID.SUBJECT_ALTERNATIVE_NAME,
        )
    except x509.ExtensionNotFound:
        san_names = None
    except ValueError as exc:
        msg = f"Malformed certificate extensions: {exc}"
        raise ParseError(msg) from exc
    else:
        san_names = frozenset(san.value.get_values_for_type(x509.DNSName))

    return ExistingCertificate(
        not_after=cert.not_valid_after_utc,
        san_names=san_names,
    )


def read_existing_certificate(path: str | Path) -> ExistingCertificate | None:
    """Read and inspect the certificate at *path*.

    Returns ``None`` when the file does not exist.  Other read errors
    propagate as :class:`OSError`; parse failures as :class:`ParseError`.
    """
    try:
        data = Path(path).read_bytes()
    except FileNotFoundError:
        log.debug("No certificate at %s", path)
        return None
    return inspect_certificate(data)


class CertificateInspector:
    """Reads the current certificate of one managed certificate entry."""

    def __init__(self, settings: CertificateSettings) -> None:
        self._settings = settings

    def current(self) -> ExistingCertificate | None:
        """Return the usable existing certificate, or ``None``.

        An unparseable certificate is reported as absent so that it is
        replaced.
        """
        try:
            return read_existing_certificate(self._settings.crt_path)
        except ParseError as exc:
            log.warning(
                "Existing certificate %s is unusable, treating as absent: %s",
                self._settings.crt_path,
                exc.detail,
            )
            return None
