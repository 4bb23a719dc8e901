"""Certificate inspection, renewal policy, key files and persistence."""

from acmerenew.certificate.inspector import (
    CertificateInspector,
    ExistingCertificate,
    ParseError,
    inspect_certificate,
    read_existing_certificate,
)
from acmerenew.certificate.keys import KeyFileError, KeyFileManager, load_key
from acmerenew.certificate.policy import RenewalDecision, RenewalPolicy, needs_renewal
from acmerenew.certificate.writer import CertificateWriter

__all__ = [
    "CertificateInspector",
    "CertificateWriter",
    "ExistingCertificate",
    "KeyFileError",
    "KeyFileManager",
    "ParseError",
    "RenewalDecision",
    "RenewalPolicy",
    "inspect_certificate",
    "load_key",
    "needs_renewal",
    "read_existing_certificate",
]
