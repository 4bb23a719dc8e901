"""Persist an issued certificate chain."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from acmerenew.certificate.inspector import inspect_certificate

if TYPE_CHECKING:
    from pathlib import Path

    from acmerenew.config.settings import CertificateSettings
    from acmerenew.storage.files import FileManager

log = logging.getLogger(__name__)

CERTIFICATE_FILE_MODE = 0o644


class CertificateWriter:
    """Writes the PEM chain returned by the CA to the configured path.

    The chain is parsed before anything touches the disk, so a
    malformed CA response leaves the previous certificate in place.
    """

    def __init__(self, files: FileManager) -> None:
        self._files = files

    def write(self, settings: CertificateSettings, pem_chain: str) -> Path:
        issued = inspect_certificate(pem_chain.encode("ascii"))
        path = self._files.write_file(
            settings.crt_path,
            pem_chain,
            owner=settings.owner,
            group=settings.group,
            mode=CERTIFICATE_FILE_MODE,
        )
        log.info(
            "Installed certificate for %s at %s (expires %s)",
            settings.common_name,
            path,
            issued.not_after.isoformat(),
        )
        return path
