"""``renew`` subcommand: converge every configured certificate."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from acmerenew.acme.client import HttpAcmeTransport
from acmerenew.certificate.keys import KeyFileManager
from acmerenew.certificate.writer import CertificateWriter
from acmerenew.core.errors import AcmeRenewError
from acmerenew.core.types import OrchestratorState
from acmerenew.services.orchestrator import OrderOrchestrator
from acmerenew.storage.files import FileManager

if TYPE_CHECKING:
    from collections.abc import Callable

    from acmerenew.acme.transport import AcmeTransport
    from acmerenew.config.settings import AcmeRenewSettings, CertificateSettings

log = logging.getLogger(__name__)


class TransportCache:
    """One lazily built transport per (directory URL, contact list).

    The account key is only loaded or created when a certificate
    actually needs an order.
    """

    def __init__(self, settings: AcmeRenewSettings, keys: KeyFileManager) -> None:
        self._settings = settings
        self._keys = keys
        self._transports: dict[tuple[str, tuple[str, ...]], AcmeTransport] = {}

    def factory_for(self, cert: CertificateSettings) -> Callable[[], AcmeTransport]:
        acme = self._settings.acme
        directory_url = cert.directory_url or acme.directory_url
        contact = cert.contact if cert.contact is not None else acme.contact

        def build() -> AcmeTransport:
            cache_key = (directory_url, tuple(contact))
            if cache_key not in self._transports:
                account_key = self._keys.ensure_key(
                    acme.account_key_path,
                    acme.account_key_size,
                )
                self._transports[cache_key] = HttpAcmeTransport(
                    acme,
                    account_key,
                    directory_url=directory_url,
                    contact=contact,
                )
            return self._transports[cache_key]

        return build


def run_renew(settings: AcmeRenewSettings, args) -> int:  # noqa: ARG001
    """Renew what needs renewing.  Returns the process exit code.

    A failure for one certificate is logged and the remaining
    certificates are still processed.
    """
    files = FileManager()
    keys = KeyFileManager(files)
    writer = CertificateWriter(files)
    transports = TransportCache(settings, keys)

    failed: list[str] = []
    issued = skipped = 0
    for cert in settings.certificates:
        orchestrator = OrderOrchestrator(
            transports.factory_for(cert),
            keys=keys,
            writer=writer,
            files=files,
            validation_timeout=settings.acme.validation_timeout_seconds,
            max_workers=settings.acme.max_workers,
        )
        try:
            outcome = orchestrator.run(cert)
        except AcmeRenewError as exc:
            log.error("%s", exc.detail)  # noqa: TRY400
            failed.append(cert.common_name)
            continue
        except Exception:
            log.exception("Unexpected error while renewing %s", cert.common_name)
            failed.append(cert.common_name)
            continue

        if outcome.state is OrchestratorState.ISSUED:
            issued += 1
        else:
            skipped += 1

    log.info(
        "Renewal run finished: %d issued, %d up to date, %d failed",
        issued,
        skipped,
        len(failed),
    )
    if failed:
        log.error("Failed certificates: %s", ", ".join(failed))
        return 1
    return 0
