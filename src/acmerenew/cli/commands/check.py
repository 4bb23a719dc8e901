"""``check`` subcommand: report renewal decisions without contacting the CA."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from acmerenew.certificate.inspector import CertificateInspector
from acmerenew.certificate.policy import RenewalPolicy

if TYPE_CHECKING:
    from acmerenew.config.settings import AcmeRenewSettings

log = logging.getLogger(__name__)


def run_check(
    settings: AcmeRenewSettings,
    args,  # noqa: ARG001
    now: datetime | None = None,
) -> int:
    """Print one line per certificate.  Returns the process exit code."""
    now = now or datetime.now(UTC)
    for cert in settings.certificates:
        existing = CertificateInspector(cert).current()
        decision = RenewalPolicy(cert.renewal_window).evaluate(
            existing,
            frozenset(cert.names),
            now,
        )
        expires = existing.not_after.isoformat() if existing else "-"
        print(
            f"{cert.common_name}: {'renew' if decision.renew else 'ok'} "
            f"({decision.reason.value}, expires {expires})",
        )
    return 0
