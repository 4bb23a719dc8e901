"""Renewal decision: does a certificate need to be (re)issued?

The decision is a pure function of its inputs so that repeated runs
with unchanged inputs never trigger a reissue.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from acmerenew.core.types import RenewalReason

if TYPE_CHECKING:
    from collections.abc import Set
    from datetime import datetime, timedelta

    from acmerenew.certificate.inspector import ExistingCertificate


@dataclass(frozen=True)
class RenewalDecision:
    renew: bool
    reason: RenewalReason

    def __bool__(self) -> bool:
        return self.renew


def names_changed(existing: ExistingCertificate, desired_names: Set[str]) -> bool:
    """Return ``True`` if the SAN set differs from *desired_names*.

    Exact, case-sensitive comparison.  An empty desired set, or a
    certificate without a SAN extension, counts as unchanged.
    """
    if not desired_names or existing.san_names is None:
        return False
    return bool(set(desired_names) ^ existing.san_names)


def needs_renewal(
    existing: ExistingCertificate | None,
    desired_names: Set[str],
    renewal_window: timedelta,
    now: datetime,
) -> RenewalDecision:
    """Decide whether to reissue.  Rules are evaluated in order."""
    if existing is None:
        return RenewalDecision(True, RenewalReason.NO_EXISTING_CERTIFICATE)
    if existing.not_after <= now + renewal_window:
        return RenewalDecision(True, RenewalReason.APPROACHING_EXPIRY)
    if names_changed(existing, desired_names):
        return RenewalDecision(True, RenewalReason.NAME_SET_CHANGED)
    return RenewalDecision(False, RenewalReason.UP_TO_DATE)


class RenewalPolicy:
    """:func:`needs_renewal` bound to a configured renewal window."""

    def __init__(self, renewal_window: timedelta) -> None:
        self.renewal_window = renewal_window

    def evaluate(
        self,
        existing: ExistingCertificate | None,
        desired_names: Set[str],
        now: datetime,
    ) -> RenewalDecision:
        return needs_renewal(existing, desired_names, self.renewal_window, now)
