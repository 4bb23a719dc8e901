"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders
are what the application actually reads.

Access pattern::

    from acmerenew.config import load_config

    settings = load_config("/etc/acmerenew/config.yaml")
    for cert in settings.certificates:
        print(cert.common_name, cert.names, cert.renewal_window)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

DEFAULT_DIRECTORY_URL = "https://acme-v02.api.letsencrypt.org/directory"

# ---------------------------------------------------------------------------
# ACME client
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AcmeSettings:
    """ACME server endpoint, account and protocol timing."""

    directory_url: str
    contact: tuple[str, ...]
    account_key_path: str
    account_key_size: int
    request_timeout_seconds: int
    validation_timeout_seconds: int
    poll_interval_seconds: float
    finalize_timeout_seconds: int
    max_workers: int
    ca_cert_path: str | None
    user_agent: str


def _build_acme(data: dict | None) -> AcmeSettings:
    d = data or {}
    return AcmeSettings(
        directory_url=d.get("directory_url", DEFAULT_DIRECTORY_URL),
        contact=tuple(d.get("contact", [])),
        account_key_path=d.get("account_key_path", "/etc/acmerenew/account.key"),
        account_key_size=d.get("account_key_size", 2048),
        request_timeout_seconds=d.get("request_timeout_seconds", 30),
        validation_timeout_seconds=d.get("validation_timeout_seconds", 60),
        poll_interval_seconds=d.get("poll_interval_seconds", 2.0),
        finalize_timeout_seconds=d.get("finalize_timeout_seconds", 60),
        max_workers=d.get("max_workers", 4),
        ca_cert_path=d.get("ca_cert_path"),
        user_agent=d.get("user_agent", "acmerenew"),
    )


# ---------------------------------------------------------------------------
# Renewal defaults
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RenewalSettings:
    """Defaults applied to every certificate that does not override them."""

    renew_days: int
    key_size: int


def _build_renewal(data: dict | None) -> RenewalSettings:
    d = data or {}
    return RenewalSettings(
        renew_days=d.get("renew_days", 30),
        key_size=d.get("key_size", 2048),
    )


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CertificateSettings:
    """Desired state of one managed certificate.

    ``common_name`` is the identity; :attr:`names` is the effective
    name set requested from the CA (primary name first, alternate
    names deduplicated against it and each other).
    """

    common_name: str
    alt_names: tuple[str, ...]
    key_path: str
    crt_path: str
    key_size: int
    renew_days: int
    owner: str | None
    group: str | None
    web_root: str
    directory_url: str | None = None
    contact: tuple[str, ...] | None = None
    provisioner: str = "http-01"
    provisioner_options: dict[str, Any] = field(default_factory=dict)

    @property
    def names(self) -> tuple[str, ...]:
        """Effective ordered name set, primary name first."""
        seen: list[str] = [self.common_name]
        for name in self.alt_names:
            if name and name not in seen:
                seen.append(name)
        return tuple(seen)

    @property
    def renewal_window(self) -> timedelta:
        """Time before expiry at which the certificate is reissued."""
        return timedelta(days=self.renew_days)


def _build_certificate(d: dict, renewal: RenewalSettings) -> CertificateSettings:
    contact = d.get("contact")
    return CertificateSettings(
        common_name=d["common_name"].strip(),
        alt_names=tuple(name.strip() for name in d.get("alt_names", [])),
        key_path=d["key_path"],
        crt_path=d["crt_path"],
        key_size=d.get("key_size", renewal.key_size),
        renew_days=d.get("renew_days", renewal.renew_days),
        owner=d.get("owner", "root"),
        group=d.get("group", "root"),
        web_root=d.get("web_root", "/var/www"),
        directory_url=d.get("directory_url"),
        contact=tuple(contact) if contact is not None else None,
        provisioner=d.get("provisioner", "http-01"),
        provisioner_options=dict(d.get("provisioner_options") or {}),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    """Application logging configuration (level, format, optional file)."""

    level: str
    format: str
    file: str | None
    max_file_size_bytes: int
    backup_count: int


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "text"),
        file=d.get("file"),
        max_file_size_bytes=d.get("max_file_size_bytes", 10485760),
        backup_count=d.get("backup_count", 5),
    )


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AcmeRenewSettings:
    acme: AcmeSettings
    renewal: RenewalSettings
    logging: LoggingSettings
    certificates: tuple[CertificateSettings, ...]


def build_settings(data: dict) -> AcmeRenewSettings:
    """Build the full typed settings tree from raw config data.

    Called once by :func:`acmerenew.config.load_config` after schema
    validation and environment-variable resolution.
    """
    renewal = _build_renewal(data.get("renewal"))
    return AcmeRenewSettings(
        acme=_build_acme(data.get("acme")),
        renewal=renewal,
        logging=_build_logging(data.get("logging")),
        certificates=tuple(
            _build_certificate(entry, renewal) for entry in data.get("certificates") or []
        ),
    )
