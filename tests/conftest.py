"""Root conftest for the ACMERENEW test suite."""

from __future__ import annotations

import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from cryptography import x509  # noqa: E402
from cryptography.hazmat.primitives import hashes, serialization  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import rsa  # noqa: E402
from cryptography.x509.oid import NameOID  # noqa: E402

from acmerenew.acme.models import Authorization, Challenge, Order  # noqa: E402
from acmerenew.acme.transport import AcmeTransport  # noqa: E402
from acmerenew.config.settings import CertificateSettings  # noqa: E402
from acmerenew.core.types import AuthorizationStatus, ChallengeType  # noqa: E402

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture()
def now() -> datetime:
    """Fixed "current time" used across the suite."""
    return NOW


# ---------------------------------------------------------------------------
# Keys and certificates
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    """One 2048-bit key shared by the whole session (generation is slow)."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def make_cert(rsa_key):
    """Return ``build(names, not_after=..., san=True, der=False) -> bytes``."""

    def build(
        names,
        *,
        not_after: datetime | None = None,
        san: bool = True,
        der: bool = False,
    ) -> bytes:
        names = list(names)
        not_after = not_after or NOW + timedelta(days=90)
        subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, names[0])])
        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject)
            .public_key(rsa_key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_after - timedelta(days=90))
            .not_valid_after(not_after)
        )
        if san:
            builder = builder.add_extension(
                x509.SubjectAlternativeName([x509.DNSName(n) for n in names]),
                critical=False,
            )
        cert = builder.sign(rsa_key, hashes.SHA256())
        encoding = serialization.Encoding.DER if der else serialization.Encoding.PEM
        return cert.public_bytes(encoding)

    return build


# ---------------------------------------------------------------------------
# Desired certificate
# ---------------------------------------------------------------------------


@pytest.fixture()
def cert_settings(tmp_path: Path) -> CertificateSettings:
    """Desired state for example.com + www.example.com under *tmp_path*."""
    return CertificateSettings(
        common_name="example.com",
        alt_names=("www.example.com",),
        key_path=str(tmp_path / "example.com.key"),
        crt_path=str(tmp_path / "example.com.crt"),
        key_size=2048,
        renew_days=30,
        owner=None,
        group=None,
        web_root=str(tmp_path / "www"),
    )


# ---------------------------------------------------------------------------
# Fake ACME transport
# ---------------------------------------------------------------------------


class FakeTransport(AcmeTransport):
    """In-memory transport recording every call.

    ``outcomes`` maps a name to the status (or exception) that
    ``trigger_and_await`` should produce for it; unlisted names become
    valid.  ``finalize`` returns ``chain`` when set, otherwise a
    certificate for the order names built with ``make_cert``.
    """

    def __init__(self, make_cert) -> None:
        self._make_cert = make_cert
        self.outcomes: dict[str, AuthorizationStatus | BaseException] = {}
        self.initial_status: dict[str, AuthorizationStatus] = {}
        self.chain: str | None = None
        self.finalize_error: BaseException | None = None
        self.calls: list[tuple] = []

    def create_order(self, names):
        self.calls.append(("create_order", tuple(names)))
        order = Order(
            url="https://ca.test/order/1",
            finalize_url="https://ca.test/order/1/finalize",
            names=tuple(names),
        )
        for idx, name in enumerate(names):
            token = f"token-{idx}"
            order.authorizations.append(
                Authorization(
                    url=f"https://ca.test/authz/{idx}",
                    name=name,
                    status=self.initial_status.get(name, AuthorizationStatus.PENDING),
                    challenges={
                        ChallengeType.HTTP_01: Challenge(
                            type=ChallengeType.HTTP_01,
                            url=f"https://ca.test/chall/{idx}",
                            token=token,
                            key_authorization=f"{token}.thumb",
                        ),
                    },
                ),
            )
        return order

    def trigger_and_await(self, authorization, challenge_type, timeout):
        self.calls.append(("trigger_and_await", authorization.name))
        outcome = self.outcomes.get(authorization.name, AuthorizationStatus.VALID)
        if isinstance(outcome, BaseException):
            raise outcome
        detail = None if outcome is AuthorizationStatus.VALID else "challenge failed"
        authorization.transition(outcome, detail)
        return authorization.status

    def finalize(self, order, key):
        self.calls.append(("finalize", order.names))
        if self.finalize_error is not None:
            raise self.finalize_error
        if self.chain is not None:
            return self.chain
        return self._make_cert(order.names, not_after=NOW + timedelta(days=90)).decode()

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


@pytest.fixture()
def fake_transport(make_cert) -> FakeTransport:
    return FakeTransport(make_cert)


# ---------------------------------------------------------------------------
# Config files
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data(tmp_path: Path) -> dict:
    """Return a dict containing the minimum required config fields."""
    return {
        "certificates": [
            {
                "common_name": "example.com",
                "alt_names": ["www.example.com"],
                "key_path": str(tmp_path / "example.com.key"),
                "crt_path": str(tmp_path / "example.com.crt"),
            },
        ],
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


# ---------------------------------------------------------------------------
# Logger cleanup: autouse so configure_logging never leaks between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_acmerenew_logger():
    """Restore the ``acmerenew`` logger to propagate-to-root defaults."""
    yield
    import logging

    logger = logging.getLogger("acmerenew")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
