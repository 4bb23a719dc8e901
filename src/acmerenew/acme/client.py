"""RFC 8555 ACME client transport over HTTPS.

Implements :class:`AcmeTransport` with ``urllib.request`` and JWS
signatures from :mod:`acmerenew.core.jws`.

Protocol flow::

    GET  directory
    HEAD newNonce
    POST newAccount        (jwk, once per transport, lazily)
    POST newOrder          (kid)
    POST authorization     (POST-as-GET, one per name)
    POST challenge         ({} to request validation)
    POST authorization     (POST-as-GET, polled until final)
    POST finalize          ({"csr": ...})
    POST order             (POST-as-GET, polled until valid)
    POST certificate       (POST-as-GET, PEM chain)

Nothing touches the network until the first operation is called, so a
run that decides not to renew makes no requests at all.  Requests are
serialised with a lock because the replay nonce is shared state; the
sleeps between polls happen outside the lock.
"""

from __future__ import annotations

import contextlib
import json
import logging
import ssl
import threading
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.x509.oid import NameOID

from acmerenew.acme.models import Authorization, Challenge, Order
from acmerenew.acme.transport import AcmeTransport, TransportError
from acmerenew.core.jws import b64url_encode, jwk_from_key, key_authorization, sign_jws
from acmerenew.core.types import AuthorizationStatus, ChallengeType
from acmerenew.logging.sanitize import sanitize_for_logs, truncate_detail

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from cryptography.hazmat.primitives.asymmetric import rsa

    from acmerenew.config.settings import AcmeSettings

log = logging.getLogger(__name__)

_BAD_NONCE = "urn:ietf:params:acme:error:badNonce"
_JOSE_CONTENT_TYPE = "application/jose+json"
_PEM_CHAIN_CONTENT_TYPE = "application/pem-certificate-chain"
_MAX_CN_LENGTH = 64

_STATUS_MAP = {
    "pending": AuthorizationStatus.PENDING,
    "valid": AuthorizationStatus.VALID,
    "invalid": AuthorizationStatus.INVALID,
}


@dataclass(frozen=True)
class _Response:
    status: int
    headers: dict[str, str]
    body: bytes

    def json(self) -> dict[str, Any]:
        try:
            data = json.loads(self.body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            msg = f"CA returned invalid JSON (HTTP {self.status}): {exc}"
            raise TransportError(msg) from exc
        if not isinstance(data, dict):
            kind = type(data).__name__
            msg = f"CA returned a JSON {kind}, expected an object (HTTP {self.status})"
            raise TransportError(msg)
        return data

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())


def _problem_detail(problem: dict[str, Any] | None) -> str:
    """Render an RFC 7807 problem document (with subproblems) as text."""
    if not problem:
        return "no error detail"
    detail = problem.get("detail") or problem.get("type") or "unknown error"
    subproblems = problem.get("subproblems") or []
    if subproblems:
        parts = [
            f"{(sp.get('identifier') or {}).get('value', '?')}: {sp.get('detail', '')}"
            for sp in subproblems
        ]
        detail = f"{detail} ({'; '.join(parts)})"
    return truncate_detail(detail)


class HttpAcmeTransport(AcmeTransport):
    """ACME v2 client bound to one directory URL and one account key.

    Parameters
    ----------
    settings:
        The ``acme`` configuration section.
    account_key:
        RSA key identifying the ACME account.
    directory_url:
        Overrides ``settings.directory_url``.
    contact:
        Overrides ``settings.contact``.
    sleep, monotonic:
        Time functions, replaceable in tests.

    """

    def __init__(  # noqa: PLR0913
        self,
        settings: AcmeSettings,
        account_key: rsa.RSAPrivateKey,
        *,
        directory_url: str | None = None,
        contact: Sequence[str] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings
        self._key = account_key
        self._jwk = jwk_from_key(account_key)
        self.directory_url = directory_url or settings.directory_url
        self._contact = tuple(contact if contact is not None else settings.contact)
        self._sleep = sleep
        self._monotonic = monotonic

        self._directory: dict[str, Any] | None = None
        self._nonce: str | None = None
        self._kid: str | None = None
        self._ssl_ctx: ssl.SSLContext | None = None
        self._lock = threading.RLock()

    # -- HTTP ----------------------------------------------------------------

    def _get_ssl_context(self) -> ssl.SSLContext:
        """Build (and cache) an SSL context honouring ``ca_cert_path``."""
        if self._ssl_ctx is None:
            ctx = ssl.create_default_context()
            if self._settings.ca_cert_path:
                ctx.load_verify_locations(self._settings.ca_cert_path)
            self._ssl_ctx = ctx
        return self._ssl_ctx

    def _request(
        self,
        url: str,
        *,
        method: str = "GET",
        data: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> _Response:
        """Send one request.  HTTP error statuses are returned, not raised."""
        req = urllib.request.Request(url, data=data, method=method)
        req.add_header("User-Agent", self._settings.user_agent)
        for name, value in (headers or {}).items():
            req.add_header(name, value)

        opener = urllib.request.build_opener(
            urllib.request.HTTPSHandler(context=self._get_ssl_context()),
        )
        try:
            resp = opener.open(req, timeout=self._settings.request_timeout_seconds)
        except urllib.error.HTTPError as exc:
            body = b""
            with contextlib.suppress(Exception):
                body = exc.read()
            return _Response(
                status=exc.code,
                headers={k.lower(): v for k, v in (exc.headers or {}).items()},
                body=body,
            )
        except (urllib.error.URLError, OSError) as exc:
            msg = f"Failed to reach ACME server at {url}: {exc}"
            raise TransportError(msg, retryable=True) from exc

        with resp:
            return _Response(
                status=resp.status,
                headers={k.lower(): v for k, v in resp.headers.items()},
                body=resp.read(),
            )

    def _raise_for_status(self, resp: _Response, what: str) -> None:
        if resp.status < 400:
            return
        problem: dict[str, Any] | None = None
        with contextlib.suppress(TransportError):
            problem = resp.json()
        msg = f"{what} failed (HTTP {resp.status}): {_problem_detail(problem)}"
        raise TransportError(
            msg,
            retryable=resp.status >= 500 or resp.status == 429,
            problem_type=(problem or {}).get("type"),
        )

    # -- directory / nonce ---------------------------------------------------

    def _get_directory(self) -> dict[str, Any]:
        if self._directory is None:
            resp = self._request(self.directory_url)
            self._raise_for_status(resp, "Directory fetch")
            self._directory = resp.json()
            log.debug("Fetched ACME directory %s", self.directory_url)
        return self._directory

    def _endpoint(self, name: str) -> str:
        try:
            return self._get_directory()[name]
        except KeyError:
            msg = f"ACME directory {self.directory_url} has no '{name}' endpoint"
            raise TransportError(msg) from None

    def _fetch_nonce(self) -> str:
        resp = self._request(self._endpoint("newNonce"), method="HEAD")
        self._raise_for_status(resp, "Nonce request")
        nonce = resp.header("Replay-Nonce")
        if not nonce:
            msg = "ACME server did not return a Replay-Nonce header"
            raise TransportError(msg, retryable=True)
        return nonce

    # -- signed requests -----------------------------------------------------

    def _post(
        self,
        url: str,
        payload: dict[str, Any] | None,
        *,
        what: str,
        use_jwk: bool = False,
        accept: str | None = None,
    ) -> _Response:
        """Send a JWS-signed POST, retrying once on ``badNonce``."""
        with self._lock:
            for attempt in range(2):
                if self._nonce is None:
                    self._nonce = self._fetch_nonce()

                protected: dict[str, Any] = {"nonce": self._nonce, "url": url}
                if use_jwk:
                    protected["jwk"] = self._jwk
                else:
                    protected["kid"] = self._kid

                body = json.dumps(sign_jws(self._key, protected, payload)).encode("utf-8")
                headers = {"Content-Type": _JOSE_CONTENT_TYPE}
                if accept:
                    headers["Accept"] = accept

                log.debug("POST %s %s", url, sanitize_for_logs(payload))
                resp = self._request(url, method="POST", data=body, headers=headers)
                self._nonce = resp.header("Replay-Nonce")

                if resp.status == 400 and attempt == 0 and self._is_bad_nonce(resp):
                    log.debug("Nonce rejected by %s, retrying with a fresh one", url)
                    self._nonce = None
                    continue

                self._raise_for_status(resp, what)
                return resp

        msg = f"{what} failed: nonce rejected twice"  # pragma: no cover
        raise TransportError(msg, retryable=True)  # pragma: no cover

    @staticmethod
    def _is_bad_nonce(resp: _Response) -> bool:
        try:
            return resp.json().get("type") == _BAD_NONCE
        except TransportError:
            return False

    def _post_as_get(self, url: str, *, what: str, accept: str | None = None) -> _Response:
        return self._post(url, None, what=what, accept=accept)

    # -- account -------------------------------------------------------------

    def _ensure_account(self) -> None:
        """Register the account, or look up the existing one for this key."""
        with self._lock:
            if self._kid is not None:
                return
            payload: dict[str, Any] = {"termsOfServiceAgreed": True}
            if self._contact:
                payload["contact"] = list(self._contact)
            resp = self._post(
                self._endpoint("newAccount"),
                payload,
                what="Account registration",
                use_jwk=True,
            )
            kid = resp.header("Location")
            if not kid:
                msg = "ACME server did not return an account URL"
                raise TransportError(msg)
            self._kid = kid
            log.info(
                "ACME account %s at %s: %s",
                "found" if resp.status == 200 else "registered",
                self.directory_url,
                kid,
            )

    # -- AcmeTransport -------------------------------------------------------

    def create_order(self, names: Sequence[str]) -> Order:
        self._ensure_account()

        payload = {"identifiers": [{"type": "dns", "value": name} for name in names]}
        resp = self._post(self._endpoint("newOrder"), payload, what="Order creation")
        order_url = resp.header("Location")
        data = resp.json()
        if not order_url or "finalize" not in data:
            msg = "ACME server returned an incomplete order"
            raise TransportError(msg)

        order = Order(
            url=order_url,
            finalize_url=data["finalize"],
            names=tuple(names),
            status=data.get("status", "pending"),
        )
        for authz_url in data.get("authorizations", []):
            order.authorizations.append(self._fetch_authorization(authz_url))

        log.info(
            "Created order %s for %s (%d authorization(s))",
            order.url,
            ", ".join(names),
            len(order.authorizations),
        )
        return order

    def _fetch_authorization(self, url: str) -> Authorization:
        data = self._post_as_get(url, what="Authorization fetch").json()
        status = _STATUS_MAP.get(data.get("status", ""), AuthorizationStatus.INVALID)
        identifier = data.get("identifier")
        name = identifier.get("value", "") if isinstance(identifier, dict) else ""

        challenges: dict[ChallengeType, Challenge] = {}
        for chal in data.get("challenges") or []:
            if not isinstance(chal, dict):
                msg = f"Authorization {url} contains a malformed challenge: {chal!r}"
                raise TransportError(truncate_detail(msg))
            try:
                ctype = ChallengeType(chal.get("type"))
            except ValueError:
                continue
            chal_url, token = chal.get("url"), chal.get("token")
            if not isinstance(chal_url, str) or not isinstance(token, str):
                msg = f"{ctype.value} challenge of {url} is missing its url or token"
                raise TransportError(msg)
            challenges[ctype] = Challenge(
                type=ctype,
                url=chal_url,
                token=token,
                key_authorization=key_authorization(token, self._jwk),
            )

        error = None
        if status is AuthorizationStatus.INVALID:
            error = self._authorization_error(data)
        return Authorization(
            url=url,
            name=name,
            status=status,
            error=error,
            challenges=challenges,
            wildcard=bool(data.get("wildcard", False)),
        )

    @staticmethod
    def _authorization_error(data: dict[str, Any]) -> str:
        for chal in data.get("challenges") or []:
            if isinstance(chal, dict) and isinstance(chal.get("error"), dict):
                return _problem_detail(chal["error"])
        return f"authorization is {data.get('status', 'unknown')}"

    def trigger_and_await(
        self,
        authorization: Authorization,
        challenge_type: ChallengeType,
        timeout: float,
    ) -> AuthorizationStatus:
        challenge = authorization.challenge(challenge_type)
        if challenge is None:
            msg = f"CA offered no {challenge_type.value} challenge for {authorization.name}"
            raise TransportError(msg)

        self._post(challenge.url, {}, what="Challenge response")
        log.debug("Requested %s validation for %s", challenge_type.value, authorization.name)

        deadline = self._monotonic() + timeout
        while True:
            data = self._post_as_get(authorization.url, what="Authorization poll").json()
            status = data.get("status", "")
            if status == "valid":
                authorization.transition(AuthorizationStatus.VALID)
                return authorization.status
            if status != "pending":
                authorization.transition(
                    AuthorizationStatus.INVALID,
                    self._authorization_error(data),
                )
                return authorization.status
            if self._monotonic() >= deadline:
                msg = (
                    f"Authorization for {authorization.name} still pending "
                    f"after {timeout:g}s"
                )
                raise TimeoutError(msg)
            self._sleep(self._settings.poll_interval_seconds)

    def finalize(self, order: Order, key: rsa.RSAPrivateKey) -> str:
        csr_der = build_csr(order.names, key)
        resp = self._post(
            order.finalize_url,
            {"csr": b64url_encode(csr_der)},
            what="Order finalization",
        )
        data = resp.json()

        deadline = self._monotonic() + self._settings.finalize_timeout_seconds
        while data.get("status") != "valid":
            if data.get("status") == "invalid":
                msg = f"Order became invalid: {_problem_detail(data.get('error'))}"
                raise TransportError(msg)
            if self._monotonic() >= deadline:
                msg = (
                    f"Order {order.url} not issued after "
                    f"{self._settings.finalize_timeout_seconds}s"
                )
                raise TransportError(msg, retryable=True)
            self._sleep(self._settings.poll_interval_seconds)
            data = self._post_as_get(order.url, what="Order poll").json()

        order.status = "valid"
        order.certificate_url = data.get("certificate")
        if not order.certificate_url:
            msg = "Valid order has no certificate URL"
            raise TransportError(msg)

        cert = self._post_as_get(
            order.certificate_url,
            what="Certificate download",
            accept=_PEM_CHAIN_CONTENT_TYPE,
        )
        try:
            return cert.body.decode("ascii")
        except UnicodeDecodeError as exc:
            msg = f"Certificate at {order.certificate_url} is not a PEM chain: {exc}"
            raise TransportError(msg) from exc


def build_csr(names: Sequence[str], key: rsa.RSAPrivateKey) -> bytes:
    """Return a DER CSR for *names*: CN = first name, SAN = all names."""
    builder = x509.CertificateSigningRequestBuilder()
    common_name = names[0]
    if len(common_name) <= _MAX_CN_LENGTH:
        builder = builder.subject_name(
            x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)]),
        )
    else:
        builder = builder.subject_name(x509.Name([]))
    builder = builder.add_extension(
        x509.SubjectAlternativeName([x509.DNSName(name) for name in names]),
        critical=False,
    )
    csr = builder.sign(key, hashes.SHA256())
    return csr.public_bytes(serialization.Encoding.DER)
