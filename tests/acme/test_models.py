"""Tests for acmerenew.acme.models."""

from __future__ import annotations

import hashlib

import pytest

from acmerenew.acme.models import Authorization, Challenge, Order
from acmerenew.core.jws import b64url_encode
from acmerenew.core.types import AuthorizationStatus, ChallengeType


def _challenge(ctype=ChallengeType.HTTP_01) -> Challenge:
    return Challenge(type=ctype, url="https://ca.test/c", token="abc", key_authorization="abc.xyz")


class TestChallenge:
    def test_http01_filename_and_content(self):
        challenge = _challenge()
        assert challenge.filename == ".well-known/acme-challenge/abc"
        assert challenge.file_content == "abc.xyz"

    def test_dns01_txt_value(self):
        expected = b64url_encode(hashlib.sha256(b"abc.xyz").digest())
        assert _challenge(ChallengeType.DNS_01).txt_record_value == expected


class TestAuthorization:
    def test_http_challenge_lookup(self):
        authz = Authorization(
            url="u",
            name="example.com",
            challenges={ChallengeType.DNS_01: _challenge(ChallengeType.DNS_01)},
        )
        assert authz.http_challenge is None
        assert authz.challenge(ChallengeType.DNS_01).type is ChallengeType.DNS_01

    def test_transition_records_error(self):
        authz = Authorization(url="u", name="example.com")
        authz.transition(AuthorizationStatus.INVALID, "dns problem")
        assert (authz.status, authz.error) == (AuthorizationStatus.INVALID, "dns problem")

    def test_final_status_is_immutable(self):
        authz = Authorization(url="u", name="example.com", status=AuthorizationStatus.VALID)
        with pytest.raises(ValueError):
            authz.transition(AuthorizationStatus.INVALID)

    def test_same_status_is_noop(self):
        authz = Authorization(url="u", name="example.com", status=AuthorizationStatus.VALID)
        authz.transition(AuthorizationStatus.VALID)
        assert authz.status is AuthorizationStatus.VALID


class TestOrder:
    def test_common_name_is_first_name(self):
        order = Order(url="o", finalize_url="f", names=("example.com", "www.example.com"))
        assert order.common_name == "example.com"
        assert order.authorizations == []
