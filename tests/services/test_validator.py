"""Tests for acmerenew.services.validator."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from acmerenew.acme.transport import TransportError
from acmerenew.challenge.base import (
    ChallengeArtifact,
    ChallengeProvisioner,
    ProvisioningContext,
    ProvisioningError,
)
from acmerenew.core.types import AuthorizationStatus, ChallengeType
from acmerenew.services.validator import AuthorizationValidator, ValidationError
from acmerenew.storage.files import FileManager


class RecordingProvisioner(ChallengeProvisioner):
    """Records install/remove calls; optionally fails install."""

    def __init__(self, install_error: Exception | None = None) -> None:
        super().__init__()
        self.install_error = install_error
        self.installed: list[str] = []
        self.removed: list[ChallengeArtifact] = []

    def install(self, authorization, context):
        if self.install_error is not None:
            raise self.install_error
        self.installed.append(authorization.name)
        return ChallengeArtifact(name=authorization.name, token="t", handle=object())

    def remove(self, artifact):
        self.removed.append(artifact)


@pytest.fixture()
def context(cert_settings):
    return ProvisioningContext(settings=cert_settings, files=FileManager())


@pytest.fixture()
def authorization(fake_transport):
    return fake_transport.create_order(["example.com"]).authorizations[0]


class TestAuthorizationValidator:
    def test_valid(self, fake_transport, authorization, context):
        provisioner = RecordingProvisioner()
        result = AuthorizationValidator(fake_transport, 5).validate(
            authorization, provisioner, context,
        )
        assert result.valid
        assert result.as_error() is None
        assert len(provisioner.removed) == 1

    def test_invalid_still_cleans_up_exactly_once(self, fake_transport, authorization, context):
        fake_transport.outcomes["example.com"] = AuthorizationStatus.INVALID
        provisioner = RecordingProvisioner()

        result = AuthorizationValidator(fake_transport, 5).validate(
            authorization, provisioner, context,
        )

        assert result.status is AuthorizationStatus.INVALID
        assert result.error == "challenge failed"
        assert provisioner.installed == ["example.com"]
        assert len(provisioner.removed) == 1

    @pytest.mark.parametrize(
        "exc",
        [TimeoutError("still pending after 5s"), TransportError("connection reset")],
    )
    def test_transport_failure_is_errored_not_raised(
        self, fake_transport, authorization, context, exc,
    ):
        fake_transport.outcomes["example.com"] = exc
        provisioner = RecordingProvisioner()

        result = AuthorizationValidator(fake_transport, 5).validate(
            authorization, provisioner, context,
        )

        assert result.status is AuthorizationStatus.ERRORED
        assert str(exc) in result.error
        assert len(provisioner.removed) == 1

    def test_interrupt_still_cleans_up(self, fake_transport, authorization, context):
        fake_transport.outcomes["example.com"] = KeyboardInterrupt()
        provisioner = RecordingProvisioner()
        with pytest.raises(KeyboardInterrupt):
            AuthorizationValidator(fake_transport, 5).validate(
                authorization, provisioner, context,
            )
        assert len(provisioner.removed) == 1

    def test_install_failure_skips_trigger_and_remove(self, fake_transport, authorization, context):
        provisioner = RecordingProvisioner(install_error=ProvisioningError("read-only web root"))

        result = AuthorizationValidator(fake_transport, 5).validate(
            authorization, provisioner, context,
        )

        assert result.status is AuthorizationStatus.ERRORED
        assert result.error == "read-only web root"
        assert fake_transport.count("trigger_and_await") == 0
        assert provisioner.removed == []

    def test_unexpected_install_error_is_errored(self, fake_transport, authorization, context):
        provisioner = RecordingProvisioner(install_error=RuntimeError("hook crashed"))

        result = AuthorizationValidator(fake_transport, 5).validate(
            authorization, provisioner, context,
        )

        assert result.status is AuthorizationStatus.ERRORED
        assert result.error == "hook crashed"
        assert fake_transport.count("trigger_and_await") == 0

    def test_unexpected_transport_error_is_errored(self, fake_transport, authorization, context):
        fake_transport.outcomes["example.com"] = ValueError("CA sent a JSON list")
        provisioner = RecordingProvisioner()

        result = AuthorizationValidator(fake_transport, 5).validate(
            authorization, provisioner, context,
        )

        assert result.status is AuthorizationStatus.ERRORED
        assert result.error == "CA sent a JSON list"
        assert len(provisioner.removed) == 1

    def test_already_valid_skips_provisioning(self, fake_transport, context):
        fake_transport.initial_status["example.com"] = AuthorizationStatus.VALID
        authz = fake_transport.create_order(["example.com"]).authorizations[0]
        provisioner = RecordingProvisioner()

        result = AuthorizationValidator(fake_transport, 5).validate(authz, provisioner, context)

        assert result.valid
        assert provisioner.installed == []
        assert fake_transport.count("trigger_and_await") == 0

    def test_remove_failure_is_logged(self, fake_transport, authorization, context, caplog):
        provisioner = RecordingProvisioner()
        provisioner.remove = MagicMock(side_effect=RuntimeError("gone"))
        result = AuthorizationValidator(fake_transport, 5).validate(
            authorization, provisioner, context,
        )
        assert result.valid
        assert "Cleanup failed" in caplog.text

    def test_passes_provisioner_challenge_type_and_timeout(self, authorization, context):
        transport = MagicMock()

        def answer(authz, challenge_type, timeout):
            authz.transition(AuthorizationStatus.VALID)
            return authz.status

        transport.trigger_and_await.side_effect = answer
        provisioner = RecordingProvisioner()
        provisioner.challenge_type = ChallengeType.DNS_01

        AuthorizationValidator(transport, 42).validate(authorization, provisioner, context)
        transport.trigger_and_await.assert_called_once_with(authorization, ChallengeType.DNS_01, 42)


class TestValidationError:
    def test_message_lists_url_status_and_detail(self):
        err = ValidationError("https://ca.test/authz/1", AuthorizationStatus.INVALID, "no route")
        assert str(err) == "{url: https://ca.test/authz/1, status: invalid, error: no route}"
