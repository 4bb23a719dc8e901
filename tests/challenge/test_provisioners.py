"""Tests for the script and callback provisioners and the registry."""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from acmerenew.acme.models import Authorization, Challenge
from acmerenew.challenge.base import (
    ChallengeArtifact,
    ChallengeProvisioner,
    ProvisioningContext,
    ProvisioningError,
)
from acmerenew.challenge.callback import CallbackProvisioner
from acmerenew.challenge.http01 import Http01Provisioner
from acmerenew.challenge.registry import load_provisioner
from acmerenew.challenge.script import ScriptProvisioner
from acmerenew.core.types import ChallengeType
from acmerenew.storage.files import FileManager


def _authorization() -> Authorization:
    return Authorization(
        url="https://ca.test/authz/1",
        name="example.com",
        challenges={
            t: Challenge(
                type=t,
                url=f"https://ca.test/chall/{t}",
                token="tok",
                key_authorization="tok.thumb",
            )
            for t in (ChallengeType.HTTP_01, ChallengeType.DNS_01)
        },
    )


@pytest.fixture()
def context(cert_settings) -> ProvisioningContext:
    return ProvisioningContext(settings=cert_settings, files=FileManager())


def _script(tmp_path, name):
    """Write an executable script that appends its arguments to ``calls.log``."""
    path = tmp_path / name
    path.write_text(f'#!/bin/sh\necho "{name} $*" >> "{tmp_path}/calls.log"\n')
    path.chmod(0o755)
    return str(path)


# ---------------------------------------------------------------------------
# ScriptProvisioner
# ---------------------------------------------------------------------------


class TestScriptProvisioner:
    def test_requires_scripts(self):
        with pytest.raises(ProvisioningError, match="deploy_script"):
            ScriptProvisioner({"cleanup_script": "/bin/true"})
        with pytest.raises(ProvisioningError, match="cleanup_script"):
            ScriptProvisioner({"deploy_script": "/bin/true"})

    def test_rejects_unsupported_type(self):
        with pytest.raises(ProvisioningError, match="tls-alpn-01"):
            ScriptProvisioner(
                {
                    "deploy_script": "/bin/true",
                    "cleanup_script": "/bin/true",
                    "challenge_type": "tls-alpn-01",
                },
            )

    def test_http01_deploy_and_cleanup(self, tmp_path, context):
        provisioner = ScriptProvisioner(
            {
                "deploy_script": _script(tmp_path, "deploy"),
                "cleanup_script": _script(tmp_path, "cleanup"),
            },
        )
        artifact = provisioner.install(_authorization(), context)
        provisioner.remove(artifact)

        calls = (tmp_path / "calls.log").read_text().splitlines()
        assert calls == ["deploy example.com tok tok.thumb", "cleanup example.com tok"]

    def test_dns01_passes_txt_value(self, tmp_path, context):
        provisioner = ScriptProvisioner(
            {
                "deploy_script": _script(tmp_path, "deploy"),
                "cleanup_script": _script(tmp_path, "cleanup"),
                "challenge_type": "dns-01",
            },
        )
        authz = _authorization()
        artifact = provisioner.install(authz, context)

        assert provisioner.challenge_type is ChallengeType.DNS_01
        assert artifact.location == "_acme-challenge.example.com"
        txt = authz.challenge(ChallengeType.DNS_01).txt_record_value
        assert (tmp_path / "calls.log").read_text().strip() == f"deploy example.com tok {txt}"

    def test_failing_deploy_raises(self, tmp_path, context):
        failing = tmp_path / "fail"
        failing.write_text("#!/bin/sh\necho boom >&2\nexit 3\n")
        failing.chmod(0o755)
        provisioner = ScriptProvisioner(
            {"deploy_script": str(failing), "cleanup_script": "/bin/true"},
        )
        with pytest.raises(ProvisioningError, match="status 3.*boom"):
            provisioner.install(_authorization(), context)

    @patch("acmerenew.challenge.script.subprocess.run")
    def test_timeout_passed_and_reported(self, mock_run, context):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="deploy", timeout=5)
        provisioner = ScriptProvisioner(
            {"deploy_script": "deploy", "cleanup_script": "cleanup", "script_timeout": 5},
        )
        with pytest.raises(ProvisioningError):
            provisioner.install(_authorization(), context)
        assert mock_run.call_args.kwargs["timeout"] == 5

    @patch("acmerenew.challenge.script.subprocess.run", side_effect=OSError("gone"))
    def test_cleanup_failure_is_logged(self, _run, caplog):
        provisioner = ScriptProvisioner({"deploy_script": "d", "cleanup_script": "c"})
        provisioner.remove(ChallengeArtifact(name="example.com", token="tok"))
        assert "Cleanup script failed" in caplog.text


# ---------------------------------------------------------------------------
# CallbackProvisioner
# ---------------------------------------------------------------------------


class TestCallbackProvisioner:
    def test_handle_passed_opaquely(self, context):
        handle = object()
        install = MagicMock(return_value=handle)
        remove = MagicMock()
        provisioner = CallbackProvisioner(install, remove, challenge_type=ChallengeType.DNS_01)

        authz = _authorization()
        artifact = provisioner.install(authz, context)
        provisioner.remove(artifact)

        install.assert_called_once_with(authz, context)
        remove.assert_called_once_with(handle)
        assert provisioner.challenge_type is ChallengeType.DNS_01

    def test_install_exception_wrapped(self, context):
        install = MagicMock(side_effect=RuntimeError("api down"))
        provisioner = CallbackProvisioner(install, MagicMock())
        with pytest.raises(ProvisioningError, match="api down"):
            provisioner.install(_authorization(), context)

    def test_remove_exception_logged(self, caplog):
        provisioner = CallbackProvisioner(MagicMock(), MagicMock(side_effect=RuntimeError("x")))
        provisioner.remove(ChallengeArtifact(name="example.com", token="tok", handle=1))
        assert "Remove callback failed" in caplog.text


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class CustomProvisioner(ChallengeProvisioner):
    challenge_type = ChallengeType.DNS_01

    def install(self, authorization, context):
        return ChallengeArtifact(name=authorization.name, token="t")

    def remove(self, artifact):
        pass


class NotAProvisioner:
    pass


class TestLoadProvisioner:
    def test_builtin_http01(self):
        assert isinstance(load_provisioner("http-01"), Http01Provisioner)

    def test_builtin_script_gets_options(self):
        provisioner = load_provisioner(
            "script",
            {"deploy_script": "/bin/true", "cleanup_script": "/bin/true"},
        )
        assert isinstance(provisioner, ScriptProvisioner)

    def test_external(self):
        provisioner = load_provisioner(f"ext:{__name__}.CustomProvisioner", {"zone": "z"})
        assert isinstance(provisioner, CustomProvisioner)
        assert provisioner.options == {"zone": "z"}

    def test_external_must_subclass(self):
        with pytest.raises(ProvisioningError, match="subclass"):
            load_provisioner(f"ext:{__name__}.NotAProvisioner")

    def test_external_must_be_qualified(self):
        with pytest.raises(ProvisioningError, match="fully"):
            load_provisioner("ext:Bare")

    def test_external_import_failure(self):
        with pytest.raises(ProvisioningError, match="Cannot load"):
            load_provisioner("ext:no_such_module_xyz.Provisioner")

    def test_unknown(self):
        with pytest.raises(ProvisioningError, match="Unknown provisioner"):
            load_provisioner("dns-01")
