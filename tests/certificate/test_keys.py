"""Tests for acmerenew.certificate.keys."""

from __future__ import annotations

import stat
from unittest.mock import MagicMock, patch

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from acmerenew.certificate.keys import (
    KEY_FILE_MODE,
    KeyFileError,
    KeyFileManager,
    generate_rsa_key,
    load_key,
)
from acmerenew.storage.files import FileManager


def _pem(key) -> bytes:
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


class TestGenerateRsaKey:
    def test_rejects_unsupported_size(self):
        with pytest.raises(ValueError):
            generate_rsa_key(1024)

    @patch("acmerenew.certificate.keys.rsa.generate_private_key")
    @pytest.mark.parametrize("size", [2048, 3072, 4096])
    def test_supported_sizes(self, mock_generate, size):
        generate_rsa_key(size)
        mock_generate.assert_called_once_with(public_exponent=65537, key_size=size)


class TestLoadKey:
    def test_rejects_non_rsa(self, tmp_path):
        path = tmp_path / "ec.key"
        path.write_bytes(_pem(ec.generate_private_key(ec.SECP256R1())))
        with pytest.raises(KeyFileError, match="expected an RSA key"):
            load_key(path)

    def test_rejects_garbage(self, tmp_path):
        path = tmp_path / "bad.key"
        path.write_bytes(b"not a key")
        with pytest.raises(KeyFileError):
            load_key(path)


class TestKeyFileManager:
    def test_creates_missing_key_private(self, tmp_path):
        path = tmp_path / "k.key"
        key = KeyFileManager(FileManager()).ensure_key(path, 2048)
        assert stat.S_IMODE(path.stat().st_mode) == KEY_FILE_MODE
        assert load_key(path).private_numbers() == key.private_numbers()

    def test_written_as_sensitive(self, tmp_path):
        files = MagicMock(spec=FileManager)
        KeyFileManager(files).ensure_key(tmp_path / "k.key", 2048, owner="root", group="ssl")
        kwargs = files.write_file.call_args.kwargs
        assert kwargs["sensitive"] is True
        assert kwargs["mode"] == 0o400
        assert (kwargs["owner"], kwargs["group"]) == ("root", "ssl")

    def test_existing_key_never_regenerated(self, tmp_path, rsa_key):
        path = tmp_path / "k.key"
        path.write_bytes(_pem(rsa_key))
        before = path.read_bytes()
        manager = KeyFileManager(FileManager())

        with patch("acmerenew.certificate.keys.generate_rsa_key") as mock_generate:
            for key_size in (2048, 4096, 2048):
                key = manager.ensure_key(path, key_size)
                assert key.private_numbers() == rsa_key.private_numbers()
            mock_generate.assert_not_called()
        assert path.read_bytes() == before
