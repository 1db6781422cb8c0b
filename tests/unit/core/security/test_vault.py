"""Tests for the Fernet credential vault."""

from __future__ import annotations

import stat

import pytest

from cartpilot.core.errors import VaultError
from cartpilot.core.models.config import VaultConfig
from cartpilot.core.security.vault import CredentialVault, FernetVault, load_or_create_key


class TestFernetVault:
    """Tests for encrypt/decrypt."""

    def test_round_trip(self, vault):
        token = vault.encrypt("hunter2")

        assert token != "hunter2"
        assert vault.decrypt(token) == "hunter2"

    def test_empty_passes_through(self, vault):
        assert vault.encrypt("") == ""
        assert vault.decrypt("") == ""

    def test_wrong_key_raises(self, vault):
        token = vault.encrypt("secret")
        other = FernetVault(FernetVault.generate_key())

        with pytest.raises(VaultError):
            other.decrypt(token)

    def test_invalid_key(self):
        with pytest.raises(VaultError, match="Invalid vault key"):
            FernetVault("not-a-key")

    def test_satisfies_protocol(self, vault):
        assert isinstance(vault, CredentialVault)


class TestKeyManagement:
    """Tests for key loading and generation."""

    def test_key_from_config(self, vault_key):
        vault = FernetVault.from_config(VaultConfig(key=vault_key))

        assert FernetVault(vault_key).decrypt(vault.encrypt("x")) == "x"

    def test_key_file_created_once(self, tmp_path):
        path = tmp_path / "keys" / "vault.key"

        first = load_or_create_key(path)
        second = load_or_create_key(path)

        assert first == second
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_from_config_uses_key_file(self, tmp_path):
        config = VaultConfig(key_file=tmp_path / "vault.key")

        token = FernetVault.from_config(config).encrypt("card")

        assert FernetVault.from_config(config).decrypt(token) == "card"
