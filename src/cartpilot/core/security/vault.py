"""Credential vault for secrets stored at rest."""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import structlog
from cryptography.fernet import Fernet, InvalidToken

from cartpilot.core.errors import VaultError

if TYPE_CHECKING:
    from cartpilot.core.models.config import VaultConfig

logger = structlog.get_logger(__name__)


@runtime_checkable
class CredentialVault(Protocol):
    """Opaque reversible string transform protecting secrets."""

    def encrypt(self, plaintext: str) -> str:
        ...

    def decrypt(self, ciphertext: str) -> str:
        ...


class FernetVault:
    """Vault backed by a Fernet key (AES-128-CBC + HMAC-SHA256).

    Empty strings pass through unchanged so optional secrets stay empty.
    """

    def __init__(self, key: str | bytes) -> None:
        try:
            self._cipher = Fernet(key)
        except (ValueError, TypeError) as e:
            raise VaultError(f"Invalid vault key: {e}") from e

    @classmethod
    def from_config(cls, config: VaultConfig) -> FernetVault:
        """Build a vault from config, generating a key file on first use."""
        if config.key:
            return cls(config.key)
        return cls(load_or_create_key(config.key_file))

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode()

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            return plaintext
        return self._cipher.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        if not ciphertext:
            return ciphertext
        try:
            return self._cipher.decrypt(ciphertext.encode()).decode()
        except InvalidToken as e:
            raise VaultError("Secret could not be decrypted with the configured key") from e


def load_or_create_key(path: Path) -> str:
    """Read the key at path, creating it (mode 0600) when missing."""
    path = Path(path)
    if path.exists():
        return path.read_text().strip()

    path.parent.mkdir(parents=True, exist_ok=True)
    key = FernetVault.generate_key()
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(key)
    logger.info("Generated vault key", path=str(path))
    return key
