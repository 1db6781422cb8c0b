"""Secret protection."""

from cartpilot.core.security.vault import CredentialVault, FernetVault, load_or_create_key

__all__ = ["CredentialVault", "FernetVault", "load_or_create_key"]
