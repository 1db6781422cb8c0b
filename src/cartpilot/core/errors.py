"""Exception taxonomy."""

from __future__ import annotations


class CartPilotError(Exception):
    """Base class for all CartPilot errors."""


class ConfigurationError(CartPilotError):
    """A task or component is misconfigured (e.g. missing product reference)."""


class SessionError(CartPilotError):
    """Raised inside an automation session while driving a site strategy."""


class NavigationError(SessionError):
    """A page failed to load."""


class BlockedError(SessionError):
    """A captcha or ban was detected and could not be resolved."""


class SelectorNotFoundError(SessionError):
    """The page layout does not match what the strategy expects."""

    def __init__(self, selector: str, message: str | None = None) -> None:
        self.selector = selector
        super().__init__(message or f"Element not found: {selector}")


class CheckoutError(SessionError):
    """Payment or order submission failed."""


class VaultError(CartPilotError):
    """A secret could not be encrypted or decrypted."""


class StoreError(CartPilotError):
    """A persistence operation failed."""
