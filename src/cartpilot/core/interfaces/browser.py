"""Browser engine interface definitions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from cartpilot.core.models.proxy import Proxy


@runtime_checkable
class IBrowserHandle(Protocol):
    """A launched browser owning exactly one page."""

    @property
    def page(self) -> Any:
        """The Playwright-compatible page the session drives."""
        ...

    async def close(self) -> None:
        """Close the page and browser. Safe to call more than once."""
        ...


@runtime_checkable
class IBrowserEngine(Protocol):
    """Contract for browser engines."""

    @property
    def name(self) -> str:
        """Engine name."""
        ...

    async def launch(self, proxy: Proxy | None = None) -> IBrowserHandle:
        """
        Launch a browser with a single page.

        Args:
            proxy: Proxy to route all page traffic through, with its
                credentials applied

        Returns:
            Handle owning the browser and its page

        Raises:
            NavigationError: If the browser could not be started
        """
        ...
