"""Playwright browser engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from cartpilot.core.errors import NavigationError
from cartpilot.core.models.config import BrowserConfig

if TYPE_CHECKING:
    from cartpilot.core.models.proxy import Proxy

logger = structlog.get_logger(__name__)


class BrowserHandle:
    """One Chromium instance with a single context and page."""

    def __init__(self, playwright: Any, browser: Any, context: Any, page: Any) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self._closed = False

    @property
    def page(self) -> Any:
        return self._page

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        try:
            try:
                await self._context.close()
            finally:
                await self._browser.close()
        finally:
            await self._playwright.stop()

        logger.info("Playwright browser closed")


class PlaywrightEngine:
    """Launches Chromium through Playwright, one browser per session."""

    name = "playwright"

    def __init__(self, config: BrowserConfig | None = None) -> None:
        self.config = config or BrowserConfig()

    def launch_options(self, proxy: Proxy | None = None) -> dict[str, Any]:
        options: dict[str, Any] = {
            "headless": self.config.headless,
            "args": list(self.config.args),
        }
        if proxy:
            options["proxy"] = proxy.to_playwright()
        return options

    def context_options(self) -> dict[str, Any]:
        return {
            "viewport": {
                "width": self.config.viewport_width,
                "height": self.config.viewport_height,
            },
            "ignore_https_errors": self.config.ignore_https_errors,
            "locale": "en-US",
        }

    async def launch(self, proxy: Proxy | None = None) -> BrowserHandle:
        try:
            from playwright.async_api import async_playwright
        except ImportError:
            logger.error("Playwright not installed. Install with: pip install playwright")
            raise ImportError("Playwright is required but not installed")

        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(**self.launch_options(proxy))
            context = await browser.new_context(**self.context_options())
            context.set_default_navigation_timeout(self.config.navigation_timeout_ms)
            page = await context.new_page()
        except Exception as e:
            await playwright.stop()
            raise NavigationError(f"Browser launch failed: {e}") from e

        logger.info(
            "Playwright browser launched",
            headless=self.config.headless,
            proxy=proxy.server if proxy else None,
        )
        return BrowserHandle(playwright, browser, context, page)

