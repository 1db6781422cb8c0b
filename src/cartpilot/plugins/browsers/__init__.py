"""Browser engine plugins."""

from cartpilot.plugins.browsers.playwright_plugin import BrowserHandle, PlaywrightEngine

__all__ = ["BrowserHandle", "PlaywrightEngine"]
