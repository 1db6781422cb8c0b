"""Interface definitions for pluggable components."""

from cartpilot.core.interfaces.browser import IBrowserEngine, IBrowserHandle
from cartpilot.core.interfaces.strategy import Capability, SiteStrategy

__all__ = [
    "Capability",
    "IBrowserEngine",
    "IBrowserHandle",
    "SiteStrategy",
]
