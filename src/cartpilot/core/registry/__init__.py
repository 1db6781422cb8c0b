"""Strategy registry and plugin management."""

from cartpilot.core.registry.hookspecs import CartPilotSpecs, hookimpl, hookspec
from cartpilot.core.registry.manager import PluginManager
from cartpilot.core.registry.strategies import StrategyRegistry, create_default_registry

__all__ = [
    "CartPilotSpecs",
    "PluginManager",
    "StrategyRegistry",
    "create_default_registry",
    "hookimpl",
    "hookspec",
]
