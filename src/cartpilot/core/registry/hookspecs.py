"""Plugin hook specifications using pluggy."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from cartpilot.core.engine.session import SessionUpdate
    from cartpilot.core.registry.strategies import StrategyRegistry

# Plugin markers
hookspec = pluggy.HookspecMarker("cartpilot")
hookimpl = pluggy.HookimplMarker("cartpilot")


class CartPilotSpecs:
    """Hook specifications for the plugin system."""

    @hookspec(historic=True)
    def register_strategies(self, registry: StrategyRegistry) -> None:
        """
        Add site strategies to the registry.

        Historic: plugins registered later still receive the registry.
        """

    @hookspec
    def on_session_update(self, update: SessionUpdate) -> None:
        """Called for every state change a session reports."""
