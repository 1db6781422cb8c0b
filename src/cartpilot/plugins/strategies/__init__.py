"""Built-in site strategies."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cartpilot.core.registry.hookspecs import hookimpl
from cartpilot.plugins.strategies.amazon import AmazonStrategy
from cartpilot.plugins.strategies.base import Selectors, SelectorStrategy, SignInStrategy
from cartpilot.plugins.strategies.bestbuy import BestBuyStrategy
from cartpilot.plugins.strategies.nike import NikeStrategy
from cartpilot.plugins.strategies.shopify import ShopifyStrategy
from cartpilot.plugins.strategies.target import TargetStrategy
from cartpilot.plugins.strategies.walmart import WalmartStrategy

if TYPE_CHECKING:
    from cartpilot.core.registry.strategies import StrategyRegistry


def register_builtin_strategies(registry: StrategyRegistry) -> None:
    """Register every built-in strategy; Shopify is the fallback."""
    registry.register("shopify", ShopifyStrategy, default=True)
    registry.register("amazon", AmazonStrategy, aliases=("amazon.com",))
    registry.register("bestbuy", BestBuyStrategy, aliases=("best buy", "best-buy", "bestbuy.com"))
    registry.register("walmart", WalmartStrategy, aliases=("walmart.com",))
    registry.register("target", TargetStrategy, aliases=("target.com",))
    registry.register("nike", NikeStrategy, aliases=("nike.com", "snkrs"))


@hookimpl
def register_strategies(registry: StrategyRegistry) -> None:
    register_builtin_strategies(registry)


__all__ = [
    "AmazonStrategy",
    "BestBuyStrategy",
    "NikeStrategy",
    "SelectorStrategy",
    "Selectors",
    "ShopifyStrategy",
    "SignInStrategy",
    "TargetStrategy",
    "WalmartStrategy",
    "register_builtin_strategies",
]
