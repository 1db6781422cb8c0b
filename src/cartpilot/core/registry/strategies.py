"""Retailer key to site strategy resolution."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import structlog

from cartpilot.core.errors import ConfigurationError
from cartpilot.core.interfaces.strategy import SiteStrategy

if TYPE_CHECKING:
    from cartpilot.core.models.profile import CheckoutProfile
    from cartpilot.core.models.task import Task

logger = structlog.get_logger(__name__)


def normalize_key(retailer: str) -> str:
    """Canonical registry key for a retailer name."""
    return retailer.strip().lower()


class StrategyRegistry:
    """Maps retailer keys to strategy classes.

    Keys are case-insensitive. Unknown keys resolve to the default strategy
    so tasks for unlisted retailers are attempted best-effort.
    """

    def __init__(self, default: str | None = None) -> None:
        self._strategies: dict[str, type[SiteStrategy]] = {}
        self._aliases: dict[str, str] = {}
        self._default = normalize_key(default) if default else None

    def register(
        self,
        key: str,
        strategy_cls: type[SiteStrategy],
        *,
        aliases: Iterable[str] = (),
        default: bool = False,
    ) -> None:
        """
        Register a strategy class.

        Args:
            key: Retailer key, e.g. 'shopify'
            strategy_cls: SiteStrategy subclass
            aliases: Additional keys resolving to the same class
            default: Make this the fallback for unknown keys

        Raises:
            TypeError: If strategy_cls is not a SiteStrategy subclass
        """
        if not (isinstance(strategy_cls, type) and issubclass(strategy_cls, SiteStrategy)):
            raise TypeError(f"{strategy_cls!r} is not a SiteStrategy subclass")

        canonical = normalize_key(key)
        if not canonical:
            raise ValueError("Strategy key must not be empty")

        if canonical in self._strategies:
            logger.warning("Replacing registered strategy", key=canonical)
        self._strategies[canonical] = strategy_cls
        for alias in aliases:
            self._aliases[normalize_key(alias)] = canonical
        if default:
            self._default = canonical

        logger.debug("Registered strategy", key=canonical, strategy=strategy_cls.__name__)

    def unregister(self, key: str) -> bool:
        canonical = normalize_key(key)
        if self._strategies.pop(canonical, None) is None:
            return False
        self._aliases = {a: k for a, k in self._aliases.items() if k != canonical}
        if self._default == canonical:
            self._default = None
        return True

    def keys(self) -> list[str]:
        """Registered canonical keys, sorted."""
        return sorted(self._strategies)

    @property
    def default_key(self) -> str | None:
        return self._default

    def _lookup(self, retailer: str) -> str | None:
        key = normalize_key(retailer)
        if key in self._strategies:
            return key
        return self._aliases.get(key)

    def is_known(self, retailer: str) -> bool:
        """Check whether a retailer has its own strategy (no fallback)."""
        return self._lookup(retailer) is not None

    def resolve(self, retailer: str) -> type[SiteStrategy]:
        """
        Resolve the strategy class for a retailer.

        Raises:
            ConfigurationError: If the key is unknown and no default is set
        """
        key = self._lookup(retailer)
        if key is not None:
            return self._strategies[key]

        if self._default is None or self._default not in self._strategies:
            raise ConfigurationError(
                f"No strategy registered for retailer '{retailer}' and no default configured"
            )

        logger.warning(
            "Unknown retailer, using default strategy",
            retailer=retailer,
            default=self._default,
        )
        return self._strategies[self._default]

    def create(
        self,
        retailer: str,
        page: Any,
        task: Task,
        profile: CheckoutProfile | None = None,
    ) -> SiteStrategy:
        """Instantiate the strategy for a retailer bound to a page."""
        strategy_cls = self.resolve(retailer)
        return strategy_cls(page, task, profile)

    def __contains__(self, retailer: object) -> bool:
        return isinstance(retailer, str) and self.is_known(retailer)

    def __len__(self) -> int:
        return len(self._strategies)


def create_default_registry() -> StrategyRegistry:
    """Build a registry holding the built-in strategies, Shopify as default."""
    from cartpilot.plugins.strategies import register_builtin_strategies

    registry = StrategyRegistry()
    register_builtin_strategies(registry)
    return registry
