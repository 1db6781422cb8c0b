"""Strategy plugin loading on top of pluggy."""

from __future__ import annotations

import importlib.util
import sys
from typing import TYPE_CHECKING, Any

import pluggy
import structlog

from cartpilot.core.registry.hookspecs import CartPilotSpecs
from cartpilot.core.registry.strategies import StrategyRegistry

if TYPE_CHECKING:
    from pathlib import Path
    from types import ModuleType

    from cartpilot.core.engine.session import SessionUpdate

logger = structlog.get_logger(__name__)


class PluginManager:
    """
    Owns the pluggy manager and the strategy registry plugins fill.

    `register_strategies` is called historically, so a plugin registered at
    any point, built-in or loaded from a file, receives the same registry.
    """

    PROJECT_NAME = "cartpilot"

    def __init__(self, strategies: StrategyRegistry | None = None) -> None:
        self._pm = pluggy.PluginManager(self.PROJECT_NAME)
        self._pm.add_hookspecs(CartPilotSpecs)
        self._plugins: dict[str, Any] = {}

        self.strategies = strategies if strategies is not None else StrategyRegistry()
        self._pm.hook.register_strategies.call_historic(kwargs={"registry": self.strategies})

    @property
    def hook(self) -> Any:
        return self._pm.hook

    def register(self, plugin: Any, name: str | None = None) -> None:
        """
        Register a plugin module or object.

        Args:
            plugin: Object carrying @hookimpl functions
            name: Registration name, defaults to the module or class name
        """
        name = name or getattr(plugin, "__name__", type(plugin).__name__)
        try:
            self._pm.register(plugin, name=name)
        except Exception as e:
            logger.error("Plugin rejected", plugin=name, error=str(e))
            raise
        self._plugins[name] = plugin
        logger.info("Plugin registered", plugin=name)

    def unregister(self, name: str) -> None:
        plugin = self._plugins.pop(name, None)
        if plugin is None:
            return
        self._pm.unregister(plugin)
        logger.info("Plugin unregistered", plugin=name)

    def is_registered(self, name: str) -> bool:
        return name in self._plugins

    def list_plugins(self) -> list[str]:
        return list(self._plugins)

    def load_builtin_plugins(self) -> None:
        """Register the strategies shipped with cartpilot."""
        from cartpilot.plugins import strategies

        self.register(strategies, name="builtin-strategies")

    def load_external_plugins(self, plugin_dir: Path) -> None:
        """
        Load every public ``*.py`` file in a directory as a plugin.

        A file that fails to import or register is logged and skipped.
        """
        if not plugin_dir.is_dir():
            logger.debug("No plugin directory", path=str(plugin_dir))
            return

        for path in sorted(plugin_dir.glob("*.py")):
            if path.name.startswith("_"):
                continue
            try:
                self.load_plugin_from_file(path)
            except Exception as e:
                logger.warning("Skipping plugin", path=str(path), error=str(e))

    def load_plugin_from_file(self, path: Path) -> ModuleType:
        """Import one plugin file and register it under its stem."""
        module_name = f"cartpilot_plugin_{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot load plugin from {path}")

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
            self.register(module, name=path.stem)
        except Exception:
            sys.modules.pop(module_name, None)
            raise
        return module

    def notify_session_update(self, update: SessionUpdate) -> None:
        """Pass a session update to plugins; a failing plugin is logged only."""
        try:
            self._pm.hook.on_session_update(update=update)
        except Exception as e:
            logger.warning("Plugin session hook failed", task_id=update.task_id, error=str(e))
