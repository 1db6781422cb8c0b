"""Tests for the pluggy-based PluginManager."""

from __future__ import annotations

import textwrap

import pytest

from cartpilot.core.engine.session import SessionState, SessionUpdate
from cartpilot.core.registry.hookspecs import hookimpl
from cartpilot.core.registry.manager import PluginManager
from cartpilot.plugins.strategies import ShopifyStrategy

PLUGIN_SOURCE = textwrap.dedent(
    '''
    """Boutique strategy plugin."""

    from cartpilot.core.registry.hookspecs import hookimpl
    from cartpilot.plugins.strategies.shopify import ShopifyStrategy


    class BoutiqueStrategy(ShopifyStrategy):
        name = "boutique"


    @hookimpl
    def register_strategies(registry):
        registry.register("boutique", BoutiqueStrategy, aliases=("boutique.example",))
    '''
)


class TestBuiltins:
    """Tests for built-in plugin loading."""

    def test_builtin_strategies_register_through_hook(self):
        manager = PluginManager()

        manager.load_builtin_plugins()

        assert manager.is_registered("builtin-strategies")
        assert manager.strategies.default_key == "shopify"
        assert manager.strategies.resolve("unknown-shop") is ShopifyStrategy

    def test_registry_is_shared(self):
        from cartpilot.core.registry.strategies import StrategyRegistry

        registry = StrategyRegistry()
        manager = PluginManager(strategies=registry)
        manager.load_builtin_plugins()

        assert manager.strategies is registry
        assert "amazon" in registry


class TestExternalPlugins:
    """Tests for loading plugins from a directory."""

    def test_plugin_registered_after_startup_gets_registry(self, tmp_path):
        (tmp_path / "boutique.py").write_text(PLUGIN_SOURCE)
        manager = PluginManager()

        manager.load_external_plugins(tmp_path)

        assert manager.is_registered("boutique")
        assert manager.strategies.resolve("boutique.example").name == "boutique"

    def test_private_files_are_skipped(self, tmp_path):
        (tmp_path / "_helpers.py").write_text(PLUGIN_SOURCE)
        manager = PluginManager()

        manager.load_external_plugins(tmp_path)

        assert manager.list_plugins() == []

    def test_broken_plugin_is_skipped(self, tmp_path):
        (tmp_path / "broken.py").write_text("raise RuntimeError('nope')\n")
        (tmp_path / "boutique.py").write_text(PLUGIN_SOURCE)
        manager = PluginManager()

        manager.load_external_plugins(tmp_path)

        assert manager.list_plugins() == ["boutique"]

    def test_missing_directory(self, tmp_path):
        manager = PluginManager()

        manager.load_external_plugins(tmp_path / "nope")

        assert manager.list_plugins() == []

    def test_load_single_file_raises_on_error(self, tmp_path):
        path = tmp_path / "broken.py"
        path.write_text("raise RuntimeError('nope')\n")
        manager = PluginManager()

        with pytest.raises(RuntimeError):
            manager.load_plugin_from_file(path)


class TestSessionHooks:
    """Tests for session update notification."""

    def test_notify_and_unregister(self):
        seen = []

        class Listener:
            @hookimpl
            def on_session_update(self, update):
                seen.append(update.state)

        manager = PluginManager()
        manager.register(Listener(), name="listener")

        manager.notify_session_update(SessionUpdate("t1", SessionState.MONITORING))
        manager.unregister("listener")
        manager.notify_session_update(SessionUpdate("t1", SessionState.CARTING))

        assert seen == [SessionState.MONITORING]
        assert not manager.is_registered("listener")
