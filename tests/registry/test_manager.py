"""Tests for PluginManager rule discovery and loading."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pluggy
import pytest

from valchain.config.models import PluginsConfig
from valchain.domain.types import RuleCategory
from valchain.registry.builtins.plugin import BuiltinRulesPlugin
from valchain.registry.factories import RuleFactory
from valchain.registry.manager import PluginManager, load_registry
from valchain.registry.registry import RuleRegistry

hookimpl = pluggy.HookimplMarker("valchain")


# ---------------------------------------------------------------------------
# Fake plugins for testing
# ---------------------------------------------------------------------------


def _factory(name: str) -> RuleFactory:
    return RuleFactory(
        name=name,
        category=RuleCategory.STANDARD,
        impl=lambda: lambda value: value == name,
        code=f"not_{name}",
    )


class GreetingRulesPlugin:
    @hookimpl
    def register_rules(self) -> list[RuleFactory]:
        return [_factory("hello"), _factory("goodbye")]


class BrokenPlugin:
    @hookimpl
    def register_rules(self) -> list[RuleFactory]:
        msg = "plugin exploded"
        raise RuntimeError(msg)


class NotAListPlugin:
    @hookimpl
    def register_rules(self) -> Any:
        return _factory("single")


class MixedPlugin:
    @hookimpl
    def register_rules(self) -> list[Any]:
        return ["not a factory", _factory("kept")]


_LOCAL_PLUGIN_SRC = """\
import pluggy

from valchain.domain.types import RuleCategory
from valchain.registry.factories import RuleFactory

hookimpl = pluggy.HookimplMarker("valchain")


def _even():
    return lambda value: value % 2 == 0


class EvenRulesPlugin:
    \"\"\"Contributes an 'even' rule.\"\"\"

    @hookimpl
    def register_rules(self):
        return [RuleFactory(name="even", category=RuleCategory.STANDARD, impl=_even)]
"""

_SYNTAX_ERROR_SRC = """\
def broken(
    # missing closing paren and colon
"""

_NO_HOOKS_SRC = """\
class PlainClass:
    def hello(self) -> str:
        return "world"
"""


class TestPluginManager:
    def test_registers_plugin_rules(self) -> None:
        pm = PluginManager()
        pm.register_plugin(GreetingRulesPlugin())
        names = pm.discover_and_load(entry_points=False)
        assert names == ["GreetingRulesPlugin"]
        assert pm.is_loaded
        assert "hello" in pm.registry
        assert pm.registry.rule("goodbye").code == "not_goodbye"

    def test_uses_given_registry(self) -> None:
        registry = RuleRegistry()
        pm = PluginManager(registry)
        pm.register_plugin(GreetingRulesPlugin())
        pm.discover_and_load(entry_points=False)
        assert pm.registry is registry
        assert len(registry) == 2

    def test_late_registration_loads_immediately(self) -> None:
        pm = PluginManager()
        pm.discover_and_load(entry_points=False)
        assert len(pm.registry) == 0
        pm.register_plugin(GreetingRulesPlugin(), name="greetings")
        assert "hello" in pm.registry
        assert pm.list_plugin_names() == ["greetings"]

    def test_hook_relay(self) -> None:
        pm = PluginManager()
        pm.register_plugin(GreetingRulesPlugin())
        results = pm.hook.register_rules()
        assert [factory.name for factory in results[0]] == ["hello", "goodbye"]

    def test_unregister(self) -> None:
        pm = PluginManager()
        plugin = GreetingRulesPlugin()
        pm.register_plugin(plugin)
        pm.unregister(plugin)
        assert pm.get_plugins() == []

    def test_entry_point_discovery_without_plugins(self) -> None:
        pm = PluginManager()
        pm.discover_and_load()
        assert pm.is_loaded


class TestPluginFailures:
    def test_broken_plugin_is_a_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        pm = PluginManager()
        pm.register_plugin(BrokenPlugin())
        pm.register_plugin(GreetingRulesPlugin())
        with caplog.at_level(logging.WARNING):
            pm.discover_and_load(entry_points=False)
        assert "Failed to collect rules from plugin BrokenPlugin" in caplog.text
        assert "hello" in pm.registry

    def test_non_list_result_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        pm = PluginManager()
        pm.register_plugin(NotAListPlugin())
        with caplog.at_level(logging.WARNING):
            pm.discover_and_load(entry_points=False)
        assert "non-list" in caplog.text
        assert "single" not in pm.registry

    def test_non_factory_entries_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        pm = PluginManager()
        pm.register_plugin(MixedPlugin())
        with caplog.at_level(logging.WARNING):
            pm.discover_and_load(entry_points=False)
        assert "Skipping non-factory entry" in caplog.text
        assert "kept" in pm.registry

    def test_duplicate_rule_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        pm = PluginManager()
        pm.register_plugin(GreetingRulesPlugin(), name="first")
        pm.register_plugin(GreetingRulesPlugin(), name="second")
        with caplog.at_level(logging.WARNING):
            pm.discover_and_load(entry_points=False)
        assert "Skipping rule registration 'hello'" in caplog.text
        assert len(pm.registry) == 2


class TestLocalDiscovery:
    def test_discovers_local_plugin(self, tmp_path: Path) -> None:
        (tmp_path / "evens.py").write_text(_LOCAL_PLUGIN_SRC, encoding="utf-8")

        pm = PluginManager()
        names = pm.discover_and_load(entry_points=False, local_dir=tmp_path)

        assert "valchain_local_plugin_evens.EvenRulesPlugin" in names
        rule = pm.registry.rule("even")
        assert rule.check(4, None)  # type: ignore[arg-type]
        assert not rule.check(3, None)  # type: ignore[arg-type]

    def test_skips_bad_plugin_gracefully(self, tmp_path: Path) -> None:
        (tmp_path / "broken.py").write_text(_SYNTAX_ERROR_SRC, encoding="utf-8")
        (tmp_path / "evens.py").write_text(_LOCAL_PLUGIN_SRC, encoding="utf-8")

        pm = PluginManager()
        names = pm.discover_and_load(entry_points=False, local_dir=tmp_path)

        assert not any("broken" in name for name in names)
        assert "even" in pm.registry

    def test_ignores_classes_without_hooks(self, tmp_path: Path) -> None:
        (tmp_path / "plain.py").write_text(_NO_HOOKS_SRC, encoding="utf-8")

        pm = PluginManager()
        assert pm.discover_and_load(entry_points=False, local_dir=tmp_path) == []

    def test_skips_private_files(self, tmp_path: Path) -> None:
        (tmp_path / "_helpers.py").write_text(_LOCAL_PLUGIN_SRC, encoding="utf-8")

        pm = PluginManager()
        assert pm.discover_and_load(entry_points=False, local_dir=tmp_path) == []

    def test_missing_directory(self, tmp_path: Path) -> None:
        pm = PluginManager()
        assert pm.discover_and_load(entry_points=False, local_dir=tmp_path / "nope") == []


class TestLoadRegistry:
    def test_builtins_loaded(self) -> None:
        registry = load_registry(PluginsConfig(entry_points=False))
        assert "stringMin" in registry
        assert "trim" in registry
        assert len(registry) == len(BuiltinRulesPlugin().register_rules())

    def test_local_dir_from_config(self, tmp_path: Path) -> None:
        (tmp_path / "evens.py").write_text(_LOCAL_PLUGIN_SRC, encoding="utf-8")
        registry = load_registry(PluginsConfig(entry_points=False, local_dir=tmp_path))
        assert "even" in registry
        assert "required" in registry
