"""Plugin discovery and loading.

Discovery: entry_points (pip-installed) via pluggy setuptools entrypoints,
plus local directory discovery of single-file plugins.
Capability: contributing rule factories through ``register_rules``.
"""

from __future__ import annotations

import importlib.util
import inspect
import logging
import sys
from pathlib import Path

import pluggy

from valchain.config.models import PluginsConfig
from valchain.registry.factories import RuleFactory
from valchain.registry.hookspecs import ValchainHookSpec
from valchain.registry.registry import RuleRegistry

PROJECT_NAME = "valchain"
ENTRY_POINT_GROUP = "valchain.rules"

logger = logging.getLogger(__name__)


class PluginManager:
    """Manages plugin discovery and feeds contributed rules into a registry."""

    def __init__(self, registry: RuleRegistry | None = None) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(ValchainHookSpec)
        self._registry = registry if registry is not None else RuleRegistry()
        self._loaded: bool = False

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    def discover_and_load(
        self,
        *,
        entry_points: bool = True,
        local_dir: Path | None = None,
    ) -> list[str]:
        """Discover plugins and load their rules into the registry.

        Uses pluggy's setuptools entry_point discovery for the
        ``valchain.rules`` group, then scans *local_dir* for single-file
        Python plugins.

        Returns a list of loaded plugin names.
        """
        if entry_points:
            self._pm.load_setuptools_entrypoints(ENTRY_POINT_GROUP)
            self._normalize_plugin_instances()
        if local_dir is not None:
            self._discover_local(local_dir)
        for plugin in self._pm.get_plugins():
            plugin_name = self._pm.get_name(plugin) or plugin.__class__.__name__
            self._register_plugin_rules(plugin, plugin_name)
        self._loaded = True
        return self.list_plugin_names()

    def register_plugin(self, plugin: object, name: str | None = None) -> None:
        """Register a plugin instance directly (e.g. the builtin rules).

        Rules of plugins registered after :meth:`discover_and_load` are
        loaded immediately.
        """
        resolved_name = name or plugin.__class__.__name__
        self._pm.register(plugin, name=resolved_name)
        if self._loaded:
            self._register_plugin_rules(plugin, resolved_name)
        logger.debug("Registered plugin: %s", resolved_name)

    def unregister(self, plugin: object) -> None:
        self._pm.unregister(plugin)

    @property
    def is_loaded(self) -> bool:
        """Whether discover_and_load() has been called."""
        return self._loaded

    @property
    def hook(self) -> pluggy.HookRelay:
        return self._pm.hook

    def get_plugins(self) -> list[object]:
        return list(self._pm.get_plugins())

    def list_plugin_names(self) -> list[str]:
        return [self._pm.get_name(p) or p.__class__.__name__ for p in self._pm.get_plugins()]

    # ------------------------------------------------------------------
    # Local directory discovery
    # ------------------------------------------------------------------

    def _discover_local(self, local_dir: Path) -> None:
        """Scan *local_dir* for single-file Python plugins.

        Each ``*.py`` file (excluding ``_``-prefixed names) is loaded as a
        module. Classes defined in it that carry hookimpl-decorated methods
        are instantiated and registered.

        Errors are logged as warnings but never raised.
        """
        if not local_dir.is_dir():
            return

        for py_file in sorted(local_dir.glob("*.py")):
            if py_file.name.startswith("_"):
                continue
            module_name = f"valchain_local_plugin_{py_file.stem}"
            try:
                spec = importlib.util.spec_from_file_location(module_name, py_file)
                if spec is None or spec.loader is None:
                    logger.warning("Could not create module spec for %s", py_file)
                    continue
                module = importlib.util.module_from_spec(spec)
                sys.modules[module_name] = module
                spec.loader.exec_module(module)
            except Exception:
                logger.warning("Failed to load local plugin %s", py_file, exc_info=True)
                sys.modules.pop(module_name, None)
                continue

            for _attr_name, obj in inspect.getmembers(module, inspect.isclass):
                if obj.__module__ != module_name:
                    continue
                if not self._has_hook_impls(obj):
                    continue
                try:
                    self._pm.register(obj(), name=f"{module_name}.{obj.__name__}")
                    logger.debug("Loaded local plugin %s from %s", obj.__name__, py_file)
                except Exception:
                    logger.warning(
                        "Failed to instantiate plugin class %s from %s",
                        obj.__name__,
                        py_file,
                        exc_info=True,
                    )

    def _normalize_plugin_instances(self) -> None:
        """Replace registered plugin classes with instantiated objects.

        Entry-point loading may register a plugin class directly, which
        leaves ``self`` unbound at hook call time.
        """
        for plugin in list(self._pm.get_plugins()):
            if not inspect.isclass(plugin):
                continue
            if not self._has_hook_impls(plugin):
                continue

            plugin_name = self._pm.get_name(plugin) or plugin.__name__
            self._pm.unregister(plugin)

            try:
                instance = plugin()
            except Exception:
                logger.warning(
                    "Failed to instantiate entry-point plugin %s",
                    plugin_name,
                    exc_info=True,
                )
                continue

            self._pm.register(instance, name=plugin_name)
            logger.debug("Instantiated entry-point plugin: %s", plugin_name)

    # ------------------------------------------------------------------
    # Rule collection
    # ------------------------------------------------------------------

    def _register_plugin_rules(self, plugin: object, plugin_name: str) -> None:
        """Register the rule factories exposed by a single plugin."""
        hook = getattr(plugin, "register_rules", None)
        if hook is None:
            return

        try:
            factories = hook()
        except Exception:
            logger.warning("Failed to collect rules from plugin %s", plugin_name, exc_info=True)
            return

        if factories is None:
            return
        if not isinstance(factories, list | tuple):
            logger.warning("Plugin %s returned a non-list rule registration", plugin_name)
            return

        count = 0
        for factory in factories:
            if not isinstance(factory, RuleFactory):
                logger.warning(
                    "Skipping non-factory entry %r from plugin %s",
                    factory,
                    plugin_name,
                )
                continue
            try:
                self._registry.register(factory)
            except (TypeError, ValueError):
                logger.warning(
                    "Skipping rule registration %r from plugin %s",
                    factory.name,
                    plugin_name,
                    exc_info=True,
                )
                continue
            count += 1
        logger.debug("Plugin %s contributed %d rules", plugin_name, count)

    @staticmethod
    def _has_hook_impls(cls: type) -> bool:
        """Check whether *cls* has any methods decorated with ``@hookimpl``.

        Pluggy's ``HookimplMarker("valchain")`` sets a ``valchain_impl``
        attribute on decorated methods.
        """
        for name in dir(cls):
            if name.startswith("_"):
                continue
            method = getattr(cls, name, None)
            if callable(method) and getattr(method, f"{PROJECT_NAME}_impl", None):
                return True
        return False


def load_registry(config: PluginsConfig | None = None) -> RuleRegistry:
    """Build a registry with the builtin rules plus every discovered plugin.

    *config* is the ``[plugins]`` section; code defaults when omitted.
    """
    from valchain.registry.builtins.plugin import BuiltinRulesPlugin

    cfg = config or PluginsConfig()
    manager = PluginManager()
    manager.register_plugin(BuiltinRulesPlugin(), name="builtin")
    manager.discover_and_load(entry_points=cfg.entry_points, local_dir=cfg.local_dir)
    return manager.registry
