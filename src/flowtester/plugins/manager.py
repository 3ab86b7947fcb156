# src/flowtester/plugins/manager.py
"""Addon registry: discovery, registration and lookup of addon actions.

Uses pluggy for hook-based registration. Three sources feed the registry:

- built-in addons under ``flowtester/plugins/addons``
- installed packages exposing the ``flowtester`` entry-point group
- plugins the host runtime announces after startup (``attach``)
"""

from typing import Any

import pluggy

from flowtester.contracts.runtime import HostRuntime
from flowtester.core.logging import get_logger
from flowtester.plugins.base import AddonAction
from flowtester.plugins.hookspecs import PROJECT_NAME, FlowTesterAddonSpec

slog = get_logger(__name__)


class AddonRegistry:
    """Name-indexed view over every registered addon action.

    Usage:
        registry = AddonRegistry()
        registry.register_builtin_addons()
        registry.register(MyAddons())

        action = registry.get_action("addon:log-value")
    """

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(FlowTesterAddonSpec)
        self._actions: dict[str, AddonAction] = {}

    def register_builtin_addons(self) -> None:
        """Discover and register the addons shipped with flowtester."""
        from flowtester.plugins.discovery import create_dynamic_hookimpl, discover_builtin_addons

        self.register(create_dynamic_hookimpl(discover_builtin_addons()))

    def load_entrypoint_addons(self) -> int:
        """Register plugins from the ``flowtester`` entry-point group.

        Returns:
            Number of plugins loaded
        """
        count = self._pm.load_setuptools_entrypoints(PROJECT_NAME)
        if count:
            self._refresh_cache()
            slog.info("entrypoint_addons_loaded", count=count)
        return count

    def register(self, plugin: Any) -> None:
        """Register a plugin object implementing ``flowtester_get_actions``.

        Raises:
            ValueError: If the plugin contributes a name that is already
                registered (the plugin is rolled back)
        """
        self._pm.register(plugin)
        try:
            self._refresh_cache()
        except ValueError:
            self._pm.unregister(plugin)
            raise

    def unregister(self, plugin: Any) -> None:
        self._pm.unregister(plugin)
        self._refresh_cache()

    def attach(self, host: HostRuntime) -> None:
        """Pick up plugins the host runtime registers after startup."""
        host.on_plugin_added(self._on_plugin_added)

    def _on_plugin_added(self, plugin: object) -> None:
        if not hasattr(plugin, "flowtester_get_actions"):
            slog.debug("plugin_ignored", plugin=type(plugin).__name__)
            return
        if self._pm.is_registered(plugin):
            return
        try:
            self.register(plugin)
        except ValueError as e:
            slog.error("addon_rejected", plugin=type(plugin).__name__, error=str(e))
            return
        slog.info("addon_plugin_added", plugin=type(plugin).__name__, actions=self.names())

    def _refresh_cache(self) -> None:
        """Rebuild the name index from every registered plugin.

        Raises:
            ValueError: If two addon actions share a name
        """
        actions: dict[str, AddonAction] = {}
        for contributed in self._pm.hook.flowtester_get_actions():
            for action in contributed:
                name = action.name
                if name in actions:
                    raise ValueError(f"Duplicate addon action name: '{name}'. Already registered by {type(actions[name]).__name__}")
                actions[name] = action
        self._actions = actions

    # === Lookup ===

    def get_action(self, name: str) -> AddonAction | None:
        return self._actions.get(name)

    def get_actions(self) -> list[AddonAction]:
        return list(self._actions.values())

    def names(self) -> list[str]:
        return list(self._actions)

    def __contains__(self, name: object) -> bool:
        return name in self._actions
