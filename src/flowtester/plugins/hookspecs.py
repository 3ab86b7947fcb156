# src/flowtester/plugins/hookspecs.py
"""pluggy hook specifications for flowtester addons.

Addon packages implement these hooks to contribute action kinds. The addon
registry calls them whenever a plugin is registered.

Usage (implementing an addon plugin):
    from flowtester.plugins.hookspecs import hookimpl

    class MyAddons:
        @hookimpl  # NOT @hookspec - that's for defining specs
        def flowtester_get_actions(self):
            return [CountingAction()]

Installed packages are picked up through the ``flowtester`` entry-point
group; plugins registered with the host runtime after startup reach the
registry through ``AddonRegistry.attach``.
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from flowtester.plugins.base import AddonAction

# Project name for pluggy and the entry-point group
PROJECT_NAME = "flowtester"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)

hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class FlowTesterAddonSpec:
    """Hook specifications for addon action providers."""

    @hookspec
    def flowtester_get_actions(self) -> list["AddonAction"]:  # type: ignore[empty-body]
        """Return addon action instances.

        Returns:
            List of addon actions, each with a unique ``name``
        """
