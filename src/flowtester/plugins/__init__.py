# src/flowtester/plugins/__init__.py
"""Addon action plugins.

Addons extend the built-in action kinds and are registered through pluggy.
"""

from flowtester.plugins.base import AddonAction, AddonContext, BaseAddonAction
from flowtester.plugins.hookspecs import hookimpl
from flowtester.plugins.manager import AddonRegistry

__all__ = [
    "AddonAction",
    "AddonContext",
    "AddonRegistry",
    "BaseAddonAction",
    "hookimpl",
]
