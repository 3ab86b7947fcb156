# src/flowtester/plugins/discovery.py
"""Addon discovery by folder scanning.

Scans addon directories for classes that:
1. Inherit from BaseAddonAction
2. Have a ``name`` class attribute
3. Are not abstract

Discovered classes are instantiated with no arguments.
"""

import importlib
import importlib.util
import inspect
import sys
from pathlib import Path
from types import ModuleType
from typing import Any

from flowtester.core.logging import get_logger

slog = get_logger(__name__)

# Directories under ``flowtester/plugins`` scanned for built-in addons.
# Non-recursive: subdirectories must be listed explicitly.
ADDON_DIRECTORIES: tuple[str, ...] = ("addons",)

EXCLUDED_FILES: frozenset[str] = frozenset({"__init__.py"})


def discover_addons_in_directory(directory: Path, base_class: type, package: str | None = None) -> list[type]:
    """Discover addon classes in a directory.

    Args:
        directory: Path to scan for addon files
        base_class: Base class that addons must inherit from
        package: Dotted package name of ``directory`` when it is importable.
            Its modules are then imported normally, so each class exists once.

    Returns:
        Discovered addon classes, in file then definition order
    """
    discovered: list[type] = []

    if not directory.exists():
        slog.warning("addon_directory_missing", directory=str(directory))
        return discovered

    for py_file in sorted(directory.glob("*.py")):
        if py_file.name in EXCLUDED_FILES:
            continue
        # Built-in addons are our code: import errors propagate.
        discovered.extend(_discover_in_file(py_file, base_class, package))

    return discovered


def _discover_in_file(py_file: Path, base_class: type, package: str | None = None) -> list[type]:
    module = importlib.import_module(f"{package}.{py_file.stem}") if package else _load_file(py_file)

    discovered: list[type] = []
    # Module namespace preserves definition order
    for class_name, obj in list(vars(module).items()):
        if not inspect.isclass(obj) or obj.__module__ != module.__name__:
            continue
        if not issubclass(obj, base_class) or obj is base_class:
            continue
        if inspect.isabstract(obj):
            continue
        if not getattr(obj, "name", None):
            slog.warning(
                "addon_without_name",
                class_name=class_name,
                file=str(py_file),
            )
            continue
        discovered.append(obj)

    return discovered


def _load_file(py_file: Path) -> ModuleType:
    module_name = f"flowtester.plugins._discovered.{py_file.parent.name}.{py_file.stem}"
    spec = importlib.util.spec_from_file_location(module_name, py_file)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load addon module from {py_file}")

    module = importlib.util.module_from_spec(spec)
    # dataclasses look up cls.__module__ in sys.modules while the module executes
    sys.modules[module.__name__] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        sys.modules.pop(module.__name__, None)
        raise
    return module


def discover_builtin_addons() -> list[Any]:
    """Instantiate every built-in addon.

    Raises:
        ValueError: If two built-in addons share a name
    """
    from flowtester.plugins.base import BaseAddonAction

    plugins_root = Path(__file__).parent
    instances: list[Any] = []
    seen: dict[str, type] = {}

    for dir_name in ADDON_DIRECTORIES:
        for cls in discover_addons_in_directory(
            plugins_root / dir_name, BaseAddonAction, package=f"{__package__}.{dir_name}"
        ):
            addon_name: str = cls.name  # type: ignore[attr-defined]
            if addon_name in seen:
                raise ValueError(
                    f"Duplicate addon name '{addon_name}': found in both {seen[addon_name].__module__} and {cls.__module__}"
                )
            seen[addon_name] = cls
            instances.append(cls())

    return instances


def create_dynamic_hookimpl(addons: list[Any]) -> object:
    """Wrap addon instances in an object implementing ``flowtester_get_actions``."""
    from flowtester.plugins.hookspecs import hookimpl

    class DynamicHookImpl:
        """Dynamically generated hook implementer."""

        @hookimpl
        def flowtester_get_actions(self) -> list[Any]:
            return list(addons)

    return DynamicHookImpl()
