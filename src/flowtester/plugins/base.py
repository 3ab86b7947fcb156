# src/flowtester/plugins/base.py
"""Base class and protocol for addon actions.

An addon action extends the built-in action kinds. Scripts reference it by
``name`` in the ``kind`` field. The executor calls ``execute`` with an
``AddonContext``; a return value of False (or an exception) counts as a
failed check when the action performs one, anything else counts as a pass.

Lifecycle hooks run once per test-case run for every addon the run's
actions reference.

Example:
    class CountingAction(BaseAddonAction):
        name = "addon:count"

        def execute(self, ctx: AddonContext) -> bool:
            store = ctx.host.context_store("global", ctx.node_id)
            store.set("count", (store.get("count") or 0) + 1)
            return True
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from flowtester.contracts.actions import Action
from flowtester.contracts.runtime import HostRuntime, Message
from flowtester.core.logging import get_logger


@dataclass(frozen=True)
class AddonContext:
    """What an addon sees when it runs.

    Attributes:
        host: The host runtime
        action: The action being executed (None in lifecycle hooks)
        node_id: Node the action is bound to, if any
        msg: Message in scope, if any
        log: Callable writing a line to the run log
    """

    host: HostRuntime
    action: Action | None = None
    node_id: str | None = None
    msg: Message | None = None
    log: Callable[[str], None] | None = field(default=None, repr=False)

    def write_log(self, text: str) -> None:
        if self.log is not None:
            self.log(text)


@runtime_checkable
class AddonAction(Protocol):
    """Structural contract for addon actions."""

    name: str

    def execute(self, ctx: AddonContext) -> bool | None | Awaitable[bool | None]: ...

    def on_test_start(self, ctx: AddonContext) -> None | Awaitable[None]: ...

    def on_test_end(self, ctx: AddonContext) -> None | Awaitable[None]: ...


class BaseAddonAction(ABC):
    """Convenience base for addon actions discovered from ``plugins/addons``.

    Subclasses set ``name`` and implement ``execute``. The lifecycle hooks
    default to no-ops.
    """

    name: str

    def __init__(self) -> None:
        self._log = get_logger(f"flowtester.addons.{self.name}")

    @abstractmethod
    def execute(self, ctx: AddonContext) -> bool | None | Awaitable[bool | None]:
        """Run the action against ``ctx``."""
        ...

    def on_test_start(self, ctx: AddonContext) -> None | Awaitable[None]:
        return None

    def on_test_end(self, ctx: AddonContext) -> None | Awaitable[None]:
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
