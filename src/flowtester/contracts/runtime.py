"""Boundary between the engine and the host dataflow runtime.

The engine never imports a concrete runtime. It depends on ``HostRuntime``
and hands the runtime a ``RuntimeHooks`` bundle with three capability slots.
``flowtester.testing.graph.InMemoryGraph`` is the reference implementation
used by the test suite and by ``flowtester serve``.

Hook contract:
    on_receive(event)      Awaited by the runtime before the node handles
                           the message.
    on_pre_route(event)    Awaited before a node's output is routed onward.
                           Returning False tells the runtime to skip its
                           default routing for that message.
    on_send(events)        Awaited once per emission batch. Returns as soon
                           as follow-up work is scheduled.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Literal, Protocol

Message = dict[str, Any]
ContextScope = Literal["flow", "global"]


@dataclass(frozen=True)
class ReceiveEvent:
    """A message delivered to ``node_id``."""

    node_id: str
    msg: Message


@dataclass(frozen=True)
class RouteEvent:
    """A message about to be routed onward from ``source_id``."""

    source_id: str
    msg: Message


@dataclass(frozen=True)
class SendEvent:
    """A message emitted by ``source_id`` toward ``destination_id``."""

    source_id: str
    msg: Message
    destination_id: str | None = None


ReceiveHook = Callable[[ReceiveEvent], Awaitable[None]]
PreRouteHook = Callable[[RouteEvent], Awaitable[bool]]
SendHook = Callable[[Sequence[SendEvent]], Awaitable[None]]


@dataclass(frozen=True)
class RuntimeHooks:
    """The three lifecycle callbacks a runtime invokes.

    Any slot may be None; the runtime then behaves as if no hook existed.
    """

    on_receive: ReceiveHook | None = None
    on_pre_route: PreRouteHook | None = None
    on_send: SendHook | None = None


class RuntimeNode(Protocol):
    """A node the engine can inject messages into."""

    @property
    def id(self) -> str: ...

    def receive(self, msg: Message) -> None:
        """Schedule ``msg`` for delivery to this node. Must not block."""
        ...


class ContextStore(Protocol):
    """Key/value context storage, optionally partitioned by store name."""

    def get(self, key: str, store: str | None = None) -> Any: ...

    def set(self, key: str, value: Any, store: str | None = None) -> None: ...


class HostRuntime(Protocol):
    """What the engine needs from the dataflow runtime."""

    def register_hooks(self, name: str, hooks: RuntimeHooks) -> None:
        """Install ``hooks`` under ``name``, replacing any previous bundle."""
        ...

    def unregister_hooks(self, name: str) -> None:
        """Remove the bundle installed under ``name``. Unknown names are ignored."""
        ...

    def get_node(self, node_id: str) -> RuntimeNode | None: ...

    def context_store(self, scope: ContextScope, node_id: str | None) -> ContextStore:
        """Return the flow- or global-scoped store visible from ``node_id``."""
        ...

    def on_plugin_added(self, callback: Callable[[object], None]) -> None:
        """Subscribe to plugins registered with the runtime after startup."""
        ...
