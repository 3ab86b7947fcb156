"""Event bus for real-time run notifications.

A small synchronous bus that decouples the engine (which emits log lines,
check outcomes, overflow notices and run completions) from whatever presents
them: the websocket hub in ``flowtester.server.app``, the CLI, or a test.
"""

from collections.abc import Callable
from typing import Any, Protocol, TypeVar

T = TypeVar("T")


class EventBusProtocol(Protocol):
    """Interface shared by EventBus and NullEventBus."""

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None: ...

    def unsubscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None: ...

    def emit(self, event: T) -> None: ...


class EventBus:
    """Synchronous event bus keyed by event class.

    Handlers run in subscription order on the emitting call stack. Handler
    exceptions propagate; subscribers are our own code.

    Example:
        bus = EventBus()
        bus.subscribe(CheckReported, lambda e: print(e.check.result))
        bus.emit(CheckReported(check=CheckResult(0, "s1", "t1", True)))
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Callable[[Any], None]]] = {}

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Subscribe ``handler`` to events of exactly ``event_type``."""
        self._subscribers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Remove a handler. Unknown handlers are ignored."""
        handlers = self._subscribers.get(event_type)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def emit(self, event: T) -> None:
        """Dispatch ``event`` to its subscribers.

        Events with no subscribers are dropped silently.
        """
        for handler in list(self._subscribers.get(type(event), [])):
            handler(event)


class NullEventBus:
    """No-op bus for library use without any presenter attached.

    Deliberately not an EventBus subclass: subscribing to it is a no-op, and
    inheritance would hide a subscriber that expects callbacks.
    """

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        pass

    def unsubscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        pass

    def emit(self, event: T) -> None:
        pass
