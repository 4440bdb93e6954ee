"""
In-process publish/subscribe.

Listeners are called synchronously in registration order. A listener
that raises is logged and skipped; the remaining listeners still run and
the publisher never sees the error.
"""

from typing import Callable, Generic, List, TypeVar

from dispute_engine.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]
Unsubscribe = Callable[[], None]


class EventBus(Generic[T]):
    """Synchronous fan-out with per-listener failure isolation."""

    def __init__(self, name: str):
        self.name = name
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, item: T) -> int:
        """Deliver ``item`` to every listener; returns the number that failed."""
        failures = 0
        for listener in list(self._listeners):
            try:
                listener(item)
            except Exception as e:
                failures += 1
                logger.error(
                    "Listener failed",
                    extra={
                        "bus": self.name,
                        "listener": getattr(listener, "__qualname__", repr(listener)),
                        "error": str(e),
                    },
                )
        return failures

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)
