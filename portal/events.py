"""Synchronous publish/subscribe used for notifications and auth changes."""

from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E")

Handler = Callable[[E], None]


class EventBus(Generic[E]):
    """Deliver events to subscribers synchronously, in registration order.

    A handler that raises is logged and does not prevent delivery to the
    handlers registered after it.
    """

    def __init__(self, name: str = "events") -> None:
        self.name = name
        self._handlers: list[Handler[E]] = []

    def subscribe(self, handler: Handler[E]) -> Callable[[], None]:
        """Register ``handler`` and return a function that unregisters it."""

        self._handlers.append(handler)

        def unsubscribe() -> None:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass

        return unsubscribe

    def publish(self, event: E) -> None:
        for handler in tuple(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("Subscriber of %s failed handling %r", self.name, event)

    def clear(self) -> None:
        self._handlers.clear()

    def __len__(self) -> int:
        return len(self._handlers)
