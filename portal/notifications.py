from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from enum import Enum

from portal.events import EventBus

logger = logging.getLogger(__name__)


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True, slots=True)
class Notification:
    """A user-visible message; ``duration`` is a display hint in seconds."""

    id: int
    message: str
    level: NotificationLevel
    duration: float = 4.0


class NotificationCenter:
    """Collect user-visible messages and broadcast them on an event bus."""

    def __init__(self, bus: EventBus[Notification] | None = None) -> None:
        self.bus: EventBus[Notification] = bus or EventBus("notifications")
        self._active: list[Notification] = []
        self._ids = itertools.count(1)

    @property
    def active(self) -> tuple[Notification, ...]:
        return tuple(self._active)

    def show(
        self,
        message: str,
        level: NotificationLevel = NotificationLevel.INFO,
        duration: float = 4.0,
    ) -> Notification:
        notification = Notification(next(self._ids), message, level, duration)
        self._active.append(notification)
        logger.debug("Notification %s: %s", level.value, message)
        self.bus.publish(notification)
        return notification

    def success(self, message: str, duration: float = 4.0) -> Notification:
        return self.show(message, NotificationLevel.SUCCESS, duration)

    def error(self, message: str, duration: float = 6.0) -> Notification:
        return self.show(message, NotificationLevel.ERROR, duration)

    def warning(self, message: str, duration: float = 4.0) -> Notification:
        return self.show(message, NotificationLevel.WARNING, duration)

    def info(self, message: str, duration: float = 4.0) -> Notification:
        return self.show(message, NotificationLevel.INFO, duration)

    def remove(self, notification_id: int) -> None:
        self._active = [item for item in self._active if item.id != notification_id]

    def clear(self) -> None:
        self._active.clear()
