from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Literal

logger = logging.getLogger(__name__)

NotificationVariant = Literal["default", "destructive"]


@dataclass(frozen=True)
class Notification:
    """A short user-facing notice, rendered by the client as a toast."""

    title: str
    description: str = ""
    variant: NotificationVariant = "default"


NotifyCallback = Callable[[Notification], None]


class NotificationLog:
    """Keeps emitted notifications in order and forwards them to an optional listener."""

    def __init__(self, listener: NotifyCallback | None = None, max_items: int = 50):
        self._listener = listener
        self._max_items = max_items
        self._items: list[Notification] = []

    def emit(self, title: str, description: str = "", variant: NotificationVariant = "default") -> Notification:
        notification = Notification(title=title, description=description, variant=variant)
        self.publish(notification)
        return notification

    def publish(self, notification: Notification) -> None:
        logger.debug("notification title=%s variant=%s", notification.title, notification.variant)
        self._items.append(notification)
        if len(self._items) > self._max_items:
            del self._items[: -self._max_items]
        if self._listener is not None:
            self._listener(notification)

    def items(self) -> list[Notification]:
        return list(self._items)

    def drain(self) -> list[Notification]:
        items, self._items = self._items, []
        return items
