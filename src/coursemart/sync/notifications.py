"""Transient user-visible notifications."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from coursemart.domain import NotificationLevel, utc_now

if TYPE_CHECKING:
    from .bus import EventBus

GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again."


@dataclass(frozen=True, slots=True)
class Notification:
    level: NotificationLevel
    message: str
    created_at: datetime = field(default_factory=utc_now)


def describe_failure(error: BaseException | None, fallback: str = GENERIC_FAILURE_MESSAGE) -> str:
    """Return the most useful human-readable message carried by ``error``."""

    if error is None:
        return fallback
    message = getattr(error, "user_message", None)
    if isinstance(message, str) and message.strip():
        return message.strip()
    text = str(error).strip()
    return text or fallback


class Notifier:
    """Keeps a bounded history of notifications and publishes each one."""

    def __init__(
        self,
        bus: EventBus | None = None,
        *,
        history_size: int = 50,
        logger: logging.Logger | None = None,
    ) -> None:
        self._bus = bus
        self._history: deque[Notification] = deque(maxlen=max(1, history_size))
        self._logger = logger or logging.getLogger(__name__)

    def notify(self, level: NotificationLevel, message: str) -> Notification:
        from .events import NotificationRaised

        notification = Notification(level=level, message=message)
        self._history.append(notification)
        self._logger.debug("Notification (%s): %s", level.value, message)
        if self._bus is not None:
            self._bus.publish(NotificationRaised(notification))
        return notification

    def info(self, message: str) -> Notification:
        return self.notify(NotificationLevel.INFO, message)

    def success(self, message: str) -> Notification:
        return self.notify(NotificationLevel.SUCCESS, message)

    def warning(self, message: str) -> Notification:
        return self.notify(NotificationLevel.WARNING, message)

    def error(self, message: str) -> Notification:
        return self.notify(NotificationLevel.ERROR, message)

    @property
    def history(self) -> tuple[Notification, ...]:
        return tuple(self._history)

    @property
    def latest(self) -> Notification | None:
        return self._history[-1] if self._history else None

    def clear(self) -> None:
        self._history.clear()


__all__ = ["GENERIC_FAILURE_MESSAGE", "Notification", "Notifier", "describe_failure"]
