"""Events published on the session bus."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from coursemart.domain import CollectionKind, MutationOperation, RecordId, SyncRecord

from .notifications import Notification

PENDING_TOPIC = "pending"
NOTIFICATION_TOPIC = "notification"


class ChangeType(StrEnum):
    """What happened to a collection, from a sibling view's point of view."""

    ADDED = "added"
    REMOVED = "removed"
    CLEARED = "cleared"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"


class Event(Protocol):
    @property
    def topic(self) -> str: ...


@dataclass(frozen=True, slots=True)
class CollectionChanged:
    """Broadcast so that every view of the same collection can mirror a change.

    ``skip_origin`` lets the view that produced the change ignore its own event.
    """

    topic: str
    kind: CollectionKind
    change: ChangeType
    operation: MutationOperation
    records: tuple[SyncRecord, ...]
    origin: str
    skip_origin: bool = True
    replaced_id: RecordId | None = None


@dataclass(frozen=True, slots=True)
class PendingChanged:
    key: str
    pending: bool
    owner: str

    @property
    def topic(self) -> str:
        return PENDING_TOPIC


@dataclass(frozen=True, slots=True)
class NotificationRaised:
    notification: Notification

    @property
    def topic(self) -> str:
        return NOTIFICATION_TOPIC


__all__ = [
    "NOTIFICATION_TOPIC",
    "PENDING_TOPIC",
    "ChangeType",
    "CollectionChanged",
    "Event",
    "NotificationRaised",
    "PendingChanged",
]
