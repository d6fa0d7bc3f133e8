"""Enumerations used across the coursemart domain layer."""

from __future__ import annotations

from enum import StrEnum


class CollectionKind(StrEnum):
    """User-owned collections kept in sync with the CMS."""

    CART = "cart"
    WISHLIST = "wishlist"
    FRIEND_REQUEST = "friend_request"
    FRIEND = "friend"


class MutationOperation(StrEnum):
    """Local mutations supported by the optimistic protocol."""

    ADD = "add"
    REMOVE = "remove"
    CLEAR = "clear"


class FriendRequestStatus(StrEnum):
    """Status values stored on a friend request record."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"
    BLOCKED = "blocked"


class FriendDirection(StrEnum):
    """Which side of a friend request the current user is on."""

    SENT = "sent"
    RECEIVED = "received"


class NotificationLevel(StrEnum):
    """Severity of a transient user-visible notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
