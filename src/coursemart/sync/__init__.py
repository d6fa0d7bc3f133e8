"""Optimistic mutation protocol shared by the cart, wishlist and friends stores."""

from .bus import EventBus
from .collection import DEFAULT_MUTATION_TIMEOUT, OptimisticCollection
from .events import (
    NOTIFICATION_TOPIC,
    PENDING_TOPIC,
    ChangeType,
    CollectionChanged,
    NotificationRaised,
    PendingChanged,
)
from .exceptions import (
    AlreadyInFlightError,
    DuplicateTargetError,
    FriendLimitError,
    MutationValidationError,
    NotFoundOnRevert,
    RemoteMutationError,
    SyncError,
)
from .identity import dedupe, matches_target, merge_records, same_entity
from .models import (
    MutationDescriptor,
    MutationReport,
    MutationStatus,
    OptimisticResult,
    PendingMutation,
    RollbackToken,
    ServerResult,
    TargetRef,
)
from .notifications import GENERIC_FAILURE_MESSAGE, Notification, Notifier, describe_failure
from .pending import PendingRegistry
from .session import SyncSession

__all__ = [
    "DEFAULT_MUTATION_TIMEOUT",
    "GENERIC_FAILURE_MESSAGE",
    "NOTIFICATION_TOPIC",
    "PENDING_TOPIC",
    "AlreadyInFlightError",
    "ChangeType",
    "CollectionChanged",
    "DuplicateTargetError",
    "EventBus",
    "FriendLimitError",
    "MutationDescriptor",
    "MutationReport",
    "MutationStatus",
    "MutationValidationError",
    "NotFoundOnRevert",
    "Notification",
    "NotificationRaised",
    "Notifier",
    "OptimisticCollection",
    "OptimisticResult",
    "PendingChanged",
    "PendingMutation",
    "PendingRegistry",
    "RemoteMutationError",
    "RollbackToken",
    "ServerResult",
    "SyncError",
    "SyncSession",
    "TargetRef",
    "dedupe",
    "matches_target",
    "merge_records",
    "same_entity",
]
