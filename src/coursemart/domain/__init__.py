"""Domain models shared by the sync core, the CMS gateways and the stores."""

from .enums import (
    CollectionKind,
    FriendDirection,
    FriendRequestStatus,
    MutationOperation,
    NotificationLevel,
)
from .records import (
    CartItem,
    CourseSummary,
    DomainModel,
    Friend,
    FriendRequest,
    SyncRecord,
    WishlistEntry,
    parse_price,
    utc_now,
)
from .types import TEMP_ID_PREFIX, RecordId, UserRef, is_temporary_id

__all__ = [
    "TEMP_ID_PREFIX",
    "CartItem",
    "CollectionKind",
    "CourseSummary",
    "DomainModel",
    "Friend",
    "FriendDirection",
    "FriendRequest",
    "FriendRequestStatus",
    "MutationOperation",
    "NotificationLevel",
    "RecordId",
    "SyncRecord",
    "UserRef",
    "WishlistEntry",
    "is_temporary_id",
    "parse_price",
    "utc_now",
]
