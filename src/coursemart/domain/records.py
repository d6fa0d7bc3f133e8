"""Records held in optimistic collections."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import FriendRequestStatus
from .types import RecordId, UserRef, is_temporary_id

_PRICE_CHARS = re.compile(r"[^0-9.]")


def utc_now() -> datetime:
    return datetime.now(UTC)


def parse_price(label: str | None) -> Decimal:
    """Extract a numeric price from a display label such as ``"$49.99"``."""

    if not label:
        return Decimal("0")
    cleaned = _PRICE_CHARS.sub("", label)
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return Decimal("0")
    return value if value.is_finite() else Decimal("0")


class DomainModel(BaseModel):
    """Frozen base for every record; unknown fields are rejected."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_assignment=True)


class SyncRecord(DomainModel):
    """Base for every record kept in an optimistic collection.

    ``id`` is the CMS primary key (or a ``tmp-`` placeholder id) and
    ``external_id`` the stable document key shared by list and detail fetches.
    """

    id: RecordId | None = None
    external_id: str | None = None

    @property
    def is_placeholder(self) -> bool:
        return is_temporary_id(self.id)


class CourseSummary(DomainModel):
    """Course card data used as input when adding to the cart or wishlist."""

    id: int
    external_id: str | None = None
    title: str = ""
    price: Decimal | None = None
    price_label: str | None = None

    def resolved_price(self) -> Decimal:
        if self.price is not None:
            return self.price
        return parse_price(self.price_label)


class CartItem(SyncRecord):
    course_id: int
    title: str = ""
    price: Annotated[Decimal, Field(ge=0)] = Decimal("0")
    quantity: Annotated[int, Field(ge=1)] = 1
    added_at: datetime = Field(default_factory=utc_now)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class WishlistEntry(SyncRecord):
    course_id: int
    course_external_id: str | None = None


class FriendRequest(SyncRecord):
    from_user: UserRef
    to_user: UserRef
    from_username: str | None = None
    to_username: str | None = None
    status: FriendRequestStatus = FriendRequestStatus.PENDING
    message: str | None = None
    requested_at: datetime = Field(default_factory=utc_now)
    responded_at: datetime | None = None


class Friend(SyncRecord):
    """Another user with an accepted friendship."""

    username: str = ""

    @field_validator("username")
    @classmethod
    def strip_username(cls, value: str) -> str:
        return value.strip()


__all__ = [
    "CartItem",
    "CourseSummary",
    "DomainModel",
    "Friend",
    "FriendRequest",
    "SyncRecord",
    "WishlistEntry",
    "parse_price",
    "utc_now",
]
