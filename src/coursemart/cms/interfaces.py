"""Protocol for the CMS collaborator that owns every persisted collection."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from coursemart.domain import CollectionKind, FriendRequestStatus, SyncRecord, UserRef
from coursemart.sync import TargetRef


class CmsGateway(Protocol):
    """At-most-once, possibly failing remote procedures on CMS collections."""

    async def list_items(self, kind: CollectionKind, owner: UserRef) -> Sequence[SyncRecord]:
        """Return every record of ``kind`` owned by (or involving) ``owner``."""

    async def add_item(
        self,
        kind: CollectionKind,
        target: TargetRef,
        *,
        owner: UserRef,
        payload: Mapping[str, Any] | None = None,
    ) -> SyncRecord:
        """Create a record for ``target`` and return the authoritative copy."""

    async def remove_item(
        self,
        kind: CollectionKind,
        target: TargetRef,
        *,
        owner: UserRef,
    ) -> bool:
        """Delete the record for ``target``; False means the CMS refused."""

    async def update_status(
        self,
        kind: CollectionKind,
        target: TargetRef,
        *,
        owner: UserRef,
        status: FriendRequestStatus,
    ) -> SyncRecord:
        """Move a friend request to ``status`` and return the updated record."""

    async def clear_items(self, kind: CollectionKind, owner: UserRef) -> bool:
        """Delete every record of ``kind`` owned by ``owner``."""


__all__ = ["CmsGateway"]
