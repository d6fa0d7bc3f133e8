"""In-memory CMS gateway for unit tests and offline runs."""

from __future__ import annotations

import asyncio
import itertools
from collections import defaultdict, deque
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import uuid4

from coursemart.domain import (
    CartItem,
    CollectionKind,
    CourseSummary,
    Friend,
    FriendRequest,
    FriendRequestStatus,
    SyncRecord,
    UserRef,
    WishlistEntry,
    utc_now,
)
from coursemart.sync import TargetRef, matches_target

from .exceptions import CmsRequestError, UnsupportedOperationError

FIRST_RECORD_ID = 500


def _same_user(left: UserRef, right: UserRef) -> bool:
    return str(left) == str(right)


def _new_document_id() -> str:
    return f"doc-{uuid4().hex[:12]}"


@dataclass
class RecordedCall:
    operation: str
    kind: CollectionKind
    target: str | None = None


@dataclass
class InMemoryCmsGateway:
    """Deterministic stand-in for the CMS.

    Ids are assigned sequentially from ``FIRST_RECORD_ID``. Failures can be
    queued per ``(kind, operation)`` with :meth:`fail_next`, and every call
    waits on ``gate`` when one is set so tests can hold requests in flight.
    """

    courses: dict[int, CourseSummary] = field(default_factory=dict)
    users: dict[str, str] = field(default_factory=dict)
    latency: float = 0.0
    gate: asyncio.Event | None = None
    calls: list[RecordedCall] = field(default_factory=list)
    _records: dict[tuple[CollectionKind, str], list[SyncRecord]] = field(
        default_factory=lambda: defaultdict(list)
    )
    _friend_requests: list[FriendRequest] = field(default_factory=list)
    _failures: dict[tuple[CollectionKind, str], deque[BaseException]] = field(
        default_factory=lambda: defaultdict(deque)
    )
    _ids: itertools.count = field(default_factory=lambda: itertools.count(FIRST_RECORD_ID))

    # -- test helpers --------------------------------------------------

    def register_course(self, course: CourseSummary) -> None:
        self.courses[course.id] = course

    def register_user(self, user_id: UserRef, username: str) -> None:
        self.users[str(user_id)] = username

    def fail_next(
        self,
        kind: CollectionKind,
        operation: str,
        error: BaseException | None = None,
    ) -> None:
        failure = error or CmsRequestError(
            f"Injected {operation} failure",
            status_code=500,
        )
        self._failures[(kind, operation)].append(failure)

    def seed(self, kind: CollectionKind, owner: UserRef, *records: SyncRecord) -> None:
        if kind is CollectionKind.FRIEND_REQUEST:
            self._friend_requests.extend(r for r in records if isinstance(r, FriendRequest))
            return
        self._records[(kind, str(owner))].extend(records)

    def call_count(self, operation: str | None = None, kind: CollectionKind | None = None) -> int:
        return sum(
            1
            for call in self.calls
            if (operation is None or call.operation == operation)
            and (kind is None or call.kind is kind)
        )

    # -- gateway protocol ----------------------------------------------

    async def list_items(self, kind: CollectionKind, owner: UserRef) -> Sequence[SyncRecord]:
        await self._enter("list", kind)
        if kind is CollectionKind.FRIEND_REQUEST:
            return [
                request
                for request in self._friend_requests
                if request.status is FriendRequestStatus.PENDING
                and (_same_user(request.from_user, owner) or _same_user(request.to_user, owner))
            ]
        if kind is CollectionKind.FRIEND:
            return self._friends_of(owner)
        return list(self._records[(kind, str(owner))])

    async def add_item(
        self,
        kind: CollectionKind,
        target: TargetRef,
        *,
        owner: UserRef,
        payload: Mapping[str, Any] | None = None,
    ) -> SyncRecord:
        await self._enter("add", kind, target)
        data = dict(payload or {})
        if kind is CollectionKind.CART:
            record: SyncRecord = self._new_cart_item(target, data)
        elif kind is CollectionKind.WISHLIST:
            course = self._course(target)
            record = WishlistEntry(
                id=next(self._ids),
                external_id=_new_document_id(),
                course_id=course.id,
                course_external_id=course.external_id,
            )
        elif kind is CollectionKind.FRIEND_REQUEST:
            return self._new_friend_request(owner, target, data)
        else:
            msg = f"Cannot add {kind.value} records directly"
            raise UnsupportedOperationError(msg)

        bucket = self._records[(kind, str(owner))]
        if any(str(getattr(existing, "course_id", "")) == target.key for existing in bucket):
            raise CmsRequestError(
                "Duplicate entry",
                status_code=400,
                user_message=f"Course {target.key} is already in your {kind.value}",
            )
        bucket.append(record)
        return record

    async def remove_item(
        self,
        kind: CollectionKind,
        target: TargetRef,
        *,
        owner: UserRef,
    ) -> bool:
        await self._enter("remove", kind, target)
        if kind is CollectionKind.FRIEND:
            for index, request in enumerate(self._friend_requests):
                if request.status is FriendRequestStatus.ACCEPTED and self._involves(
                    request, owner, target.key
                ):
                    self._friend_requests[index] = request.model_copy(
                        update={
                            "status": FriendRequestStatus.CANCELLED,
                            "responded_at": utc_now(),
                        }
                    )
            return True
        if kind is CollectionKind.FRIEND_REQUEST:
            before = len(self._friend_requests)
            self._friend_requests = [
                request
                for request in self._friend_requests
                if not (
                    request.status is FriendRequestStatus.PENDING
                    and self._involves(request, owner, target.key)
                )
            ]
            return len(self._friend_requests) != before

        bucket = self._records[(kind, str(owner))]
        remaining = [
            record for record in bucket if not matches_target(record, target, _course_key)
        ]
        if len(remaining) == len(bucket):
            return False
        self._records[(kind, str(owner))] = remaining
        return True

    async def update_status(
        self,
        kind: CollectionKind,
        target: TargetRef,
        *,
        owner: UserRef,
        status: FriendRequestStatus,
    ) -> SyncRecord:
        await self._enter("update_status", kind, target)
        if kind is not CollectionKind.FRIEND_REQUEST:
            msg = f"{kind.value} records have no status"
            raise UnsupportedOperationError(msg)
        for index, request in enumerate(self._friend_requests):
            if request.status is not FriendRequestStatus.PENDING:
                continue
            if (
                target.record_id is not None and str(request.id) == str(target.record_id)
            ) or self._involves(request, owner, target.key):
                updated = request.model_copy(update={"status": status, "responded_at": utc_now()})
                self._friend_requests[index] = updated
                return updated
        raise CmsRequestError(
            "Friend request not found",
            status_code=404,
            user_message="Friend request not found",
        )

    async def clear_items(self, kind: CollectionKind, owner: UserRef) -> bool:
        await self._enter("clear", kind)
        self._records[(kind, str(owner))] = []
        return True

    # -- internals -----------------------------------------------------

    async def _enter(
        self,
        operation: str,
        kind: CollectionKind,
        target: TargetRef | None = None,
    ) -> None:
        self.calls.append(RecordedCall(operation, kind, target.marker if target else None))
        if self.gate is not None:
            await self.gate.wait()
        if self.latency:
            await asyncio.sleep(self.latency)
        failures = self._failures.get((kind, operation))
        if failures:
            raise failures.popleft()

    def _course(self, target: TargetRef) -> CourseSummary:
        try:
            course_id = int(target.key or "")
        except ValueError as exc:
            raise CmsRequestError(
                f"Invalid course id {target.key!r}",
                status_code=400,
                user_message="Invalid course id",
            ) from exc
        return self.courses.get(course_id) or CourseSummary(id=course_id)

    def _new_cart_item(self, target: TargetRef, data: dict[str, Any]) -> CartItem:
        course = self._course(target)
        price = course.resolved_price() if course.id in self.courses else Decimal(
            str(data.get("price") or 0)
        )
        return CartItem(
            id=next(self._ids),
            external_id=_new_document_id(),
            course_id=course.id,
            title=course.title or str(data.get("title") or ""),
            price=price,
            quantity=int(data.get("quantity") or 1),
        )

    def _new_friend_request(
        self,
        owner: UserRef,
        target: TargetRef,
        data: dict[str, Any],
    ) -> FriendRequest:
        if target.key is None or _same_user(owner, target.key):
            raise CmsRequestError(
                "Invalid friend request",
                status_code=400,
                user_message="You cannot send a friend request to yourself",
            )
        for request in self._friend_requests:
            if request.status is FriendRequestStatus.PENDING and self._involves(
                request, owner, target.key
            ):
                raise CmsRequestError(
                    "Duplicate friend request",
                    status_code=400,
                    user_message="Friend request already pending",
                )
        request = FriendRequest(
            id=next(self._ids),
            external_id=_new_document_id(),
            from_user=owner,
            to_user=target.key,
            from_username=self.users.get(str(owner)),
            to_username=self.users.get(target.key),
            message=data.get("message"),
        )
        self._friend_requests.append(request)
        return request

    def _friends_of(self, owner: UserRef) -> list[SyncRecord]:
        friends: list[SyncRecord] = []
        for request in self._friend_requests:
            if request.status is not FriendRequestStatus.ACCEPTED:
                continue
            if _same_user(request.from_user, owner):
                counterpart = request.to_user
            elif _same_user(request.to_user, owner):
                counterpart = request.from_user
            else:
                continue
            friends.append(Friend(id=counterpart, username=self.users.get(str(counterpart), "")))
        return friends

    @staticmethod
    def _involves(request: FriendRequest, owner: UserRef, counterpart: str | None) -> bool:
        if counterpart is None:
            return False
        return (
            _same_user(request.from_user, owner) and _same_user(request.to_user, counterpart)
        ) or (_same_user(request.to_user, owner) and _same_user(request.from_user, counterpart))


def _course_key(record: SyncRecord) -> str:
    return str(getattr(record, "course_id", record.id))


__all__ = ["FIRST_RECORD_ID", "InMemoryCmsGateway", "RecordedCall"]
