"""Value objects exchanged by the optimistic mutation protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Generic, TypeVar
from uuid import UUID, uuid4

from coursemart.domain import CollectionKind, MutationOperation, RecordId, SyncRecord, utc_now

T = TypeVar("T", bound=SyncRecord)


@dataclass(frozen=True, slots=True)
class TargetRef:
    """Whatever identifies the target of a mutation.

    ``key`` is the logical target (a course id or a counterpart user id),
    ``record_id`` and ``external_id`` identify an existing record directly.
    """

    key: str | None = None
    record_id: RecordId | None = None
    external_id: str | None = None

    @classmethod
    def for_key(cls, key: object) -> TargetRef:
        return cls(key=str(key))

    @property
    def is_empty(self) -> bool:
        return self.key is None and self.record_id is None and not self.external_id

    @property
    def marker(self) -> str:
        if self.key is not None:
            return self.key
        if self.external_id:
            return self.external_id
        return str(self.record_id)


@dataclass(frozen=True, slots=True)
class MutationDescriptor(Generic[T]):
    operation: MutationOperation
    target: TargetRef = field(default_factory=TargetRef)
    placeholder: T | None = None
    failure_message: str | None = None

    @classmethod
    def add(
        cls,
        target: TargetRef,
        placeholder: T,
        *,
        failure_message: str | None = None,
    ) -> MutationDescriptor[T]:
        return cls(MutationOperation.ADD, target, placeholder, failure_message)

    @classmethod
    def remove(
        cls,
        target: TargetRef,
        *,
        failure_message: str | None = None,
    ) -> MutationDescriptor[T]:
        return cls(MutationOperation.REMOVE, target, None, failure_message)

    @classmethod
    def clear(cls, *, failure_message: str | None = None) -> MutationDescriptor[T]:
        return cls(MutationOperation.CLEAR, TargetRef(key="*"), None, failure_message)


@dataclass(slots=True)
class PendingMutation:
    """An in-flight change, registered for the duration of one round trip."""

    key: str
    kind: CollectionKind
    operation: MutationOperation
    target: TargetRef
    owner: str
    snapshot: tuple[SyncRecord, ...] = ()
    id: UUID = field(default_factory=uuid4)
    started_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True, slots=True)
class RollbackToken(Generic[T]):
    """Opaque handle returned by ``apply_optimistic`` and consumed by ``commit``."""

    mutation: PendingMutation
    snapshot: tuple[T, ...]
    placeholder: T | None = None
    removed: tuple[tuple[int, T], ...] = ()
    failure_message: str | None = None

    @property
    def key(self) -> str:
        return self.mutation.key

    @property
    def operation(self) -> MutationOperation:
        return self.mutation.operation

    @property
    def target(self) -> TargetRef:
        return self.mutation.target

    @property
    def owner(self) -> str:
        return self.mutation.owner


@dataclass(frozen=True, slots=True)
class OptimisticResult(Generic[T]):
    updated: tuple[T, ...]
    token: RollbackToken[T] | None

    @property
    def noop(self) -> bool:
        return self.token is None


@dataclass(frozen=True, slots=True)
class ServerResult(Generic[T]):
    """Outcome of the remote call, handed to ``commit``."""

    ok: bool
    record: T | None = None
    error: BaseException | None = None

    @classmethod
    def success(cls, record: T | None = None) -> ServerResult[T]:
        return cls(ok=True, record=record)

    @classmethod
    def failure(cls, error: BaseException | None = None) -> ServerResult[T]:
        return cls(ok=False, error=error)


class MutationStatus(StrEnum):
    CONFIRMED = "confirmed"
    FAILED = "failed"
    REFUSED = "refused"
    NOOP = "noop"


@dataclass(frozen=True, slots=True)
class MutationReport(Generic[T]):
    """What ``execute`` did, for callers that want more than the notification."""

    status: MutationStatus
    record: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.status in {MutationStatus.CONFIRMED, MutationStatus.NOOP}


__all__ = [
    "MutationDescriptor",
    "MutationReport",
    "MutationStatus",
    "OptimisticResult",
    "PendingMutation",
    "RollbackToken",
    "ServerResult",
    "TargetRef",
]
