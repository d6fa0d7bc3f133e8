"""Optimistic collection: local state that mirrors a CMS-owned collection."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Iterator
from typing import Any, Generic, TypeVar, cast
from uuid import UUID, uuid4

from coursemart.domain import CollectionKind, MutationOperation, RecordId, SyncRecord

from .bus import EventBus
from .events import ChangeType, CollectionChanged
from .exceptions import (
    AlreadyInFlightError,
    DuplicateTargetError,
    MutationValidationError,
    NotFoundOnRevert,
    RemoteMutationError,
    SyncError,
)
from .identity import KeyFunc, dedupe, matches_target, merge_records, same_entity
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
from .notifications import GENERIC_FAILURE_MESSAGE, Notifier, describe_failure
from .pending import WILDCARD, PendingRegistry

T = TypeVar("T", bound=SyncRecord)

RemoteCall = Callable[[], Awaitable[Any]]

DEFAULT_MUTATION_TIMEOUT = 15.0

_CHANGE_FOR_OPERATION = {
    MutationOperation.ADD: ChangeType.ADDED,
    MutationOperation.REMOVE: ChangeType.REMOVED,
    MutationOperation.CLEAR: ChangeType.CLEARED,
}


class OptimisticCollection(Generic[T]):
    """One view's copy of a user-owned collection.

    Changes go through :meth:`apply_optimistic` and :meth:`commit` (or the
    :meth:`execute` shortcut). Every local change is broadcast on the session
    bus under ``topic`` and mirrored by sibling views of the same topic.
    """

    def __init__(
        self,
        kind: CollectionKind,
        *,
        key_of: KeyFunc[T],
        bus: EventBus,
        registry: PendingRegistry,
        notifier: Notifier,
        topic: str | None = None,
        mutation_timeout: float = DEFAULT_MUTATION_TIMEOUT,
        view_id: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.kind = kind
        self.topic = topic or f"collection:{kind.value}"
        self.view_id = view_id or f"{kind.value}-view-{uuid4().hex[:8]}"
        self._key_of = key_of
        self._bus = bus
        self._registry = registry
        self._notifier = notifier
        self._mutation_timeout = mutation_timeout
        self._logger = logger or logging.getLogger(__name__)
        self._items: tuple[T, ...] = ()
        self._settled: set[UUID] = set()
        self._closed = False
        self._unsubscribe = bus.subscribe(self.topic, self._on_event)

    # -- read side -----------------------------------------------------

    @property
    def items(self) -> tuple[T, ...]:
        return self._items

    @property
    def count(self) -> int:
        return len(self._items)

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def key_of(self, record: T) -> str:
        return self._key_of(record)

    def find(self, target: TargetRef) -> T | None:
        for record in self._items:
            if matches_target(record, target, self._key_of):
                return record
        return None

    def contains(self, target: TargetRef) -> bool:
        return self.find(target) is not None

    def pending_key(self, target: TargetRef) -> str:
        """Key ``target`` by its record's collection key whenever the record is known.

        A ref holding only CMS ids locks the same key as a ref by collection
        key, so the two can never be pending together.
        """

        if target.key is None:
            record = self.find(target)
            if record is not None:
                target = TargetRef(
                    key=self._key_of(record),
                    record_id=target.record_id,
                    external_id=target.external_id,
                )
        return self._registry.key_for(self.kind, target)

    def is_pending(self, target: TargetRef) -> bool:
        return self._registry.is_pending(self.pending_key(target))

    # -- lifecycle -----------------------------------------------------

    def replace_all(self, records: Iterable[T]) -> tuple[T, ...]:
        """Load authoritative records from an initial fetch (deduplicated)."""

        self._items = dedupe(records)
        return self._items

    def absorb(self, records: Iterable[T]) -> tuple[T, ...]:
        """Merge records confirmed by a mutation on another collection.

        Used when a server answer for one collection produces a record of this
        one, e.g. an accepted friend request producing a new friend.
        """

        incoming = tuple(records)
        if not incoming:
            return self._items
        if not self._closed:
            self._items = merge_records(self._items, incoming)
        self._broadcast(ChangeType.CONFIRMED, MutationOperation.ADD, incoming)
        return self._items

    def close(self) -> None:
        """Tear the view down; late responses only release their markers."""

        if self._closed:
            return
        self._closed = True
        self._unsubscribe()
        self._registry.retire_owner(self.view_id)

    # -- protocol ------------------------------------------------------

    def apply_optimistic(self, descriptor: MutationDescriptor[T]) -> OptimisticResult[T]:
        if self._closed:
            msg = f"Collection view {self.view_id} is closed"
            raise SyncError(msg)
        self._validate(descriptor)

        target = descriptor.target
        key = self.pending_key(target)
        self._registry.ensure_available(key)

        snapshot = self._items
        placeholder: T | None = None
        removed: tuple[tuple[int, T], ...] = ()

        if descriptor.operation is MutationOperation.ADD:
            placeholder = _require_placeholder(descriptor.placeholder, key)
            if self.find(target) is not None or any(
                same_entity(record, placeholder) for record in snapshot
            ):
                msg = f"{target.marker} is already in the {self.kind.value} collection"
                raise DuplicateTargetError(msg)
            updated = (*snapshot, placeholder)
        elif descriptor.operation is MutationOperation.REMOVE:
            removed = tuple(
                (index, record)
                for index, record in enumerate(snapshot)
                if matches_target(record, target, self._key_of)
            )
            if not removed:
                self._registry.clear_stale(key)
                self._logger.debug(
                    "Nothing to remove for %s in %s; treating as no-op",
                    target.marker,
                    self.view_id,
                )
                return OptimisticResult(updated=snapshot, token=None)
            updated = tuple(
                record
                for record in snapshot
                if not matches_target(record, target, self._key_of)
            )
        else:
            removed = tuple(enumerate(snapshot))
            updated = ()

        mutation = PendingMutation(
            key=key,
            kind=self.kind,
            operation=descriptor.operation,
            target=target,
            owner=self.view_id,
            snapshot=snapshot,
        )
        self._registry.acquire(mutation)
        token = RollbackToken(
            mutation=mutation,
            snapshot=snapshot,
            placeholder=placeholder,
            removed=removed,
            failure_message=descriptor.failure_message,
        )
        self._items = updated
        records = (placeholder,) if placeholder is not None else tuple(r for _, r in removed)
        self._broadcast(_CHANGE_FOR_OPERATION[descriptor.operation], descriptor.operation, records)
        return OptimisticResult(updated=updated, token=token)

    def commit(self, token: RollbackToken[T], result: ServerResult[T]) -> tuple[T, ...]:
        """Reconcile a mutation with the server outcome and clear its marker.

        A token is settled once; committing it again leaves the collection
        untouched.
        """

        if token.owner != self.view_id:
            msg = f"Token for {token.key} belongs to view {token.owner}, not {self.view_id}"
            raise SyncError(msg)
        if token.mutation.id in self._settled:
            self._logger.debug("Ignoring repeated commit for %s in %s", token.key, self.view_id)
            return self._items
        self._settled.add(token.mutation.id)
        try:
            if result.ok:
                self._confirm(token, result.record)
            else:
                self._revert(token, result.error)
        finally:
            self._registry.release(token.key, token.mutation)
        return self._items

    async def execute(
        self,
        descriptor: MutationDescriptor[T],
        call: RemoteCall,
        *,
        success_message: str | None = None,
    ) -> MutationReport[T]:
        """Run the full protocol around ``call`` and report what happened."""

        try:
            outcome = self.apply_optimistic(descriptor)
        except AlreadyInFlightError as exc:
            self._notifier.warning(str(exc))
            return MutationReport(MutationStatus.REFUSED, error=exc)
        except MutationValidationError as exc:
            self._notifier.info(str(exc))
            return MutationReport(MutationStatus.REFUSED, error=exc)

        token = outcome.token
        if token is None:
            return MutationReport(MutationStatus.NOOP)

        try:
            response = await asyncio.wait_for(call(), timeout=self._mutation_timeout)
        except asyncio.CancelledError:
            self.commit(token, ServerResult.failure(RemoteMutationError("Request was cancelled")))
            raise
        except TimeoutError as exc:
            error = RemoteMutationError(
                f"The server did not respond within {self._mutation_timeout:g} seconds"
            )
            error.__cause__ = exc
            return self._fail(token, error)
        except Exception as exc:
            return self._fail(token, exc)

        if response is False:
            fallback = descriptor.failure_message or GENERIC_FAILURE_MESSAGE
            return self._fail(token, RemoteMutationError(fallback))

        record = cast("T", response) if isinstance(response, SyncRecord) else None
        self.commit(token, ServerResult.success(record))
        if success_message:
            self._notifier.success(success_message)
        return MutationReport(MutationStatus.CONFIRMED, record=record)

    # -- internals -----------------------------------------------------

    def _fail(self, token: RollbackToken[T], error: BaseException) -> MutationReport[T]:
        self.commit(token, ServerResult.failure(error))
        return MutationReport(MutationStatus.FAILED, error=error)

    def _validate(self, descriptor: MutationDescriptor[T]) -> None:
        if descriptor.operation is MutationOperation.CLEAR:
            if descriptor.target.key != WILDCARD:
                msg = "A clear mutation must target the whole collection"
                raise MutationValidationError(msg)
            return
        if descriptor.target.is_empty:
            msg = f"Missing target identifier for {descriptor.operation.value} on {self.kind.value}"
            raise MutationValidationError(msg)
        if descriptor.target.key == WILDCARD:
            msg = "Only a clear mutation may target the whole collection"
            raise MutationValidationError(msg)
        if descriptor.operation is MutationOperation.ADD and descriptor.placeholder is None:
            msg = f"An add on {self.kind.value} needs a placeholder record"
            raise MutationValidationError(msg)

    def _confirm(self, token: RollbackToken[T], record: T | None) -> None:
        if token.operation is not MutationOperation.ADD or record is None:
            return
        placeholder = _require_placeholder(token.placeholder, token.key)
        if not self._closed:
            self._items = self._swap_placeholder(self._items, placeholder, record, token.target)
        self._broadcast(
            ChangeType.CONFIRMED,
            token.operation,
            (record,),
            replaced_id=placeholder.id,
        )

    def _swap_placeholder(
        self,
        items: tuple[T, ...],
        placeholder: T,
        record: T,
        target: TargetRef,
    ) -> tuple[T, ...]:
        for index, existing in enumerate(items):
            if existing.id == placeholder.id or (
                existing.is_placeholder and matches_target(existing, target, self._key_of)
            ):
                swapped = (*items[:index], record, *items[index + 1 :])
                return dedupe(swapped)
        return merge_records(items, (record,))

    def _revert(self, token: RollbackToken[T], error: BaseException | None) -> None:
        if not self._closed:
            try:
                self._items = self._restore(self._items, token)
            except NotFoundOnRevert as exc:
                self._logger.debug("Rollback skipped in %s: %s", self.view_id, exc)

        replaced_id: RecordId | None = None
        if token.operation is MutationOperation.ADD:
            placeholder = _require_placeholder(token.placeholder, token.key)
            records: tuple[T, ...] = (placeholder,)
            replaced_id = placeholder.id
        else:
            records = tuple(record for _, record in token.removed)
        self._broadcast(ChangeType.REVERTED, token.operation, records, replaced_id=replaced_id)

        message = describe_failure(error, token.failure_message or GENERIC_FAILURE_MESSAGE)
        self._logger.warning(
            "Rolled back %s on %s after remote failure: %s",
            token.operation.value,
            token.key,
            message,
        )
        self._notifier.error(message)

    def _restore(self, items: tuple[T, ...], token: RollbackToken[T]) -> tuple[T, ...]:
        if token.operation is MutationOperation.ADD:
            placeholder_id = _require_placeholder(token.placeholder, token.key).id
            remaining = tuple(record for record in items if record.id != placeholder_id)
            if len(remaining) == len(items):
                msg = f"placeholder {placeholder_id} for {token.key} is gone"
                raise NotFoundOnRevert(msg)
            return remaining

        restored = list(items)
        reinserted = 0
        for index, record in token.removed:
            if any(same_entity(existing, record) for existing in restored):
                continue
            restored.insert(min(index, len(restored)), record)
            reinserted += 1
        if not reinserted:
            msg = f"records for {token.key} were already restored"
            raise NotFoundOnRevert(msg)
        return tuple(restored)

    def _broadcast(
        self,
        change: ChangeType,
        operation: MutationOperation,
        records: tuple[T, ...],
        *,
        replaced_id: RecordId | None = None,
    ) -> None:
        self._bus.publish(
            CollectionChanged(
                topic=self.topic,
                kind=self.kind,
                change=change,
                operation=operation,
                records=records,
                origin=self.view_id,
                replaced_id=replaced_id,
            )
        )

    def _on_event(self, event: CollectionChanged) -> None:
        if event.skip_origin and event.origin == self.view_id:
            return
        records: tuple[Any, ...] = event.records
        if event.change is ChangeType.ADDED:
            fresh = tuple(
                record
                for record in records
                if not any(
                    self._key_of(existing) == self._key_of(record) for existing in self._items
                )
            )
            self._items = merge_records(self._items, fresh)
        elif event.change is ChangeType.CONFIRMED:
            self._items = merge_records(self._without(event.replaced_id), records)
        elif event.change in {ChangeType.REMOVED, ChangeType.CLEARED}:
            self._items = tuple(
                existing
                for existing in self._items
                if not any(
                    same_entity(existing, record) or self._key_of(existing) == self._key_of(record)
                    for record in records
                )
            )
        elif event.operation is MutationOperation.ADD:
            self._items = self._without(event.replaced_id)
        else:
            self._items = merge_records(self._items, records)

    def _without(self, record_id: RecordId | None) -> tuple[T, ...]:
        if record_id is None:
            return self._items
        return tuple(record for record in self._items if record.id != record_id)


def _require_placeholder(placeholder: T | None, key: str) -> T:
    if placeholder is None:
        msg = f"Add mutation for {key} carries no placeholder record"
        raise SyncError(msg)
    return placeholder


__all__ = ["DEFAULT_MUTATION_TIMEOUT", "OptimisticCollection", "RemoteCall"]
