"""Shared plumbing for the stores that back each feature view."""

from __future__ import annotations

import logging
from typing import ClassVar, Generic, TypeVar

from coursemart.cms import CmsError, CmsGateway
from coursemart.domain import CollectionKind, SyncRecord, UserRef
from coursemart.sync import (
    MutationReport,
    MutationStatus,
    MutationValidationError,
    OptimisticCollection,
    SyncSession,
    TargetRef,
)

T = TypeVar("T", bound=SyncRecord)


def owner_topic(kind: CollectionKind, owner: UserRef, *parts: str) -> str:
    """Bus topic shared by the views of one owner's ``kind`` collection."""

    return ":".join(("collection", kind.value, *parts, str(owner)))


class CollectionStore(Generic[T]):
    """One view's collection of ``kind`` records owned by ``owner``."""

    kind: ClassVar[CollectionKind]
    record_type: ClassVar[type[SyncRecord]]
    load_failure_message: ClassVar[str] = "Unable to load your data"

    def __init__(
        self,
        session: SyncSession,
        gateway: CmsGateway,
        owner: UserRef,
        *,
        view_id: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.session = session
        self.gateway = gateway
        self.owner = owner
        self._logger = logger or logging.getLogger(__name__)
        self.collection: OptimisticCollection[T] = session.collection(
            self.kind,
            key_of=self.key_of,
            topic=owner_topic(self.kind, owner),
            view_id=view_id,
        )

    @staticmethod
    def key_of(record: T) -> str:
        return str(getattr(record, "course_id", record.id))

    @property
    def items(self) -> tuple[T, ...]:
        return self.collection.items

    @property
    def count(self) -> int:
        return self.collection.count

    def contains(self, key: object) -> bool:
        return self.collection.contains(TargetRef.for_key(key))

    def is_pending(self, key: object) -> bool:
        return self.collection.is_pending(TargetRef.for_key(key))

    async def load(self) -> tuple[T, ...]:
        """Populate the collection from the CMS; failures keep the current items."""

        try:
            records = await self.gateway.list_items(self.kind, self.owner)
        except CmsError as exc:
            self._logger.warning("Loading %s for %s failed: %s", self.kind.value, self.owner, exc)
            self.session.notifier.error(self.load_failure_message)
            return self.collection.items
        typed = [record for record in records if isinstance(record, self.record_type)]
        return self.collection.replace_all(typed)  # type: ignore[arg-type]

    def close(self) -> None:
        self.collection.close()

    def target_for(self, key: object) -> TargetRef:
        """Resolve ``key`` into a target carrying the CMS ids of the matching record."""

        record = self.collection.find(TargetRef.for_key(key))
        if record is None or record.is_placeholder:
            return TargetRef.for_key(key)
        return TargetRef(key=str(key), record_id=record.id, external_id=record.external_id)

    def _refuse(self, error: MutationValidationError) -> MutationReport[T]:
        self.session.notifier.info(str(error))
        return MutationReport(MutationStatus.REFUSED, error=error)


__all__ = ["CollectionStore", "owner_topic"]
