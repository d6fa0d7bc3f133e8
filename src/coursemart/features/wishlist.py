"""Wishlist view store."""

from __future__ import annotations

from coursemart.domain import CollectionKind, CourseSummary, WishlistEntry
from coursemart.sync import MutationDescriptor, MutationReport, TargetRef
from coursemart.utils import new_temporary_id

from .base import CollectionStore


class WishlistStore(CollectionStore[WishlistEntry]):
    kind = CollectionKind.WISHLIST
    record_type = WishlistEntry
    load_failure_message = "Unable to load your wishlist"

    @staticmethod
    def key_of(record: WishlistEntry) -> str:
        return str(record.course_id)

    def course_ids(self) -> frozenset[int]:
        return frozenset(entry.course_id for entry in self.items)

    async def add_course(self, course: CourseSummary) -> MutationReport[WishlistEntry]:
        placeholder = WishlistEntry(
            id=new_temporary_id(),
            course_id=course.id,
            course_external_id=course.external_id,
        )
        target = TargetRef.for_key(course.id)
        descriptor = MutationDescriptor.add(
            target,
            placeholder,
            failure_message="Unable to save wishlist",
        )
        payload = {"course_external_id": course.external_id}
        return await self.collection.execute(
            descriptor,
            lambda: self.gateway.add_item(self.kind, target, owner=self.owner, payload=payload),
            success_message="Added to wishlist",
        )

    async def remove_course(self, course_id: int) -> MutationReport[WishlistEntry]:
        target = self.target_for(course_id)
        descriptor: MutationDescriptor[WishlistEntry] = MutationDescriptor.remove(
            target,
            failure_message="Unable to remove from wishlist",
        )
        return await self.collection.execute(
            descriptor,
            lambda: self.gateway.remove_item(self.kind, target, owner=self.owner),
            success_message="Removed from wishlist",
        )

    async def toggle(self, course: CourseSummary) -> MutationReport[WishlistEntry]:
        """Add ``course`` when it is not wishlisted yet, remove it otherwise."""

        if self.contains(course.id):
            return await self.remove_course(course.id)
        return await self.add_course(course)


__all__ = ["WishlistStore"]
