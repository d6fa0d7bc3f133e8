"""Cart view store."""

from __future__ import annotations

from decimal import Decimal

from coursemart.domain import CartItem, CollectionKind, CourseSummary
from coursemart.sync import MutationDescriptor, MutationReport, TargetRef
from coursemart.utils import new_temporary_id

from .base import CollectionStore


class CartStore(CollectionStore[CartItem]):
    kind = CollectionKind.CART
    record_type = CartItem
    load_failure_message = "Unable to load your cart"

    @staticmethod
    def key_of(record: CartItem) -> str:
        return str(record.course_id)

    @property
    def total(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0"))

    def course_ids(self) -> tuple[int, ...]:
        return tuple(item.course_id for item in self.items)

    async def add_course(
        self,
        course: CourseSummary,
        *,
        quantity: int = 1,
    ) -> MutationReport[CartItem]:
        """Add ``course`` with its displayed price; the CMS price wins on confirm."""

        price = course.resolved_price()
        placeholder = CartItem(
            id=new_temporary_id(),
            course_id=course.id,
            title=course.title,
            price=price,
            quantity=quantity,
        )
        target = TargetRef.for_key(course.id)
        descriptor = MutationDescriptor.add(
            target,
            placeholder,
            failure_message="Failed to add to cart",
        )
        payload = {"quantity": quantity, "price": str(price), "title": course.title}
        return await self.collection.execute(
            descriptor,
            lambda: self.gateway.add_item(self.kind, target, owner=self.owner, payload=payload),
            success_message=f"{course.title or 'Course'} added to cart",
        )

    async def remove_course(self, course_id: int) -> MutationReport[CartItem]:
        target = self.target_for(course_id)
        descriptor: MutationDescriptor[CartItem] = MutationDescriptor.remove(
            target,
            failure_message="Failed to remove item",
        )
        return await self.collection.execute(
            descriptor,
            lambda: self.gateway.remove_item(self.kind, target, owner=self.owner),
            success_message="Removed from cart",
        )

    async def clear(self) -> MutationReport[CartItem]:
        descriptor: MutationDescriptor[CartItem] = MutationDescriptor.clear(
            failure_message="Failed to clear cart",
        )
        return await self.collection.execute(
            descriptor,
            lambda: self.gateway.clear_items(self.kind, self.owner),
            success_message="Cart cleared",
        )


__all__ = ["CartStore"]
