from __future__ import annotations

import asyncio
from decimal import Decimal

from coursemart.cms import InMemoryCmsGateway
from coursemart.domain import CollectionKind, CourseSummary, WishlistEntry
from coursemart.features import WishlistStore
from coursemart.sync import MutationStatus, SyncSession

OWNER = "7"

TYPING = CourseSummary(id=3, external_id="course-3", title="Typing", price=Decimal("0"))


def _wishlist(session: SyncSession, gateway: InMemoryCmsGateway) -> WishlistStore:
    wishlist = WishlistStore(session, gateway, OWNER)
    asyncio.run(wishlist.load())
    return wishlist


def test_toggle_adds_then_removes(session: SyncSession, gateway: InMemoryCmsGateway) -> None:
    wishlist = _wishlist(session, gateway)

    added = asyncio.run(wishlist.toggle(TYPING))

    assert added.status is MutationStatus.CONFIRMED
    assert wishlist.course_ids() == frozenset({3})
    entry = wishlist.items[0]
    assert entry.course_external_id == "course-3"
    assert entry.external_id is not None

    removed = asyncio.run(wishlist.toggle(TYPING))

    assert removed.status is MutationStatus.CONFIRMED
    assert wishlist.course_ids() == frozenset()
    assert asyncio.run(gateway.list_items(CollectionKind.WISHLIST, OWNER)) == []


def test_remove_targets_the_loaded_record(
    session: SyncSession, gateway: InMemoryCmsGateway
) -> None:
    gateway.seed(
        CollectionKind.WISHLIST,
        OWNER,
        WishlistEntry(id=61, external_id="wish-61", course_id=1),
    )
    wishlist = _wishlist(session, gateway)

    target = wishlist.target_for(1)
    asyncio.run(wishlist.remove_course(1))

    assert target.record_id == 61
    assert target.external_id == "wish-61"
    assert not wishlist.contains(1)


def test_failed_add_uses_fallback_message(
    session: SyncSession, gateway: InMemoryCmsGateway
) -> None:
    wishlist = _wishlist(session, gateway)
    gateway.fail_next(CollectionKind.WISHLIST, "add", RuntimeError())

    report = asyncio.run(wishlist.add_course(TYPING))

    assert report.status is MutationStatus.FAILED
    assert not wishlist.contains(3)
    assert session.notifier.latest is not None
    assert session.notifier.latest.message == "Unable to save wishlist"


def test_reverted_add_is_mirrored_in_sibling_views(
    session: SyncSession, gateway: InMemoryCmsGateway
) -> None:
    card = _wishlist(session, gateway)
    page = _wishlist(session, gateway)

    async def _scenario() -> None:
        gateway.gate = asyncio.Event()
        gateway.fail_next(CollectionKind.WISHLIST, "add")
        task = asyncio.create_task(card.add_course(TYPING))
        await asyncio.sleep(0)
        assert page.contains(3)
        assert page.is_pending(3)
        gateway.gate.set()
        await task

    asyncio.run(_scenario())

    assert not card.contains(3)
    assert not page.contains(3)
    assert not page.is_pending(3)
