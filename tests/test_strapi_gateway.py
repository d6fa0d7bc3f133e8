from __future__ import annotations

import json
import logging
from collections.abc import Callable
from decimal import Decimal
from typing import Any

import httpx
import pytest

from coursemart.cms import CmsRequestError, StrapiGateway, UnsupportedOperationError
from coursemart.domain import (
    CartItem,
    CollectionKind,
    Friend,
    FriendRequest,
    FriendRequestStatus,
    WishlistEntry,
)
from coursemart.sync import TargetRef

BASE_URL = "https://cms.test"
OWNER = "7"

Route = Callable[[httpx.Request], httpx.Response]


class FakeStrapi:
    """Routes requests by ``(method, path)`` and records what was sent."""

    def __init__(self, routes: dict[tuple[str, str], Route]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": {"message": "Not Found"}})
        return route(request)

    def sent(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


def _gateway(fake: FakeStrapi) -> StrapiGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake))
    return StrapiGateway(BASE_URL, token="secret", client=client)


def _json(payload: Any, status: int = 200) -> Route:
    return lambda request: httpx.Response(status, json=payload)


def _body(request: httpx.Request) -> Any:
    return json.loads(request.content)


PENDING_FROM_GRACE = {
    "id": 31,
    "documentId": "req-31",
    "friend_status": "pending",
    "message": "hi",
    "from_user": {"id": 8, "username": "grace"},
    "to_user": {"id": 7, "username": "ada"},
}


@pytest.mark.asyncio
async def test_list_cart_reads_price_at_add() -> None:
    fake = FakeStrapi(
        {
            ("GET", "/api/card-items/me"): _json(
                {
                    "data": [
                        {
                            "id": 41,
                            "documentId": "ci-41",
                            "quantity": 2,
                            "price_at_add": "12.50",
                            "course": {"id": 1, "name": "Intro", "Price": 49.99},
                        },
                        {"id": 42, "course": {"id": 2, "title": "Async IO", "Price": 19.5}},
                    ]
                }
            )
        }
    )

    items = await _gateway(fake).list_items(CollectionKind.CART, OWNER)

    assert items == [
        CartItem(
            id=41,
            external_id="ci-41",
            course_id=1,
            title="Intro",
            price=Decimal("12.50"),
            quantity=2,
            added_at=items[0].added_at,
        ),
        CartItem(
            id=42,
            course_id=2,
            title="Async IO",
            price=Decimal("19.5"),
            added_at=items[1].added_at,
        ),
    ]
    assert fake.requests[0].headers["Authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_list_skips_entries_with_missing_relations(caplog: pytest.LogCaptureFixture) -> None:
    fake = FakeStrapi(
        {
            ("GET", "/api/card-items/me"): _json(
                {
                    "data": [
                        {"id": 40, "documentId": "ci-40", "course": None},
                        {"id": 41, "course": {"id": 1, "name": "Intro", "Price": 49.99}},
                    ]
                }
            ),
            ("GET", "/api/user-friends"): _json(
                {"data": [{"id": 30, "friend_status": "pending"}, PENDING_FROM_GRACE]}
            ),
        }
    )
    gateway = _gateway(fake)

    with caplog.at_level(logging.WARNING):
        items = await gateway.list_items(CollectionKind.CART, OWNER)
        requests = await gateway.list_items(CollectionKind.FRIEND_REQUEST, OWNER)

    assert [(item.id, item.course_id) for item in items] == [(41, 1)]
    assert [request.id for request in requests] == [31]
    assert "Skipping malformed cart item 40" in caplog.text
    assert "Skipping malformed friend request 30" in caplog.text


@pytest.mark.asyncio
async def test_list_wishlist_follows_pagination() -> None:
    def _page(request: httpx.Request) -> httpx.Response:
        page = int(request.url.params["pagination[page]"])
        entry = {
            "id": 60 + page,
            "attributes": {
                "documentId": f"wish-{page}",
                "course_course": {"data": {"id": page, "documentId": f"course-{page}"}},
            },
        }
        return httpx.Response(
            200, json={"data": [entry], "meta": {"pagination": {"page": page, "pageCount": 2}}}
        )

    fake = FakeStrapi({("GET", "/api/user-wishlists"): _page})

    entries = await _gateway(fake).list_items(CollectionKind.WISHLIST, OWNER)

    assert entries == [
        WishlistEntry(id=61, external_id="wish-1", course_id=1, course_external_id="course-1"),
        WishlistEntry(id=62, external_id="wish-2", course_id=2, course_external_id="course-2"),
    ]
    assert len(fake.requests) == 2
    assert fake.requests[0].url.params["filters[user][id][$eq]"] == OWNER


@pytest.mark.asyncio
async def test_add_to_cart_posts_course_and_quantity() -> None:
    fake = FakeStrapi(
        {
            ("POST", "/api/card-items/add"): _json(
                {"data": {"id": 43, "documentId": "ci-43", "course": {"id": 3, "Price": 0}}}
            )
        }
    )

    item = await _gateway(fake).add_item(
        CollectionKind.CART, TargetRef.for_key(3), owner=OWNER, payload={"quantity": 2}
    )

    assert isinstance(item, CartItem)
    assert (item.id, item.course_id) == (43, 3)
    assert _body(fake.requests[0]) == {"courseId": 3, "quantity": 2}


@pytest.mark.asyncio
async def test_error_payload_message_is_surfaced() -> None:
    fake = FakeStrapi(
        {
            ("POST", "/api/card-items/add"): _json(
                {"error": {"status": 400, "message": "Course already in cart"}}, status=400
            )
        }
    )

    with pytest.raises(CmsRequestError) as excinfo:
        await _gateway(fake).add_item(CollectionKind.CART, TargetRef.for_key(1), owner=OWNER)

    assert excinfo.value.status_code == 400
    assert excinfo.value.user_message == "Course already in cart"


@pytest.mark.asyncio
async def test_remove_cart_item_looks_up_missing_record_id() -> None:
    fake = FakeStrapi(
        {
            ("GET", "/api/card-items/me"): _json({"data": [{"id": 41, "course": {"id": 1}}]}),
            ("DELETE", "/api/card-items/41/remove"): _json({"ok": True}),
        }
    )
    gateway = _gateway(fake)

    removed = await gateway.remove_item(CollectionKind.CART, TargetRef.for_key(1), owner=OWNER)
    missing = await gateway.remove_item(CollectionKind.CART, TargetRef.for_key(9), owner=OWNER)

    assert removed is True
    assert missing is False
    assert len(fake.sent("DELETE", "/api/card-items/41/remove")) == 1


@pytest.mark.asyncio
async def test_add_wishlist_connects_user_and_course_documents() -> None:
    fake = FakeStrapi(
        {
            ("GET", "/api/users"): _json([{"id": 7, "documentId": "user-7"}]),
            ("POST", "/api/user-wishlists"): _json(
                {"data": {"id": 65, "documentId": "wish-65", "course_course": {"id": 3}}}
            ),
        }
    )

    entry = await _gateway(fake).add_item(
        CollectionKind.WISHLIST,
        TargetRef.for_key(3),
        owner=OWNER,
        payload={"course_external_id": "course-3"},
    )

    assert entry == WishlistEntry(
        id=65, external_id="wish-65", course_id=3, course_external_id="course-3"
    )
    body = _body(fake.sent("POST", "/api/user-wishlists")[0])
    assert body["data"]["user"] == {"connect": [{"documentId": "user-7"}]}
    assert body["data"]["course_course"] == {"connect": [{"documentId": "course-3"}]}


@pytest.mark.asyncio
async def test_update_status_puts_friend_status() -> None:
    accepted = {**PENDING_FROM_GRACE, "friend_status": "accepted"}
    fake = FakeStrapi(
        {
            ("GET", "/api/user-friends"): _json({"data": [PENDING_FROM_GRACE]}),
            ("PUT", "/api/user-friends/req-31"): _json({"data": accepted}),
        }
    )

    updated = await _gateway(fake).update_status(
        CollectionKind.FRIEND_REQUEST,
        TargetRef.for_key(8),
        owner=OWNER,
        status=FriendRequestStatus.ACCEPTED,
    )

    assert isinstance(updated, FriendRequest)
    assert updated.status is FriendRequestStatus.ACCEPTED
    assert updated.from_username == "grace"
    body = _body(fake.sent("PUT", "/api/user-friends/req-31")[0])
    assert body["data"]["friend_status"] == "accepted"
    assert "responded_at" in body["data"]


@pytest.mark.asyncio
async def test_update_status_without_pending_request_is_not_found() -> None:
    fake = FakeStrapi({("GET", "/api/user-friends"): _json({"data": []})})

    with pytest.raises(CmsRequestError) as excinfo:
        await _gateway(fake).update_status(
            CollectionKind.FRIEND_REQUEST,
            TargetRef.for_key(8),
            owner=OWNER,
            status=FriendRequestStatus.DECLINED,
        )

    assert excinfo.value.status_code == 404
    assert excinfo.value.user_message == "Friend request not found"


@pytest.mark.asyncio
async def test_friends_are_counterparts_of_accepted_requests() -> None:
    def _requests(request: httpx.Request) -> httpx.Response:
        assert request.url.params["filters[friend_status][$eq]"] == "accepted"
        return httpx.Response(
            200,
            json={
                "data": [
                    {**PENDING_FROM_GRACE, "friend_status": "accepted"},
                    {
                        "id": 32,
                        "friend_status": "accepted",
                        "from_user": {"id": 7, "username": "ada"},
                        "to_user": {"id": 9, "username": "linus"},
                    },
                ]
            },
        )

    fake = FakeStrapi({("GET", "/api/user-friends"): _requests})

    friends = await _gateway(fake).list_items(CollectionKind.FRIEND, OWNER)

    assert friends == [Friend(id=8, username="grace"), Friend(id=9, username="linus")]


@pytest.mark.asyncio
async def test_unfriend_without_record_counts_as_done() -> None:
    fake = FakeStrapi({("GET", "/api/user-friends"): _json({"data": []})})

    removed = await _gateway(fake).remove_item(
        CollectionKind.FRIEND, TargetRef.for_key(9), owner=OWNER
    )

    assert removed is True
    assert [request.method for request in fake.requests] == ["GET"]


@pytest.mark.asyncio
async def test_clear_is_cart_only() -> None:
    fake = FakeStrapi({("DELETE", "/api/card-items/clear"): _json({"ok": True})})
    gateway = _gateway(fake)

    assert await gateway.clear_items(CollectionKind.CART, OWNER) is True
    with pytest.raises(UnsupportedOperationError):
        await gateway.clear_items(CollectionKind.WISHLIST, OWNER)


@pytest.mark.asyncio
async def test_transport_errors_become_cms_errors() -> None:
    def _boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    gateway = _gateway(FakeStrapi({("GET", "/api/card-items/me"): _boom}))

    with pytest.raises(CmsRequestError) as excinfo:
        await gateway.list_items(CollectionKind.CART, OWNER)

    assert excinfo.value.status_code is None
