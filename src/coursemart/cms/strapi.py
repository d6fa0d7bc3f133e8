"""Strapi-backed CMS gateway."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable, Iterable, Mapping, Sequence
from contextlib import asynccontextmanager
from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar

import httpx
from pydantic import ValidationError

from coursemart.domain import (
    CartItem,
    CollectionKind,
    Friend,
    FriendRequest,
    FriendRequestStatus,
    SyncRecord,
    UserRef,
    WishlistEntry,
    utc_now,
)
from coursemart.sync import TargetRef

from .exceptions import CmsRequestError, UnsupportedOperationError

CART_ENDPOINT = "/api/card-items"
WISHLIST_ENDPOINT = "/api/user-wishlists"
FRIENDS_ENDPOINT = "/api/user-friends"
COURSES_ENDPOINT = "/api/course-courses"
USERS_ENDPOINT = "/api/users"

R = TypeVar("R", bound=SyncRecord)


def _flatten(entry: Any) -> dict[str, Any]:
    """Collapse Strapi v4 ``{id, attributes}`` envelopes into one mapping."""

    if not isinstance(entry, Mapping):
        return {}
    attributes = entry.get("attributes")
    if isinstance(attributes, Mapping):
        return {"id": entry.get("id"), **attributes}
    return dict(entry)


def _relation(value: Any) -> Any:
    if isinstance(value, Mapping) and "data" in value:
        return value["data"]
    return value


def _user_id(value: Any) -> UserRef | None:
    related = _relation(value)
    if isinstance(related, int | str):
        return related
    flat = _flatten(related)
    user_id = flat.get("id")
    return user_id if isinstance(user_id, int | str) else None


def _decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")


def _cart_item(entry: Any) -> CartItem:
    base = _flatten(entry)
    course = _flatten(_relation(base.get("course")))
    price = base.get("price_at_add")
    if price is None:
        price = course.get("Price", course.get("price"))
    fields: dict[str, Any] = {
        "id": base.get("id"),
        "external_id": base.get("documentId"),
        "course_id": course.get("id", base.get("courseId")),
        "title": course.get("name") or course.get("title") or "",
        "price": _decimal(price),
        "quantity": max(1, int(base.get("quantity") or 1)),
    }
    if base.get("added_at"):
        fields["added_at"] = base["added_at"]
    return CartItem(**fields)


def _wishlist_entry(entry: Any) -> WishlistEntry:
    base = _flatten(entry)
    course = _flatten(_relation(base.get("course_course")))
    return WishlistEntry(
        id=base.get("id"),
        external_id=base.get("documentId"),
        course_id=course.get("id", base.get("courseId")),
        course_external_id=course.get("documentId"),
    )


def _username(value: Any) -> str | None:
    flat = _flatten(_relation(value))
    username = flat.get("username")
    return str(username) if username else None


def _friend_request(
    entry: Any,
    *,
    from_user: UserRef | None = None,
    to_user: UserRef | None = None,
) -> FriendRequest:
    base = _flatten(entry)
    fields: dict[str, Any] = {
        "id": base.get("id"),
        "external_id": base.get("documentId"),
        "from_user": _user_id(base.get("from_user")) or from_user,
        "to_user": _user_id(base.get("to_user")) or to_user,
        "from_username": _username(base.get("from_user")),
        "to_username": _username(base.get("to_user")),
        "status": base.get("friend_status") or FriendRequestStatus.PENDING,
        "message": base.get("message"),
        "responded_at": base.get("responded_at"),
    }
    requested_at = base.get("requested_at") or base.get("createdAt")
    if requested_at:
        fields["requested_at"] = requested_at
    return FriendRequest(**fields)


def _counterpart(request: FriendRequest, owner: UserRef) -> tuple[UserRef, str | None]:
    if str(request.from_user) == str(owner):
        return request.to_user, request.to_username
    return request.from_user, request.from_username


def _error_message(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, Mapping):
        return None
    error = payload.get("error")
    if isinstance(error, Mapping) and error.get("message"):
        return str(error["message"])
    return None


class StrapiGateway:
    """Adapter for the Strapi collections behind the cart, wishlist and friends views."""

    DEFAULT_PAGE_SIZE = 100

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        page_size: int = DEFAULT_PAGE_SIZE,
        logger: logging.Logger | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._client = client
        self._timeout = timeout
        self._page_size = max(1, page_size)
        self._logger = logger or logging.getLogger(__name__)

    # -- gateway protocol ----------------------------------------------

    async def list_items(self, kind: CollectionKind, owner: UserRef) -> Sequence[SyncRecord]:
        async with self._client_scope() as client:
            return await self._list(client, kind, owner)

    async def _list(
        self,
        client: httpx.AsyncClient,
        kind: CollectionKind,
        owner: UserRef,
    ) -> list[SyncRecord]:
        if kind is CollectionKind.CART:
            payload = await self._request(client, "GET", f"{CART_ENDPOINT}/me")
            entries = payload.get("data") if isinstance(payload, Mapping) else None
            return list(self._parse(entries or [], _cart_item, "cart item"))
        if kind is CollectionKind.WISHLIST:
            entries = await self._paginate(
                client,
                WISHLIST_ENDPOINT,
                {
                    "filters[user][id][$eq]": str(owner),
                    "populate[course_course][fields][0]": "id",
                    "populate[course_course][fields][1]": "documentId",
                },
            )
            return list(self._parse(entries, _wishlist_entry, "wishlist entry"))
        if kind is CollectionKind.FRIEND_REQUEST:
            return list(
                await self._friend_requests(client, owner, FriendRequestStatus.PENDING)
            )
        requests = await self._friend_requests(client, owner, FriendRequestStatus.ACCEPTED)
        friends: list[SyncRecord] = []
        for request in requests:
            user_id, username = _counterpart(request, owner)
            friends.append(Friend(id=user_id, username=username or ""))
        return friends

    async def add_item(
        self,
        kind: CollectionKind,
        target: TargetRef,
        *,
        owner: UserRef,
        payload: Mapping[str, Any] | None = None,
    ) -> SyncRecord:
        data = dict(payload or {})
        async with self._client_scope() as client:
            if kind is CollectionKind.CART:
                body = {
                    "courseId": self._numeric(target.key, "course"),
                    "quantity": int(data.get("quantity") or 1),
                }
                response = await self._request(client, "POST", f"{CART_ENDPOINT}/add", json=body)
                return _cart_item(self._entry(response))
            if kind is CollectionKind.WISHLIST:
                return await self._create_wishlist_entry(client, owner, target, data)
            if kind is CollectionKind.FRIEND_REQUEST:
                return await self._create_friend_request(client, owner, target, data)
        msg = f"Cannot add {kind.value} records directly"
        raise UnsupportedOperationError(msg)

    async def remove_item(
        self,
        kind: CollectionKind,
        target: TargetRef,
        *,
        owner: UserRef,
    ) -> bool:
        async with self._client_scope() as client:
            if kind is CollectionKind.CART:
                record_id = target.record_id
                if record_id is None:
                    record_id = await self._lookup_id(client, kind, owner, target)
                if record_id is None:
                    return False
                await self._request(client, "DELETE", f"{CART_ENDPOINT}/{record_id}/remove")
                return True
            if kind is CollectionKind.WISHLIST:
                document = target.external_id or await self._lookup_id(client, kind, owner, target)
                if document is None:
                    return False
                await self._request(client, "DELETE", f"{WISHLIST_ENDPOINT}/{document}")
                return True
            if kind is CollectionKind.FRIEND_REQUEST:
                request = await self._find_request(
                    client, owner, target, FriendRequestStatus.PENDING
                )
                if request is None:
                    return False
                path = f"{FRIENDS_ENDPOINT}/{self._path_id(request)}"
                await self._request(client, "DELETE", path)
                return True

            # Unfriending someone with no friendship record counts as done.
            requests = await self._friend_requests(client, owner, FriendRequestStatus.ACCEPTED)
            for request in requests:
                if str(_counterpart(request, owner)[0]) == target.key:
                    await self._request(
                        client, "DELETE", f"{FRIENDS_ENDPOINT}/{self._path_id(request)}"
                    )
            return True

    async def update_status(
        self,
        kind: CollectionKind,
        target: TargetRef,
        *,
        owner: UserRef,
        status: FriendRequestStatus,
    ) -> SyncRecord:
        if kind is not CollectionKind.FRIEND_REQUEST:
            msg = f"{kind.value} records have no status"
            raise UnsupportedOperationError(msg)
        async with self._client_scope() as client:
            request = await self._find_request(client, owner, target, FriendRequestStatus.PENDING)
            if request is None:
                raise CmsRequestError(
                    f"No pending friend request for {target.marker}",
                    status_code=404,
                    user_message="Friend request not found",
                )
            responded_at = utc_now()
            body = {
                "data": {
                    "friend_status": status.value,
                    "responded_at": responded_at.isoformat(),
                }
            }
            response = await self._request(
                client, "PUT", f"{FRIENDS_ENDPOINT}/{self._path_id(request)}", json=body
            )
        entry = self._entry(response, required=False)
        if entry:
            return _friend_request(entry, from_user=request.from_user, to_user=request.to_user)
        return request.model_copy(update={"status": status, "responded_at": responded_at})

    async def clear_items(self, kind: CollectionKind, owner: UserRef) -> bool:
        if kind is not CollectionKind.CART:
            msg = f"Clearing {kind.value} is not supported by Strapi"
            raise UnsupportedOperationError(msg)
        async with self._client_scope() as client:
            await self._request(client, "DELETE", f"{CART_ENDPOINT}/clear")
        return True

    # -- helpers -------------------------------------------------------

    async def _create_wishlist_entry(
        self,
        client: httpx.AsyncClient,
        owner: UserRef,
        target: TargetRef,
        data: dict[str, Any],
    ) -> WishlistEntry:
        course_id = self._numeric(target.key, "course")
        user_document = await self._resolve_document_id(
            client, USERS_ENDPOINT, self._numeric(owner, "user")
        )
        if user_document is None:
            me = await self._request(
                client, "GET", f"{USERS_ENDPOINT}/me", params={"fields[0]": "documentId"}
            )
            if isinstance(me, Mapping) and me.get("documentId"):
                user_document = str(me["documentId"])
        course_document = data.get("course_external_id") or await self._resolve_document_id(
            client, COURSES_ENDPOINT, course_id
        )
        if user_document is None or course_document is None:
            missing = "user" if user_document is None else "course"
            raise CmsRequestError(
                f"Could not resolve the {missing} documentId",
                user_message=f"Unable to save wishlist: unknown {missing}",
            )
        body = {
            "data": {
                "user": {"connect": [{"documentId": user_document}]},
                "course_course": {"connect": [{"documentId": course_document}]},
            }
        }
        response = await self._request(
            client,
            "POST",
            WISHLIST_ENDPOINT,
            json=body,
            params={
                "populate[course_course][fields][0]": "id",
                "populate[course_course][fields][1]": "documentId",
            },
        )
        entry = _wishlist_entry(self._entry(response))
        if entry.course_external_id is None:
            entry = entry.model_copy(update={"course_external_id": course_document})
        return entry

    async def _create_friend_request(
        self,
        client: httpx.AsyncClient,
        owner: UserRef,
        target: TargetRef,
        data: dict[str, Any],
    ) -> FriendRequest:
        from_id = self._numeric(owner, "user")
        to_id = self._numeric(target.key, "user")
        if from_id == to_id:
            raise CmsRequestError(
                "Self friend request",
                status_code=400,
                user_message="You cannot send a friend request to yourself",
            )
        existing = await self._find_request(
            client, owner, TargetRef.for_key(to_id), FriendRequestStatus.PENDING
        )
        if existing is not None and str(existing.from_user) == str(from_id):
            raise CmsRequestError(
                "Duplicate friend request",
                status_code=400,
                user_message="Friend request already pending",
            )
        body = {
            "data": {
                "from_user": from_id,
                "to_user": to_id,
                "friend_status": FriendRequestStatus.PENDING.value,
                "message": data.get("message"),
                "requested_at": utc_now().isoformat(),
                "read": False,
            }
        }
        response = await self._request(client, "POST", FRIENDS_ENDPOINT, json=body)
        return _friend_request(self._entry(response), from_user=from_id, to_user=to_id)

    async def _friend_requests(
        self,
        client: httpx.AsyncClient,
        owner: UserRef,
        status: FriendRequestStatus,
    ) -> list[FriendRequest]:
        entries = await self._paginate(
            client,
            FRIENDS_ENDPOINT,
            {
                "filters[friend_status][$eq]": status.value,
                "filters[$or][0][from_user][id][$eq]": str(owner),
                "filters[$or][1][to_user][id][$eq]": str(owner),
                "populate[0]": "from_user",
                "populate[1]": "to_user",
                "sort[0]": "requested_at:desc",
            },
        )
        return self._parse(entries, _friend_request, "friend request")

    async def _find_request(
        self,
        client: httpx.AsyncClient,
        owner: UserRef,
        target: TargetRef,
        status: FriendRequestStatus,
    ) -> FriendRequest | None:
        for request in await self._friend_requests(client, owner, status):
            if target.external_id and request.external_id == target.external_id:
                return request
            if target.record_id is not None and str(request.id) == str(target.record_id):
                return request
            if target.key is not None and str(_counterpart(request, owner)[0]) == target.key:
                return request
        return None

    async def _lookup_id(
        self,
        client: httpx.AsyncClient,
        kind: CollectionKind,
        owner: UserRef,
        target: TargetRef,
    ) -> str | None:
        for record in await self._list(client, kind, owner):
            course_id = getattr(record, "course_id", None)
            if target.key is not None and str(course_id) == target.key:
                if kind is CollectionKind.WISHLIST:
                    return record.external_id or str(record.id)
                return str(record.id)
        return None

    async def _resolve_document_id(
        self,
        client: httpx.AsyncClient,
        path: str,
        numeric_id: int,
    ) -> str | None:
        payload = await self._request(
            client,
            "GET",
            path,
            params={
                "filters[id][$eq]": str(numeric_id),
                "fields[0]": "id",
                "fields[1]": "documentId",
            },
        )
        # /api/users answers with a bare list, content types with {"data": [...]}.
        items = payload if isinstance(payload, list) else (payload or {}).get("data") or []
        for item in items:
            flat = _flatten(item)
            if str(flat.get("id")) == str(numeric_id) and flat.get("documentId"):
                return str(flat["documentId"])
        self._logger.warning("No documentId found in %s for id %s", path, numeric_id)
        return None

    async def _paginate(
        self,
        client: httpx.AsyncClient,
        path: str,
        params: Mapping[str, str],
    ) -> list[Any]:
        entries: list[Any] = []
        page = 1
        while True:
            query = {
                **params,
                "pagination[page]": str(page),
                "pagination[pageSize]": str(self._page_size),
            }
            payload = await self._request(client, "GET", path, params=query)
            if not isinstance(payload, Mapping):
                break
            entries.extend(payload.get("data") or [])
            pagination = (payload.get("meta") or {}).get("pagination") or {}
            page_count = int(pagination.get("pageCount") or 1)
            if page >= page_count:
                break
            page += 1
        return entries

    def _parse(self, entries: Iterable[Any], parse: Callable[[Any], R], label: str) -> list[R]:
        """Build records from list entries, skipping the ones Strapi returned half-populated."""

        records: list[R] = []
        for entry in entries:
            try:
                records.append(parse(entry))
            except ValidationError as exc:
                self._logger.warning(
                    "Skipping malformed %s %s: %s",
                    label,
                    _flatten(entry).get("id"),
                    exc.errors(include_url=False),
                )
        return records

    def _entry(self, payload: Any, *, required: bool = True) -> Any:
        entry = payload.get("data") if isinstance(payload, Mapping) else None
        if entry is None and required:
            msg = "Strapi returned no entry"
            raise CmsRequestError(msg)
        return entry

    @staticmethod
    def _path_id(request: FriendRequest) -> str:
        return str(request.external_id or request.id)

    @staticmethod
    def _numeric(value: object, label: str) -> int:
        try:
            return int(str(value))
        except ValueError as exc:
            raise CmsRequestError(
                f"Invalid {label} id {value!r}",
                status_code=400,
                user_message=f"Invalid {label} id",
            ) from exc

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json: Any = None,
    ) -> Any:
        self._logger.debug("Strapi %s %s", method, path)
        try:
            response = await client.request(
                method,
                f"{self._base_url}{path}",
                params=params,
                json=json,
                headers=self._headers(),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            msg = f"Strapi {method} {path} failed with status {status}"
            raise CmsRequestError(
                msg,
                status_code=status,
                user_message=_error_message(exc.response),
            ) from exc
        except httpx.HTTPError as exc:
            msg = f"Strapi {method} {path} failed"
            raise CmsRequestError(msg) from exc
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            msg = f"Strapi {method} {path} returned invalid JSON"
            raise CmsRequestError(msg) from exc

    @asynccontextmanager
    async def _client_scope(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client


__all__ = ["StrapiGateway"]
