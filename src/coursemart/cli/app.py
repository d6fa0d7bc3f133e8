"""Typer CLI wiring coursemart services."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import typer

from coursemart.container import ServiceContainer
from coursemart.domain import CourseSummary
from coursemart.features import CartStore, FriendsStore, WishlistStore
from coursemart.sync import (
    NOTIFICATION_TOPIC,
    MutationReport,
    Notification,
    NotificationRaised,
)

from .deps import get_container

app = typer.Typer(help="coursemart command-line interface")
cart_app = typer.Typer(help="Shopping cart commands")
wishlist_app = typer.Typer(help="Wishlist commands")
friends_app = typer.Typer(help="Friends and friend request commands")
app.add_typer(cart_app, name="cart")
app.add_typer(wishlist_app, name="wishlist")
app.add_typer(friends_app, name="friends")

Store = CartStore | WishlistStore | FriendsStore

UserOption = typer.Option(
    None,
    "--user",
    "-u",
    help="Acting user id (default: COURSEMART_USER_ID)",
)


def _owner(container: ServiceContainer, user: str | None) -> str:
    owner = user or container.settings.user_id
    if not owner:
        typer.echo("No user given; pass --user or set COURSEMART_USER_ID")
        raise typer.Exit(code=1)
    return owner


def _load(store: Store) -> None:
    async def _go() -> None:
        try:
            await store.load()
        finally:
            store.close()

    asyncio.run(_go())


def _mutate(
    container: ServiceContainer,
    store: Store,
    action: Callable[[], Awaitable[MutationReport[Any]]],
) -> None:
    """Load ``store``, run ``action`` and echo the notifications it raised."""

    raised: list[Notification] = []

    def _collect(event: NotificationRaised) -> None:
        raised.append(event.notification)

    unsubscribe = container.session.bus.subscribe(NOTIFICATION_TOPIC, _collect)

    async def _go() -> MutationReport[Any]:
        try:
            await store.load()
            return await action()
        finally:
            store.close()

    try:
        report = asyncio.run(_go())
    finally:
        unsubscribe()

    for notification in raised:
        typer.echo(f"[{notification.level.value}] {notification.message}")
    if not raised:
        typer.echo(f"Result: {report.status.value}")
    if not report.ok:
        raise typer.Exit(code=1)


@app.command("show-settings")
def show_settings() -> None:
    """Print the resolved application settings."""

    container = get_container()
    settings = container.settings
    typer.echo("Environment:\t" + settings.environment)
    typer.echo("CMS URL:\t" + (settings.cms_url or "(in-memory)"))
    typer.echo("User:\t\t" + (settings.user_id or "(unset)"))
    typer.echo(f"Mutation timeout:\t{settings.mutation_timeout:g}s")
    typer.echo(f"Friend limit:\t{settings.friend_limit}")


@cart_app.command("list")
def cart_list(user: str | None = UserOption) -> None:
    """List the items in the cart with the running total."""

    container = get_container()
    store = container.cart(_owner(container, user))
    _load(store)
    if not store.items:
        typer.echo("Cart is empty")
        return
    for item in store.items:
        typer.echo(f"{item.course_id}\t{item.title}\t{item.quantity} x {item.price}")
    typer.echo(f"Total: {store.total}")


@cart_app.command("add")
def cart_add(
    course_id: int,
    title: str = typer.Option("", help="Course title"),
    price: str | None = typer.Option(None, help="Displayed price label, e.g. '$49.99'"),
    quantity: int = typer.Option(1, min=1),
    user: str | None = UserOption,
) -> None:
    """Add a course to the cart."""

    container = get_container()
    course = CourseSummary(id=course_id, title=title, price_label=price)
    store = container.cart(_owner(container, user))
    _mutate(container, store, lambda: store.add_course(course, quantity=quantity))


@cart_app.command("remove")
def cart_remove(course_id: int, user: str | None = UserOption) -> None:
    """Remove a course from the cart."""

    container = get_container()
    store = container.cart(_owner(container, user))
    _mutate(container, store, lambda: store.remove_course(course_id))


@cart_app.command("clear")
def cart_clear(user: str | None = UserOption) -> None:
    """Remove every item from the cart."""

    container = get_container()
    store = container.cart(_owner(container, user))
    _mutate(container, store, store.clear)


@wishlist_app.command("list")
def wishlist_list(user: str | None = UserOption) -> None:
    """List wishlisted course ids."""

    container = get_container()
    store = container.wishlist(_owner(container, user))
    _load(store)
    if not store.items:
        typer.echo("Wishlist is empty")
        return
    for entry in store.items:
        typer.echo(f"{entry.course_id}\t{entry.external_id or '-'}")


@wishlist_app.command("toggle")
def wishlist_toggle(course_id: int, user: str | None = UserOption) -> None:
    """Add a course to the wishlist, or remove it when already present."""

    container = get_container()
    store = container.wishlist(_owner(container, user))
    course = CourseSummary(id=course_id)
    _mutate(container, store, lambda: store.toggle(course))


@friends_app.command("list")
def friends_list(user: str | None = UserOption) -> None:
    """Show friends and pending friend requests."""

    container = get_container()
    store = container.friends(_owner(container, user))
    _load(store)
    typer.echo(f"Friends ({store.friend_count}/{store.friend_limit}):")
    for friend in store.friends:
        typer.echo(f"  {friend.id}\t{friend.username or '-'}")
    typer.echo(f"Sent requests ({store.outgoing.count}):")
    for request in store.outgoing:
        typer.echo(f"  -> {request.to_user}\t{request.to_username or '-'}")
    typer.echo(f"Received requests ({store.incoming.count}):")
    for request in store.incoming:
        typer.echo(f"  <- {request.from_user}\t{request.from_username or '-'}")


@friends_app.command("send")
def friends_send(
    to_user: str,
    message: str | None = typer.Option(None, help="Optional note for the recipient"),
    user: str | None = UserOption,
) -> None:
    """Send a friend request."""

    container = get_container()
    store = container.friends(_owner(container, user))
    _mutate(container, store, lambda: store.send_request(to_user, message))


@friends_app.command("accept")
def friends_accept(from_user: str, user: str | None = UserOption) -> None:
    """Accept a received friend request."""

    container = get_container()
    store = container.friends(_owner(container, user))
    _mutate(container, store, lambda: store.accept_request(from_user))


@friends_app.command("reject")
def friends_reject(from_user: str, user: str | None = UserOption) -> None:
    """Decline a received friend request."""

    container = get_container()
    store = container.friends(_owner(container, user))
    _mutate(container, store, lambda: store.reject_request(from_user))


@friends_app.command("cancel")
def friends_cancel(to_user: str, user: str | None = UserOption) -> None:
    """Cancel a friend request you sent."""

    container = get_container()
    store = container.friends(_owner(container, user))
    _mutate(container, store, lambda: store.cancel_request(to_user))


@friends_app.command("unfriend")
def friends_unfriend(friend: str, user: str | None = UserOption) -> None:
    """Remove someone from your friends."""

    container = get_container()
    store = container.friends(_owner(container, user))
    _mutate(container, store, lambda: store.unfriend(friend))
