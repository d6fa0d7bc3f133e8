"""Show a user's cart, wishlist and friends as tables."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from coursemart.cli.deps import get_container
from coursemart.features import CartStore, FriendsStore, WishlistStore

# Load .env file
_env_path = Path(__file__).parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)

app = typer.Typer(help="Inspect the collections of one marketplace user")
console = Console()


def _cart_table(store: CartStore) -> Table:
    table = Table(title=f"Cart ({store.count})")
    table.add_column("Course", style="cyan")
    table.add_column("Title")
    table.add_column("Qty", justify="right")
    table.add_column("Price", justify="right", style="green")
    for item in store.items:
        table.add_row(str(item.course_id), item.title or "-", str(item.quantity), str(item.price))
    table.caption = f"Total: {store.total}"
    return table


def _wishlist_table(store: WishlistStore) -> Table:
    table = Table(title=f"Wishlist ({store.count})")
    table.add_column("Course", style="cyan")
    table.add_column("Document")
    for entry in store.items:
        table.add_row(str(entry.course_id), entry.external_id or "[dim]-[/dim]")
    return table


def _friends_table(store: FriendsStore) -> Table:
    table = Table(title=f"Friends ({store.friend_count}/{store.friend_limit})")
    table.add_column("User", style="cyan")
    table.add_column("Name")
    table.add_column("Status")
    for friend in store.friends:
        table.add_row(str(friend.id), friend.username or "-", "[green]friend[/green]")
    for request in store.outgoing:
        table.add_row(str(request.to_user), request.to_username or "-", "[yellow]sent[/yellow]")
    for request in store.incoming:
        table.add_row(
            str(request.from_user), request.from_username or "-", "[magenta]received[/magenta]"
        )
    return table


@app.command()
def main(
    user: str = typer.Argument(..., help="User id whose collections to show"),
    skip_friends: bool = typer.Option(False, "--skip-friends", help="Only show cart and wishlist"),
) -> None:
    """Load every collection for USER and print it."""

    container = get_container()
    cart = container.cart(user)
    wishlist = container.wishlist(user)
    friends = container.friends(user)

    async def _run() -> None:
        try:
            await asyncio.gather(
                cart.load(),
                wishlist.load(),
                *(() if skip_friends else (friends.load(),)),
            )
        finally:
            cart.close()
            wishlist.close()
            friends.close()

    asyncio.run(_run())

    for notification in container.session.notifier.history:
        console.print(f"[red]{notification.message}[/red]")

    console.print(_cart_table(cart))
    console.print(_wishlist_table(wishlist))
    if not skip_friends:
        console.print(_friends_table(friends))


if __name__ == "__main__":
    app()
