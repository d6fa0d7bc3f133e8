"""Stores backing the cart, wishlist and friends views."""

from .base import CollectionStore, owner_topic
from .cart import CartStore
from .friends import DEFAULT_FRIEND_LIMIT, FriendsStore, direction_of
from .wishlist import WishlistStore

__all__ = [
    "DEFAULT_FRIEND_LIMIT",
    "CartStore",
    "CollectionStore",
    "FriendsStore",
    "WishlistStore",
    "direction_of",
    "owner_topic",
]
