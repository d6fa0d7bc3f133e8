"""Exceptions raised by the optimistic sync core."""

from __future__ import annotations


class SyncError(RuntimeError):
    """Base class for optimistic sync failures."""


class MutationValidationError(SyncError):
    """Raised before any network call when a mutation is malformed."""


class DuplicateTargetError(MutationValidationError):
    """Raised when an add targets an entry that is already in the collection."""


class FriendLimitError(MutationValidationError):
    """Raised when a friendship would exceed the configured friend limit."""


class AlreadyInFlightError(SyncError):
    """Raised when a target already has a mutation awaiting the server."""

    def __init__(self, key: str) -> None:
        super().__init__(f"A change for {key} is still being processed, please wait")
        self.key = key


class RemoteMutationError(SyncError):
    """Raised when the remote call failed, returned an error or timed out."""


class NotFoundOnRevert(SyncError):
    """Raised internally when a rollback target has already disappeared."""


__all__ = [
    "AlreadyInFlightError",
    "DuplicateTargetError",
    "FriendLimitError",
    "MutationValidationError",
    "NotFoundOnRevert",
    "RemoteMutationError",
    "SyncError",
]
