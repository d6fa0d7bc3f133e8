"""Session-wide registry of in-flight mutations keyed by target."""

from __future__ import annotations

import logging

from coursemart.domain import CollectionKind

from .bus import EventBus
from .events import PendingChanged
from .exceptions import AlreadyInFlightError
from .models import PendingMutation, TargetRef

WILDCARD = "*"


class PendingRegistry:
    """Single ``{target key -> PendingMutation}`` map shared by every view.

    A target moves ``Idle -> Pending`` through :meth:`acquire` and back through
    :meth:`release`. A collection-wide key (``<kind>:*``) conflicts with every
    key of the same kind. Markers owned by a retired view are stale and are
    replaced instead of refusing the new mutation.
    """

    def __init__(
        self,
        bus: EventBus | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._bus = bus
        self._pending: dict[str, PendingMutation] = {}
        self._retired: set[str] = set()
        self._logger = logger or logging.getLogger(__name__)

    @staticmethod
    def key_for(kind: CollectionKind, target: TargetRef) -> str:
        return f"{kind.value}:{target.marker}"

    def _conflicts(self, key: str) -> list[PendingMutation]:
        kind, _, marker = key.partition(":")
        wildcard = f"{kind}:{WILDCARD}"
        if marker == WILDCARD:
            return [
                mutation
                for existing, mutation in self._pending.items()
                if existing.partition(":")[0] == kind
            ]
        return [
            mutation
            for existing, mutation in self._pending.items()
            if existing in {key, wildcard}
        ]

    def _is_stale(self, mutation: PendingMutation) -> bool:
        return mutation.owner in self._retired

    def ensure_available(self, key: str) -> None:
        """Raise if ``key`` conflicts with a live mutation; drop stale markers."""

        for mutation in self._conflicts(key):
            if not self._is_stale(mutation):
                raise AlreadyInFlightError(mutation.key)
            self._logger.debug("Clearing stale pending marker %s", mutation.key)
            self._drop(mutation)

    def acquire(self, mutation: PendingMutation) -> None:
        self.ensure_available(mutation.key)
        self._pending[mutation.key] = mutation
        self._publish(mutation, pending=True)

    def release(self, key: str, mutation: PendingMutation | None = None) -> bool:
        """Clear the marker for ``key``; return False when nothing was cleared."""

        current = self._pending.get(key)
        if current is None or (mutation is not None and current.id != mutation.id):
            return False
        self._drop(current)
        return True

    def clear_stale(self, key: str) -> bool:
        current = self._pending.get(key)
        if current is None or not self._is_stale(current):
            return False
        self._drop(current)
        return True

    def retire_owner(self, owner: str) -> None:
        """Mark every marker held by ``owner`` as stale (the view was torn down)."""

        if any(mutation.owner == owner for mutation in self._pending.values()):
            self._retired.add(owner)

    def is_pending(self, key: str) -> bool:
        mutation = self._pending.get(key)
        return mutation is not None and not self._is_stale(mutation)

    def get(self, key: str) -> PendingMutation | None:
        return self._pending.get(key)

    def pending_keys(self, kind: CollectionKind | None = None) -> tuple[str, ...]:
        prefix = f"{kind.value}:" if kind is not None else ""
        return tuple(key for key in self._pending if key.startswith(prefix))

    def __len__(self) -> int:
        return len(self._pending)

    def _drop(self, mutation: PendingMutation) -> None:
        self._pending.pop(mutation.key, None)
        if mutation.owner in self._retired and not any(
            other.owner == mutation.owner for other in self._pending.values()
        ):
            self._retired.discard(mutation.owner)
        self._publish(mutation, pending=False)

    def _publish(self, mutation: PendingMutation, *, pending: bool) -> None:
        if self._bus is not None:
            self._bus.publish(
                PendingChanged(key=mutation.key, pending=pending, owner=mutation.owner)
            )


__all__ = ["WILDCARD", "PendingRegistry"]
