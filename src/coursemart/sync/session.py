"""Per-session wiring of the bus, the pending registry and the notifier."""

from __future__ import annotations

import logging
from typing import TypeVar

from coursemart.domain import CollectionKind, SyncRecord

from .bus import EventBus
from .collection import DEFAULT_MUTATION_TIMEOUT, OptimisticCollection
from .identity import KeyFunc
from .notifications import Notifier
from .pending import PendingRegistry

T = TypeVar("T", bound=SyncRecord)


class SyncSession:
    """Everything the views of one application session share.

    Collections created through :meth:`collection` are injected with the same
    bus, registry and notifier, so sibling views of a topic stay in step.
    """

    def __init__(
        self,
        *,
        bus: EventBus | None = None,
        registry: PendingRegistry | None = None,
        notifier: Notifier | None = None,
        mutation_timeout: float = DEFAULT_MUTATION_TIMEOUT,
        notification_history: int = 50,
        logger: logging.Logger | None = None,
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self.bus = bus or EventBus(logger=self._logger)
        self.registry = registry or PendingRegistry(self.bus, logger=self._logger)
        self.notifier = notifier or Notifier(
            self.bus,
            history_size=notification_history,
            logger=self._logger,
        )
        self.mutation_timeout = mutation_timeout

    def collection(
        self,
        kind: CollectionKind,
        *,
        key_of: KeyFunc[T],
        topic: str | None = None,
        view_id: str | None = None,
    ) -> OptimisticCollection[T]:
        return OptimisticCollection(
            kind,
            key_of=key_of,
            bus=self.bus,
            registry=self.registry,
            notifier=self.notifier,
            topic=topic,
            mutation_timeout=self.mutation_timeout,
            view_id=view_id,
            logger=self._logger,
        )


__all__ = ["SyncSession"]
