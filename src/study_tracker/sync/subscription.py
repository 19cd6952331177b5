# src/study_tracker/sync/subscription.py

from __future__ import annotations

import logging
from typing import Any

from ..core.ports import ErrorCallback, Record, RecordStore, SnapshotCallback, SubscriptionHandle

logger = logging.getLogger(__name__)


class CollectionSubscription:
    """
    Live owner-scoped query over one collection.

    Every change to the matching set (including our own writes) delivers the full
    current set to on_snapshot. Switching owners resubscribes; cancel() guarantees no
    further callbacks, even for deliveries the backend had already queued.
    """

    def __init__(
        self,
        store: RecordStore,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        *,
        owner_field: str = "user_id",
    ) -> None:
        self._store = store
        self._collection = collection
        self._owner_field = owner_field
        self._on_snapshot = on_snapshot
        self._on_error = on_error

        self._handle: SubscriptionHandle | None = None
        self._owner_id: str | None = None
        # Bumped on every (re)subscribe/cancel; callbacks from older generations are dropped.
        self._generation = 0

    @property
    def owner_id(self) -> str | None:
        return self._owner_id

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start(self, owner_id: str) -> None:
        if not owner_id:
            raise ValueError("owner_id is required")

        if self._handle is not None:
            if owner_id == self._owner_id:
                return
            self.cancel()

        self._generation += 1
        generation = self._generation
        self._owner_id = owner_id

        def deliver(records: list[Record]) -> None:
            if generation != self._generation:
                return
            self._on_snapshot(list(records or []))

        def fail(exc: Exception) -> None:
            if generation != self._generation:
                return
            self._on_error(exc)

        self._handle = self._store.subscribe(
            self._collection, self._owner_field, owner_id, deliver, fail
        )
        logger.debug("Subscribed collection=%s owner=%s", self._collection, owner_id)

    def cancel(self) -> None:
        self._generation += 1
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            self._store.unsubscribe(handle)
        finally:
            logger.debug("Unsubscribed collection=%s owner=%s", self._collection, self._owner_id)
            self._owner_id = None

    def __repr__(self) -> str:
        state: Any = self._owner_id if self.active else "inactive"
        return f"CollectionSubscription({self._collection!r}, owner={state!r})"
