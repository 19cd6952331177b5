# src/study_tracker/sync/reconciling_store.py

"""
Optimistic in-memory store reconciled against a realtime record store.

One ReconcilingStore instance owns the visible list for one collection of one owner.
Writes are dispatched to the RecordStore while the visible list is updated right away;
snapshots delivered by the live subscription are merged with the override table so a
stale snapshot can never undo a completion toggle that is still in flight.

Completion override lifecycle for one record:

    settled --toggle--> pending(value, token) --ack--> settled
                                              --nack-> settled (reverted)

A second toggle while pending issues a newer token. Only the write holding the latest
token for a record may clear (or revert) its override; older settlements are ignored.

Everything runs on one asyncio loop: in-memory mutations happen between awaits, so no
locking is needed. The only suspension points are write dispatches.
"""

from __future__ import annotations

import itertools
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, fields as dataclass_fields, replace
from typing import Any, ClassVar, Generic, Protocol, TypeVar

from ..core.errors import RecordStoreError, ValidationError
from ..core.ports import Record, RecordStore
from ..core.results import OpResult
from .subscription import CollectionSubscription

logger = logging.getLogger(__name__)


class Entity(Protocol):
    def to_record(self) -> Record: ...
    def validate(self) -> None: ...


T = TypeVar("T", bound=Entity)

Watcher = Callable[[list[Any]], None]


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(slots=True, frozen=True)
class _Override:
    value: bool
    token: int
    previous: bool


class ReconcilingStore(Generic[T]):
    """
    Generic engine; subclasses describe the entity through class attributes:

    - entity_type: dataclass with from_record()/to_record()/validate()
    - entity_name: used in result messages ("Task added successfully")
    - collection: record store collection name
    - id_attr / owner_attr: identity and owner attributes (same names as record fields)
    - completion_attr: boolean attribute protected by overrides, or None
    """

    entity_type: ClassVar[type]
    entity_name: ClassVar[str]
    collection: ClassVar[str]
    id_attr: ClassVar[str]
    owner_attr: ClassVar[str] = "user_id"
    completion_attr: ClassVar[str | None] = None

    def __init__(
        self,
        record_store: RecordStore,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._records = record_store
        self._clock = clock

        self._items: list[T] = []
        self._overrides: dict[str, _Override] = {}
        self._tokens = itertools.count(1)
        self._watchers: list[Watcher] = []
        self._closed = False

        self.last_error: Exception | None = None

        self._subscription = CollectionSubscription(
            record_store,
            self.collection,
            self._on_snapshot,
            self._on_error,
            owner_field=self.owner_attr,
        )

    # ---- read side ----

    @property
    def items(self) -> list[T]:
        return list(self._items)

    @property
    def owner_id(self) -> str | None:
        return self._subscription.owner_id

    @property
    def pending_overrides(self) -> dict[str, bool]:
        return {rid: o.value for rid, o in self._overrides.items()}

    def has_override(self, record_id: str) -> bool:
        return record_id in self._overrides

    def get(self, record_id: str) -> T | None:
        for item in self._items:
            if self._id_of(item) == record_id:
                return item
        return None

    def watch(self, callback: Watcher) -> Callable[[], None]:
        """Call `callback(items)` after every change of the visible list. Returns an unwatch function."""
        self._watchers.append(callback)

        def unwatch() -> None:
            if callback in self._watchers:
                self._watchers.remove(callback)

        return unwatch

    # ---- subscription side ----

    def load(self, owner_id: str) -> None:
        """Subscribe to the owner's records; every snapshot is reconciled into the visible list."""
        if self._closed:
            raise RuntimeError(f"{type(self).__name__} is closed")

        previous_owner = self._subscription.owner_id
        if previous_owner is not None and previous_owner != owner_id:
            # Another owner's state must not leak into the new view.
            self._overrides.clear()
            self._set_items([])

        self.last_error = None
        self._subscription.start(owner_id)

    def reconcile(self, snapshot: list[T]) -> list[T]:
        """
        Merge a snapshot with in-flight overrides and publish it as the visible list.

        Records that only exist in the override table are not synthesized.
        """
        attr = self.completion_attr
        merged: list[T] = []
        for item in snapshot:
            override = self._overrides.get(self._id_of(item)) if attr else None
            if override is not None and getattr(item, attr) != override.value:  # type: ignore[arg-type]
                item = replace(item, **{attr: override.value})  # type: ignore[type-var, dict-item]
            merged.append(item)

        self._set_items(merged)
        return list(merged)

    def close(self) -> None:
        """Stop listening. Writes still in flight settle, but no longer touch the visible list."""
        self._closed = True
        self._subscription.cancel()
        self._watchers.clear()

    def _on_snapshot(self, records: list[Record]) -> None:
        if self._closed:
            return

        snapshot: list[T] = []
        for raw in records:
            try:
                snapshot.append(self.entity_type.from_record(raw))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed %s record: %r", self.collection, raw)

        self.last_error = None
        self.reconcile(snapshot)

    def _on_error(self, exc: Exception) -> None:
        # Keep the last known list; the subscription is not retried here.
        self.last_error = exc
        logger.warning("Subscription error collection=%s owner=%s: %s", self.collection, self.owner_id, exc)

    # ---- write side ----

    async def add(self, owner_id: str, **fields: Any) -> OpResult:
        if not owner_id:
            return OpResult.fail("Not signed in")

        record_id = self._records.generate_id()
        try:
            self._check_fields(fields)
            item = self._build(record_id, owner_id, fields)
            item.validate()
        except ValidationError as exc:
            logger.info("Rejected new %s: %s", self.entity_name.lower(), exc)
            return OpResult.fail(str(exc))

        error = await self._dispatch(
            "create", record_id, self._records.create_record(self.collection, record_id, item.to_record())
        )
        if error is not None:
            return OpResult.fail(error)
        return OpResult.ok(f"{self.entity_name} added successfully", record_id)

    async def update(self, record_id: str, **changes: Any) -> OpResult:
        """
        Full-field edit of a visible record, applied to the visible list immediately;
        not protected by overrides and not rolled back on failure.

        The completion flag is never part of the payload: while a toggle is in flight the
        visible value is optimistic, and only the toggle's own write may commit it.
        """
        current = self.get(record_id)
        try:
            self._check_fields(changes)
            reserved = sorted({self.id_attr, self.owner_attr, self.completion_attr} & set(changes))
            if reserved:
                raise ValidationError(f"{self.entity_name} field(s) cannot be edited: {', '.join(reserved)}")
            if current is None:
                raise ValidationError(f"{self.entity_name} not found")
            updated = replace(current, **self._normalize(changes))  # type: ignore[type-var]
            updated.validate()
        except ValidationError as exc:
            logger.info("Rejected %s edit id=%s: %s", self.entity_name.lower(), record_id, exc)
            return OpResult.fail(str(exc))

        fields = updated.to_record()
        if self.completion_attr:
            fields.pop(self.completion_attr, None)
        self._replace(record_id, updated)

        error = await self._dispatch(
            "update", record_id, self._records.update_fields(self.collection, record_id, fields)
        )
        if error is not None:
            return OpResult.fail(error)
        return OpResult.ok(f"{self.entity_name} updated successfully")

    async def delete(self, record_id: str) -> OpResult:
        """Remove immediately from the visible list; the record is not restored if the write fails."""
        self._overrides.pop(record_id, None)
        remaining = [i for i in self._items if self._id_of(i) != record_id]
        if len(remaining) != len(self._items):
            self._set_items(remaining)

        error = await self._dispatch(
            "delete", record_id, self._records.delete_record(self.collection, record_id)
        )
        if error is not None:
            return OpResult.fail(error)
        return OpResult.ok(f"{self.entity_name} deleted successfully")

    async def toggle_completion(self, record_id: str, new_value: bool) -> OpResult:
        """
        Optimistically set the completion flag, then write it.

        The visible list changes before the first await; the returned result only
        signals that the write settled.
        """
        attr = self.completion_attr
        if attr is None:
            raise TypeError(f"{self.entity_name} has no completion flag")

        new_value = bool(new_value)
        current = self.get(record_id)
        previous = bool(getattr(current, attr)) if current is not None else not new_value

        token = next(self._tokens)
        self._overrides[record_id] = _Override(value=new_value, token=token, previous=previous)
        self._set_completion(record_id, new_value)

        settled = False
        try:
            error = await self._dispatch(
                "set_field", record_id, self._records.set_field(self.collection, record_id, attr, new_value)
            )
            settled = True
        finally:
            if not settled:
                # Cancelled or crashed mid-flight: the outcome is unknown, so snapshots become authoritative again.
                current_override = self._overrides.get(record_id)
                if current_override is not None and current_override.token == token:
                    del self._overrides[record_id]

        latest = self._overrides.get(record_id)
        if latest is not None and latest.token == token:
            del self._overrides[record_id]
            if error is not None and not self._closed:
                self._set_completion(record_id, latest.previous)
        else:
            logger.debug(
                "Settled superseded toggle id=%s token=%s ok=%s", record_id, token, error is None
            )

        if error is not None:
            return OpResult.fail(error)
        return OpResult.ok(f"{self.entity_name} status updated")

    # ---- helpers ----

    def _id_of(self, item: T) -> str:
        return getattr(item, self.id_attr)

    def _normalize(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Hook for entity-specific coercion of user supplied fields."""
        return dict(fields)

    def _build(self, record_id: str, owner_id: str, fields: Mapping[str, Any]) -> T:
        kwargs = self._normalize(fields)
        kwargs[self.id_attr] = record_id
        kwargs[self.owner_attr] = owner_id
        kwargs["created_at"] = self._clock()
        if self.completion_attr:
            kwargs[self.completion_attr] = False
        return self.entity_type(**kwargs)

    def _check_fields(self, fields: Mapping[str, Any]) -> None:
        known = {f.name for f in dataclass_fields(self.entity_type)}
        unknown = sorted(set(fields) - known)
        if unknown:
            raise ValidationError(f"Unknown {self.entity_name.lower()} field(s): {', '.join(unknown)}")

    async def _dispatch(self, op: str, record_id: str, write: Awaitable[None]) -> str | None:
        """Await a write; return None on success or the store's error message."""
        logger.debug("Dispatch %s collection=%s id=%s", op, self.collection, record_id)
        try:
            await write
        except RecordStoreError as exc:
            logger.warning("%s failed collection=%s id=%s: %s", op, self.collection, record_id, exc)
            return str(exc) or f"{op} failed"
        except Exception:
            logger.exception("Unexpected %s error collection=%s id=%s", op, self.collection, record_id)
            raise
        return None

    def _set_completion(self, record_id: str, value: bool) -> None:
        current = self.get(record_id)
        if current is None or getattr(current, self.completion_attr) == value:  # type: ignore[arg-type]
            return
        self._replace(record_id, replace(current, **{self.completion_attr: value}))  # type: ignore[type-var, dict-item]

    def _replace(self, record_id: str, updated: T) -> None:
        self._set_items([updated if self._id_of(i) == record_id else i for i in self._items])

    def _set_items(self, items: list[T]) -> None:
        self._items = items
        for callback in list(self._watchers):
            try:
                callback(list(items))
            except Exception:
                logger.exception("Watcher failed collection=%s", self.collection)
