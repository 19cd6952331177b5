# src/study_tracker/storage/sqlite_store.py

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
import sqlite3
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

from ..core.errors import RecordStoreError
from ..core.ports import ErrorCallback, Record, SnapshotCallback
from .push_ids import PushIdGenerator

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass(slots=True)
class _Subscription:
    handle: int
    collection: str
    filter_field: str
    filter_value: Any
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback
    requested: int = 0
    delivered: int = 0


class SqliteRecordStore:
    """
    Local realtime record store backed by SQLite.

    Records are JSON documents keyed by (collection, record_id). Every successful write
    re-runs the live queries on that collection and pushes full snapshots to their
    subscribers, which is what a hosted realtime database does for us in production.

    Threading:
    - each call opens its own SQLite connection, run in a worker thread
    - subscriptions and deliveries live on the asyncio loop that created them
    """

    def __init__(
        self,
        db_path: str | Path = "records.sqlite3",
        *,
        id_generator: Callable[[], str] | None = None,
    ) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

        self._ids = id_generator or PushIdGenerator()
        self._handles = itertools.count(1)
        self._subs: dict[int, _Subscription] = {}
        self._deliveries: set[asyncio.Task[None]] = set()

        try:
            total = self.count_records()
        except Exception:
            total = -1
        logger.info("SqliteRecordStore ready db=%s total=%s", self._db_path, total)

    async def aclose(self) -> None:
        """Drop all subscriptions and cancel queued deliveries."""
        self._subs.clear()
        pending = list(self._deliveries)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    collection TEXT NOT NULL,
                    record_id TEXT NOT NULL,
                    data TEXT NOT NULL DEFAULT '{}',
                    updated_at REAL NOT NULL,
                    PRIMARY KEY (collection, record_id)
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _dumps(data: Record) -> str:
        try:
            return json.dumps(data, ensure_ascii=False, sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise RecordStoreError(f"Record is not JSON-serializable: {exc}") from exc

    @staticmethod
    def _loads(s: str | None) -> Record:
        if not s:
            return {}
        try:
            val = json.loads(s)
            return val if isinstance(val, dict) else {}
        except Exception:
            return {}

    async def _run(self, fn: Callable[..., R], *args: Any) -> R:
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as exc:
            raise RecordStoreError(str(exc)) from exc

    # ---- synchronous primitives (worker thread) ----

    def count_records(self, collection: str | None = None) -> int:
        conn = self._get_conn()
        try:
            if collection is None:
                (n,) = conn.execute("SELECT COUNT(*) FROM records").fetchone()
            else:
                (n,) = conn.execute(
                    "SELECT COUNT(*) FROM records WHERE collection = ?", (collection,)
                ).fetchone()
            return int(n)
        finally:
            conn.close()

    def get_record(self, collection: str, record_id: str) -> Record | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT data FROM records WHERE collection = ? AND record_id = ?",
                (collection, record_id),
            ).fetchone()
            return self._loads(row["data"]) if row else None
        finally:
            conn.close()

    def _put_sync(self, collection: str, record_id: str, data: Record) -> None:
        payload = self._dumps(data)
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO records(collection, record_id, data, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(collection, record_id)
                DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at
                """,
                (collection, record_id, payload, time.time()),
            )
            conn.commit()
        finally:
            conn.close()

    def _merge_sync(self, collection: str, record_id: str, fields: Record) -> None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT data FROM records WHERE collection = ? AND record_id = ?",
                (collection, record_id),
            ).fetchone()
            if row is None:
                raise RecordStoreError(f"Record not found: {collection}/{record_id}")

            data = self._loads(row["data"])
            data.update(fields)
            conn.execute(
                "UPDATE records SET data = ?, updated_at = ? WHERE collection = ? AND record_id = ?",
                (self._dumps(data), time.time(), collection, record_id),
            )
            conn.commit()
        finally:
            conn.close()

    def _delete_sync(self, collection: str, record_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "DELETE FROM records WHERE collection = ? AND record_id = ?",
                (collection, record_id),
            )
            conn.commit()
        finally:
            conn.close()

    def _query_sync(self, collection: str, field: str, value: Any) -> list[Record]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT data
                FROM records
                WHERE collection = ?
                  AND json_extract(data, ?) = ?
                ORDER BY record_id ASC
                """,
                (collection, f"$.{field}", value),
            ).fetchall()
            return [self._loads(r["data"]) for r in rows]
        finally:
            conn.close()

    # ---- RecordStore API ----

    def generate_id(self) -> str:
        return self._ids()

    async def create_record(self, collection: str, record_id: str, fields: Record) -> None:
        await self._run(self._put_sync, collection, record_id, dict(fields))
        logger.debug("Record created %s/%s", collection, record_id)
        self._notify(collection)

    async def update_fields(self, collection: str, record_id: str, fields: Record) -> None:
        await self._run(self._merge_sync, collection, record_id, dict(fields))
        logger.debug("Record updated %s/%s fields=%s", collection, record_id, sorted(fields))
        self._notify(collection)

    async def set_field(self, collection: str, record_id: str, field: str, value: Any) -> None:
        await self._run(self._merge_sync, collection, record_id, {field: value})
        logger.debug("Record field set %s/%s %s=%r", collection, record_id, field, value)
        self._notify(collection)

    async def delete_record(self, collection: str, record_id: str) -> None:
        await self._run(self._delete_sync, collection, record_id)
        logger.debug("Record deleted %s/%s", collection, record_id)
        self._notify(collection)

    def subscribe(
            self,
            collection: str,
            filter_field: str,
            filter_value: Any,
            on_snapshot: SnapshotCallback,
            on_error: ErrorCallback,
    ) -> int:
        """Register a live query. Must be called from a running event loop; the first snapshot follows shortly."""
        sub = _Subscription(
            handle=next(self._handles),
            collection=collection,
            filter_field=filter_field,
            filter_value=filter_value,
            on_snapshot=on_snapshot,
            on_error=on_error,
        )
        self._subs[sub.handle] = sub
        self._schedule(sub)
        return sub.handle

    def unsubscribe(self, handle: Any) -> None:
        self._subs.pop(handle, None)

    # ---- delivery ----

    def _notify(self, collection: str) -> None:
        for sub in list(self._subs.values()):
            if sub.collection == collection:
                self._schedule(sub)

    def _schedule(self, sub: _Subscription) -> None:
        sub.requested += 1
        task = asyncio.get_running_loop().create_task(self._deliver(sub, sub.requested))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def _deliver(self, sub: _Subscription, seq: int) -> None:
        if sub.handle not in self._subs:
            return
        try:
            records = await self._run(self._query_sync, sub.collection, sub.filter_field, sub.filter_value)
        except RecordStoreError as exc:
            if sub.handle in self._subs:
                sub.on_error(exc)
            return

        # Queries run concurrently in threads; never let an older result overwrite a newer one.
        if sub.handle not in self._subs or seq < sub.delivered:
            return
        sub.delivered = seq
        sub.on_snapshot(records)
