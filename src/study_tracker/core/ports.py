# src/study_tracker/core/ports.py

"""
Ports (interfaces) used by the core.

The stores depend on Protocols instead of a concrete backend, so the realtime
record store, auth provider and asset host stay swappable and tests can use fakes.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, Hashable, Protocol

Record = dict[str, Any]
# Raw record as stored remotely: {"task_id": "...", "user_id": "...", ...}.

SnapshotCallback = Callable[[list[Record]], None]
ErrorCallback = Callable[[Exception], None]

SubscriptionHandle = Hashable
# Opaque token returned by RecordStore.subscribe; only meaningful to unsubscribe().


class RecordStore(Protocol):
    """
    Realtime keyed-record store.

    Writes are coroutines that resolve once the store acknowledges them and raise
    RecordStoreError when it rejects them. Subscriptions deliver the full matching set
    on every change, including changes made by this same client.
    """

    def generate_id(self) -> str: ...

    async def create_record(self, collection: str, record_id: str, fields: Record) -> None: ...

    async def update_fields(self, collection: str, record_id: str, fields: Record) -> None: ...

    async def set_field(self, collection: str, record_id: str, field: str, value: Any) -> None: ...

    async def delete_record(self, collection: str, record_id: str) -> None: ...

    def subscribe(
            self,
            collection: str,
            filter_field: str,
            filter_value: Any,
            on_snapshot: SnapshotCallback,
            on_error: ErrorCallback,
    ) -> SubscriptionHandle: ...

    def unsubscribe(self, handle: SubscriptionHandle) -> None: ...


class AuthProvider(Protocol):
    """Identity provider used by the front-end (never by the stores)."""

    async def sign_in(self, email: str, password: str) -> str: ...
    async def sign_up(self, email: str, password: str) -> str: ...
    async def sign_out(self) -> None: ...
    def current_user_id(self) -> str | None: ...
    async def send_password_reset(self, email: str) -> None: ...


class AssetUploader(Protocol):
    """Binary asset host (profile pictures). Returns the public URL of the upload."""

    async def upload(self, path: Path) -> str: ...
