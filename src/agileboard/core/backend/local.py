"""
Local backend: tables, buckets and change feed inside the process.

Useful offline and in tests. Tables live in memory and, when a data file
is configured, are written back to it as JSON after every mutation:

    {
      "profiles": [...],
      "sprints": [...],
      "work_items": [...]
    }

Stored files go to ``<data file dir>/storage/<bucket>/<path>`` (or stay in
memory). Every mutation notifies the change feed subscribers, like the
hosted database does.

Only the columns of the dashboard schema are accepted, so writing an
unknown column fails the same way it does against Postgres.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from agileboard.core.backend.errors import BackendError, SchemaMismatchError, StorageError
from agileboard.core.backend.protocol import ChangeCallback, ChangeEvent, register_backend
from agileboard.core.config.models import AgileboardConfig
from agileboard.core.items.mapping import (
    SPRINT_COLUMNS,
    SPRINTS_TABLE,
    USER_COLUMNS,
    USERS_TABLE,
    WORK_ITEM_COLUMNS,
    WORK_ITEMS_TABLE,
)
from agileboard.core.items.models import FileUpload

logger = logging.getLogger(__name__)

TABLE_COLUMNS: dict[str, frozenset[str]] = {
    USERS_TABLE: frozenset(USER_COLUMNS.values()) | {"created_at"},
    SPRINTS_TABLE: frozenset(SPRINT_COLUMNS.values()) | {"created_at"},
    WORK_ITEMS_TABLE: frozenset(WORK_ITEM_COLUMNS.values()) | {"created_at"},
}


class LocalSubscription:
    """Subscription handle for the local feed."""

    def __init__(self, store: LocalStore, callback: ChangeCallback) -> None:
        self._store = store
        self._callback = callback
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._store._unsubscribe(self._callback)


class LocalStore:
    """
    In-process implementation of RemoteStore, FileStore and ChangeFeed.

    Example:
        >>> store = LocalStore()
        >>> row = await store.insert("profiles", {"name": "Ana"})
        >>> [r["name"] for r in await store.select_all("profiles", "name")]
        ['Ana']
    """

    def __init__(self, data_file: Path | str | None = None) -> None:
        self.data_file = Path(data_file) if data_file else None
        self.tables: dict[str, list[dict[str, Any]]] = {name: [] for name in TABLE_COLUMNS}
        self.files: dict[tuple[str, str], bytes] = {}
        self._subscribers: list[ChangeCallback] = []
        self._pending: set[asyncio.Task[None]] = set()
        self._load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        if self.data_file is None or not self.data_file.exists():
            return
        try:
            data = json.loads(self.data_file.read_text())
        except (json.JSONDecodeError, OSError) as e:
            raise BackendError(f"Failed to read {self.data_file}: {e}") from e
        for name in TABLE_COLUMNS:
            self.tables[name] = list(data.get(name) or [])

    def _save(self) -> None:
        if self.data_file is None:
            return
        try:
            self.data_file.parent.mkdir(parents=True, exist_ok=True)
            self.data_file.write_text(json.dumps(self.tables, indent=2, default=str))
        except OSError as e:
            raise BackendError(f"Failed to write {self.data_file}: {e}") from e

    def _rows(self, table: str) -> list[dict[str, Any]]:
        if table not in self.tables:
            raise BackendError(f"relation \"{table}\" does not exist", code="42P01")
        return self.tables[table]

    def _check_columns(self, table: str, columns: set[str]) -> None:
        unknown = columns - TABLE_COLUMNS[table]
        if unknown:
            column = sorted(unknown)[0]
            raise SchemaMismatchError(
                f"Could not find the '{column}' column of '{table}' in the schema cache",
                code="PGRST204",
            )

    # ------------------------------------------------------------------
    # RemoteStore
    # ------------------------------------------------------------------

    async def select_all(
        self,
        table: str,
        order_by: str | None = None,
        ascending: bool = True,
    ) -> list[dict[str, Any]]:
        rows = [dict(row) for row in self._rows(table)]
        if order_by:
            rows.sort(
                key=lambda row: (row.get(order_by) is None, str(row.get(order_by) or "")),
                reverse=not ascending,
            )
        return rows

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        rows = self._rows(table)
        self._check_columns(table, set(row))
        stored = dict(row)
        stored.setdefault("id", str(uuid.uuid4()))
        stored.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        if stored["id"] is None:
            stored["id"] = str(uuid.uuid4())
        if any(existing["id"] == stored["id"] for existing in rows):
            raise BackendError(
                f"duplicate key value violates unique constraint \"{table}_pkey\"",
                code="23505",
            )
        rows.append(stored)
        self._save()
        self._notify(table, "INSERT", stored["id"])
        return dict(stored)

    async def update(self, table: str, row_id: str, changes: dict[str, Any]) -> None:
        await self.update_where(table, "id", row_id, changes)

    async def update_where(
        self, table: str, column: str, value: Any, changes: dict[str, Any]
    ) -> None:
        rows = self._rows(table)
        self._check_columns(table, set(changes) | {column})
        touched = [row for row in rows if row.get(column) == value]
        for row in touched:
            row.update(changes)
        if touched:
            self._save()
            for row in touched:
                self._notify(table, "UPDATE", row["id"])

    async def delete(self, table: str, row_id: str) -> None:
        rows = self._rows(table)
        remaining = [row for row in rows if row["id"] != row_id]
        if len(remaining) != len(rows):
            self.tables[table] = remaining
            self._save()
            self._notify(table, "DELETE", row_id)

    # ------------------------------------------------------------------
    # FileStore
    # ------------------------------------------------------------------

    def _storage_path(self, bucket: str, path: str) -> Path | None:
        if self.data_file is None:
            return None
        return self.data_file.parent / "storage" / bucket / path

    async def upload(self, bucket: str, path: str, upload: FileUpload) -> str:
        if (bucket, path) in self.files:
            raise StorageError("The resource already exists", code="409", status_code=409)
        self.files[(bucket, path)] = upload.content
        target = self._storage_path(bucket, path)
        if target is not None:
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(upload.content)
            except OSError as e:
                raise StorageError(f"Failed to store {path}: {e}") from e
        return path

    def public_url(self, bucket: str, path: str) -> str:
        target = self._storage_path(bucket, path)
        if target is not None:
            return target.resolve().as_uri()
        return f"local://{bucket}/{path}"

    # ------------------------------------------------------------------
    # ChangeFeed
    # ------------------------------------------------------------------

    async def subscribe(self, tables: list[str], on_change: ChangeCallback) -> LocalSubscription:
        self._subscribers.append(on_change)
        return LocalSubscription(self, on_change)

    def _unsubscribe(self, callback: ChangeCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _notify(self, table: str, change_type: str, record_id: Any) -> None:
        if not self._subscribers:
            return
        event = ChangeEvent(table=table, type=change_type, record_id=str(record_id))
        loop = asyncio.get_running_loop()
        for callback in list(self._subscribers):
            task = loop.create_task(callback(event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def wait_idle(self) -> None:
        """Wait until every delivered change notification has been handled."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


@register_backend("local")
class LocalBackend:
    """Backend keeping everything in this process (optionally in a JSON file)."""

    def __init__(self, config: AgileboardConfig | None = None) -> None:
        config = config or AgileboardConfig()
        self.local = LocalStore(config.backend.data_file)
        self.store = self.local
        self.files = self.local
        self.feed = self.local if config.realtime.enabled else None

    @property
    def backend_name(self) -> str:
        return "local"

    async def aclose(self) -> None:
        await self.local.wait_idle()
