"""
Pytest configuration and shared fixtures.

Provides an isolated environment (no real credentials, config under a
temp XDG home), in-process backends, and small factories for entities.
"""

import asyncio
from typing import Any

import pytest

from agileboard.core.backend.local import LocalStore
from agileboard.core.config import AgileboardConfig, clear_cache
from agileboard.core.items.models import Sprint, SprintStatus, User, WorkItem
from agileboard.core.sync import RecordingNotifier, SyncService

ENV_VARS = (
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "AGILEBOARD_BACKEND",
    "AGILEBOARD_DATA_FILE",
    "AGILEBOARD_REALTIME",
)


# ==============================================================================
# Environment Fixtures
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep real credentials and user config out of every test."""
    for name in ENV_VARS:
        # setenv first so teardown also drops values a .env file exports
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    clear_cache()
    yield
    clear_cache()


# ==============================================================================
# Backend Fixtures
# ==============================================================================


class RecordingStore(LocalStore):
    """LocalStore that records every remote call it receives."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.calls: list[tuple[str, str, Any]] = []

    async def select_all(self, table, order_by=None, ascending=True):
        self.calls.append(("select_all", table, order_by))
        return await super().select_all(table, order_by, ascending)

    async def insert(self, table, row):
        self.calls.append(("insert", table, dict(row)))
        return await super().insert(table, row)

    async def update(self, table, row_id, changes):
        self.calls.append(("update", table, (row_id, dict(changes))))
        await super().update(table, row_id, changes)

    async def update_where(self, table, column, value, changes):
        self.calls.append(("update_where", table, (column, value, dict(changes))))
        await super().update_where(table, column, value, changes)

    async def delete(self, table, row_id):
        self.calls.append(("delete", table, row_id))
        await super().delete(table, row_id)

    def calls_to(self, method: str) -> list[tuple[str, str, Any]]:
        return [call for call in self.calls if call[0] == method]


class GatedStore(RecordingStore):
    """RecordingStore whose updates (single row and bulk) wait until ``gate`` is set."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.gate = asyncio.Event()

    async def update(self, table, row_id, changes):
        await self.gate.wait()
        await super().update(table, row_id, changes)

    async def update_where(self, table, column, value, changes):
        await self.gate.wait()
        await super().update_where(table, column, value, changes)


class StubBackend:
    """Backend assembled from separate store, file store and feed objects."""

    def __init__(self, store: Any = None, files: Any = None, feed: Any = None) -> None:
        self.store = store if store is not None else RecordingStore()
        self.files = files if files is not None else self.store
        self.feed = feed
        self.closed = False

    @property
    def backend_name(self) -> str:
        return "stub"

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def backend(store) -> StubBackend:
    return StubBackend(store=store, feed=store)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service(backend, notifier) -> SyncService:
    return SyncService(backend, notifier=notifier, config=AgileboardConfig())


# ==============================================================================
# Entity Factories
# ==============================================================================


def make_item(item_id: str = "A-00001", **fields: Any) -> WorkItem:
    return WorkItem(id=item_id, **fields)


def make_sprint(
    sprint_id: str, status: SprintStatus = SprintStatus.PLANNED, **fields: Any
) -> Sprint:
    fields.setdefault("name", f"Sprint {sprint_id}")
    return Sprint(id=sprint_id, status=status, **fields)


def make_user(user_id: str, name: str) -> User:
    return User(id=user_id, name=name)
