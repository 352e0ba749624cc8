"""
Backend protocols and registry.

The synchronization layer talks to three collaborators:

- RemoteStore: tables of rows (select-all ordered, insert, update, delete)
- FileStore: public buckets (upload by path, resolve public URL)
- ChangeFeed: a notification stream of inserts/updates/deletes

A Backend bundles the three. Implementations register themselves under a
name with @register_backend, mirroring how the dashboard picks a backend
from configuration.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel

from agileboard.core.config.models import AgileboardConfig
from agileboard.core.items.models import FileUpload

logger = logging.getLogger(__name__)


class ChangeEvent(BaseModel):
    """
    A change notification from the feed.

    The synchronization layer does not look at the payload (every event
    triggers a full refresh); it is kept for logging.
    """

    table: str | None = None
    type: str = "*"
    record_id: str | None = None


ChangeCallback = Callable[[ChangeEvent], Awaitable[None]]


@runtime_checkable
class RemoteStore(Protocol):
    """Row storage with the four operations the dashboard uses."""

    async def select_all(
        self,
        table: str,
        order_by: str | None = None,
        ascending: bool = True,
    ) -> list[dict[str, Any]]:
        """
        Read every row of a table.

        Args:
            table: Table name
            order_by: Column to order by
            ascending: Sort direction

        Raises:
            BackendError: If the read fails
        """
        ...

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """
        Insert one row.

        Returns:
            The stored row, including generated columns (id, created_at)

        Raises:
            BackendError: If the insert is rejected
        """
        ...

    async def update(self, table: str, row_id: str, changes: dict[str, Any]) -> None:
        """
        Update the given columns of one row by id.

        Raises:
            SchemaMismatchError: If a column is unknown to the remote schema
            BackendError: For any other failure
        """
        ...

    async def update_where(
        self, table: str, column: str, value: Any, changes: dict[str, Any]
    ) -> None:
        """Update every row whose ``column`` equals ``value``."""
        ...

    async def delete(self, table: str, row_id: str) -> None:
        """Delete one row by id."""
        ...


@runtime_checkable
class FileStore(Protocol):
    """Public file buckets."""

    async def upload(self, bucket: str, path: str, upload: FileUpload) -> str:
        """
        Store a file under ``path``.

        Returns:
            The stored object path

        Raises:
            StorageError: If the upload fails
        """
        ...

    def public_url(self, bucket: str, path: str) -> str:
        """Resolve a stored path to a publicly fetchable URL."""
        ...


@runtime_checkable
class Subscription(Protocol):
    """Handle for a live change feed subscription."""

    async def close(self) -> None:
        """Release the subscription. Safe to call more than once."""
        ...


@runtime_checkable
class ChangeFeed(Protocol):
    """Source of change notifications."""

    async def subscribe(self, tables: list[str], on_change: ChangeCallback) -> Subscription:
        """
        Start receiving change events for the given tables.

        Raises:
            RealtimeError: If the subscription cannot be established
        """
        ...


@runtime_checkable
class Backend(Protocol):
    """A remote store, file store and (optional) change feed."""

    store: RemoteStore
    files: FileStore
    feed: ChangeFeed | None

    @property
    def backend_name(self) -> str:
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...


# Backend registry
_backends: dict[str, Callable[[AgileboardConfig], Backend]] = {}


def register_backend(
    name: str,
) -> Callable[[Callable[[AgileboardConfig], Backend]], Callable[[AgileboardConfig], Backend]]:
    """
    Decorator to register a backend implementation.

    Usage:
        @register_backend("supabase")
        class SupabaseBackend:
            def __init__(self, config: AgileboardConfig) -> None:
                ...

    Args:
        name: Backend name (e.g., 'supabase', 'local')
    """

    def decorator(
        backend_class: Callable[[AgileboardConfig], Backend],
    ) -> Callable[[AgileboardConfig], Backend]:
        _backends[name] = backend_class
        return backend_class

    return decorator


def detect_backend(config: AgileboardConfig) -> str | None:
    """
    Decide which backend the configuration asks for.

    Detection order:
    1. backend.name (also set by AGILEBOARD_BACKEND)
    2. supabase, when both URL and key are present
    3. None: not configured

    Returns:
        Backend name, or None when nothing is configured
    """
    if config.backend.name:
        return config.backend.name
    if config.backend.has_credentials:
        return "supabase"
    return None


def get_backend(config: AgileboardConfig, name: str | None = None) -> Backend | None:
    """
    Build the configured backend.

    Args:
        config: Loaded configuration
        name: Explicit backend name (auto-detect if None)

    Returns:
        Backend instance, or None when no backend is configured. Naming
        supabase without SUPABASE_URL and SUPABASE_KEY counts as not configured.

    Raises:
        ValueError: If the backend name is not registered
    """
    if name is None:
        name = detect_backend(config)
    if name is None:
        return None
    if name == "supabase" and not config.backend.has_credentials:
        logger.warning("Backend supabase selected but SUPABASE_URL/SUPABASE_KEY are missing")
        return None

    backend_class = _backends.get(name)
    if backend_class is None:
        raise ValueError(
            f"Backend '{name}' not registered. Available backends: {', '.join(_backends.keys())}"
        )
    return backend_class(config)


def list_backends() -> list[str]:
    """List all registered backend names."""
    return list(_backends.keys())
