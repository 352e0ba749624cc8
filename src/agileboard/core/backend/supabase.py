"""
Supabase backend over plain HTTP.

Talks to the two REST surfaces of a Supabase project with httpx:

- PostgREST (``/rest/v1/<table>``) for the dashboard tables
- Storage (``/storage/v1/object/<bucket>/<path>``) for avatars and attachments

Realtime lives in agileboard.core.backend.realtime. No retries and no
custom timeouts are configured here; httpx defaults apply.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from agileboard.core.backend.errors import (
    BackendError,
    NotConfiguredError,
    SchemaMismatchError,
    StorageError,
    StoragePermissionError,
    is_permission_denied,
    is_schema_mismatch,
)
from agileboard.core.backend.protocol import register_backend
from agileboard.core.backend.realtime import SupabaseRealtime
from agileboard.core.config.models import AgileboardConfig
from agileboard.core.items.models import FileUpload

logger = logging.getLogger(__name__)


def _error_payload(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {"message": response.text or f"HTTP {response.status_code}"}
    if isinstance(data, dict):
        return data
    return {"message": str(data)}


def raise_for_rest_error(response: httpx.Response) -> None:
    """
    Raise the matching BackendError for a failed PostgREST response.

    PostgREST errors carry ``code``, ``message``, ``details`` and ``hint``.
    """
    if response.status_code < 400:
        return
    payload = _error_payload(response)
    code = payload.get("code")
    message = payload.get("message") or f"HTTP {response.status_code}"
    error_class = SchemaMismatchError if is_schema_mismatch(code, message) else BackendError
    raise error_class(
        message,
        code=code,
        details=payload.get("details") or payload.get("hint"),
        status_code=response.status_code,
    )


def raise_for_storage_error(response: httpx.Response) -> None:
    """Raise the matching StorageError for a failed Storage response."""
    if response.status_code < 400:
        return
    payload = _error_payload(response)
    message = payload.get("message") or payload.get("error") or f"HTTP {response.status_code}"
    code = str(payload.get("statusCode") or payload.get("code") or response.status_code)
    if is_permission_denied(code, message, response.status_code):
        raise StoragePermissionError(message, code=code, status_code=response.status_code)
    raise StorageError(message, code=code, status_code=response.status_code)


class SupabaseClient:
    """
    Async client for the PostgREST and Storage APIs of one project.

    Implements both the RemoteStore and the FileStore protocols.

    Example:
        >>> client = SupabaseClient("https://abc.supabase.co", "anon-key")
        >>> rows = await client.select_all("sprints", order_by="created_at")
        >>> await client.aclose()
    """

    def __init__(
        self,
        url: str,
        key: str,
        schema: str = "public",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            url: Project URL (https://<ref>.supabase.co)
            key: API key sent as ``apikey`` and bearer token
            schema: Postgres schema exposed through PostgREST
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.url = url.rstrip("/")
        self.schema = schema
        headers = {"apikey": key, "Authorization": f"Bearer {key}"}
        if schema != "public":
            headers["Accept-Profile"] = schema
            headers["Content-Profile"] = schema
        self._http = httpx.AsyncClient(base_url=self.url, headers=headers, transport=transport)

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise BackendError(f"Network error on {method} {path}: {e}") from e

    # ------------------------------------------------------------------
    # RemoteStore
    # ------------------------------------------------------------------

    async def select_all(
        self,
        table: str,
        order_by: str | None = None,
        ascending: bool = True,
    ) -> list[dict[str, Any]]:
        params = {"select": "*"}
        if order_by:
            params["order"] = f"{order_by}.{'asc' if ascending else 'desc'}"
        response = await self._send("GET", f"/rest/v1/{table}", params=params)
        raise_for_rest_error(response)
        rows = response.json()
        logger.debug("Fetched %d rows from %s", len(rows), table)
        return rows

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        response = await self._send(
            "POST",
            f"/rest/v1/{table}",
            json=[row],
            headers={"Prefer": "return=representation"},
        )
        raise_for_rest_error(response)
        rows = response.json()
        if not rows:
            raise BackendError(f"Insert into {table} returned no row")
        return rows[0]

    async def update(self, table: str, row_id: str, changes: dict[str, Any]) -> None:
        await self.update_where(table, "id", row_id, changes)

    async def update_where(
        self, table: str, column: str, value: Any, changes: dict[str, Any]
    ) -> None:
        response = await self._send(
            "PATCH",
            f"/rest/v1/{table}",
            params={column: f"eq.{value}"},
            json=changes,
            headers={"Prefer": "return=minimal"},
        )
        raise_for_rest_error(response)

    async def delete(self, table: str, row_id: str) -> None:
        response = await self._send("DELETE", f"/rest/v1/{table}", params={"id": f"eq.{row_id}"})
        raise_for_rest_error(response)

    # ------------------------------------------------------------------
    # FileStore
    # ------------------------------------------------------------------

    async def upload(self, bucket: str, path: str, upload: FileUpload) -> str:
        response = await self._send(
            "POST",
            f"/storage/v1/object/{bucket}/{quote(path)}",
            content=upload.content,
            headers={"Content-Type": upload.mime_type, "x-upsert": "false"},
        )
        raise_for_storage_error(response)
        return path

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{bucket}/{quote(path)}"

    async def aclose(self) -> None:
        await self._http.aclose()


@register_backend("supabase")
class SupabaseBackend:
    """
    Hosted Supabase project: PostgREST tables, Storage buckets, Realtime feed.

    Requires backend.url and backend.key in the configuration.
    """

    def __init__(
        self,
        config: AgileboardConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not config.backend.has_credentials:
            raise NotConfiguredError("SUPABASE_URL and SUPABASE_KEY are required")

        url = config.backend.url or ""
        key = config.backend.key or ""
        self.client = SupabaseClient(
            url, key, schema=config.backend.schema_name, transport=transport
        )
        self.store = self.client
        self.files = self.client
        self.feed = (
            SupabaseRealtime(
                url,
                key,
                channel=config.realtime.channel,
                schema=config.backend.schema_name,
                heartbeat_seconds=config.realtime.heartbeat_seconds,
            )
            if config.realtime.enabled
            else None
        )

    @property
    def backend_name(self) -> str:
        return "supabase"

    async def aclose(self) -> None:
        await self.client.aclose()
