"""
Tests for the Supabase HTTP client, against httpx.MockTransport.
"""

import json

import httpx
import pytest

from agileboard.core.backend import (
    BackendError,
    NotConfiguredError,
    SchemaMismatchError,
    StorageError,
    StoragePermissionError,
    get_backend,
)
from agileboard.core.backend.supabase import SupabaseBackend, SupabaseClient
from agileboard.core.config import AgileboardConfig, BackendConfig, RealtimeConfig
from agileboard.core.items.models import FileUpload

URL = "https://abc.supabase.co"


def make_client(handler, schema="public"):
    return SupabaseClient(URL, "anon-key", schema=schema, transport=httpx.MockTransport(handler))


class TestRestCalls:
    """Tests for the PostgREST requests."""

    @pytest.mark.asyncio
    async def test_select_all(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[{"id": "1", "name": "S1"}])

        client = make_client(handler)
        rows = await client.select_all("sprints", order_by="created_at")
        await client.aclose()

        assert rows == [{"id": "1", "name": "S1"}]
        request = seen[0]
        assert request.url.path == "/rest/v1/sprints"
        assert request.url.params["order"] == "created_at.asc"
        assert request.url.params["select"] == "*"
        assert request.headers["apikey"] == "anon-key"
        assert request.headers["authorization"] == "Bearer anon-key"

    @pytest.mark.asyncio
    async def test_insert_returns_row(self):
        def handler(request):
            assert request.method == "POST"
            assert request.headers["prefer"] == "return=representation"
            body = json.loads(request.content)
            return httpx.Response(201, json=[{**body[0], "id": "new-id"}])

        client = make_client(handler)
        row = await client.insert("sprints", {"name": "S1"})
        assert row == {"name": "S1", "id": "new-id"}

    @pytest.mark.asyncio
    async def test_update_sends_only_changes(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        client = make_client(handler)
        await client.update("work_items", "A-00001", {"title": "X"})

        request = seen[0]
        assert request.method == "PATCH"
        assert request.url.params["id"] == "eq.A-00001"
        assert json.loads(request.content) == {"title": "X"}

    @pytest.mark.asyncio
    async def test_update_where(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        client = make_client(handler)
        await client.update_where("work_items", "sprint_id", "s1", {"sprint_id": None})
        assert seen[0].url.params["sprint_id"] == "eq.s1"
        assert json.loads(seen[0].content) == {"sprint_id": None}

    @pytest.mark.asyncio
    async def test_delete(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        client = make_client(handler)
        await client.delete("profiles", "u1")
        assert seen[0].method == "DELETE"
        assert seen[0].url.params["id"] == "eq.u1"

    @pytest.mark.asyncio
    async def test_custom_schema_headers(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        client = make_client(handler, schema="agile")
        await client.select_all("profiles")
        assert seen[0].headers["accept-profile"] == "agile"


class TestRestErrors:
    """Tests for error classification."""

    @pytest.mark.asyncio
    async def test_unknown_column(self):
        def handler(request):
            return httpx.Response(
                400,
                json={
                    "code": "PGRST204",
                    "message": (
                        "Could not find the 'kpi' column of 'work_items' in the schema cache"
                    ),
                },
            )

        client = make_client(handler)
        with pytest.raises(SchemaMismatchError) as exc_info:
            await client.update("work_items", "A-00001", {"kpi": "x"})
        assert exc_info.value.code == "PGRST204"
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_generic_database_error(self):
        def handler(request):
            return httpx.Response(
                409, json={"code": "23505", "message": "duplicate key value", "details": "d"}
            )

        client = make_client(handler)
        with pytest.raises(BackendError) as exc_info:
            await client.insert("work_items", {"id": "A-00001"})
        assert not isinstance(exc_info.value, SchemaMismatchError)
        assert exc_info.value.details == "d"

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = make_client(handler)
        with pytest.raises(BackendError, match="Network error"):
            await client.select_all("profiles")

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        def handler(request):
            return httpx.Response(502, text="Bad gateway")

        client = make_client(handler)
        with pytest.raises(BackendError, match="Bad gateway"):
            await client.select_all("profiles")


class TestStorage:
    """Tests for the Storage requests."""

    @pytest.mark.asyncio
    async def test_upload(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"Key": "attachments/x"})

        client = make_client(handler)
        upload = FileUpload(name="a b.pdf", content=b"%PDF", mime_type="application/pdf")
        path = await client.upload("attachments", "attachments/A-1/1-a b.pdf", upload)

        assert path == "attachments/A-1/1-a b.pdf"
        request = seen[0]
        assert request.url.raw_path.decode().startswith(
            "/storage/v1/object/attachments/attachments/A-1/1-a%20b.pdf"
        )
        assert request.headers["content-type"] == "application/pdf"
        assert request.content == b"%PDF"

    def test_public_url(self):
        client = make_client(lambda request: httpx.Response(200))
        assert (
            client.public_url("avatars", "1-me.png")
            == f"{URL}/storage/v1/object/public/avatars/1-me.png"
        )

    @pytest.mark.asyncio
    async def test_permission_denied(self):
        def handler(request):
            return httpx.Response(
                400,
                json={
                    "statusCode": "403",
                    "error": "Unauthorized",
                    "message": "new row violates row-level security policy",
                },
            )

        client = make_client(handler)
        with pytest.raises(StoragePermissionError):
            await client.upload("avatars", "p", FileUpload(name="a", content=b"x"))

    @pytest.mark.asyncio
    async def test_other_storage_error(self):
        def handler(request):
            return httpx.Response(
                409, json={"statusCode": "409", "error": "Duplicate", "message": "exists"}
            )

        client = make_client(handler)
        with pytest.raises(StorageError) as exc_info:
            await client.upload("avatars", "p", FileUpload(name="a", content=b"x"))
        assert not isinstance(exc_info.value, StoragePermissionError)


class TestSupabaseBackend:
    def test_requires_credentials(self):
        with pytest.raises(NotConfiguredError):
            SupabaseBackend(AgileboardConfig(backend=BackendConfig(name="supabase")))

    def test_named_without_credentials_is_unconfigured(self):
        assert get_backend(AgileboardConfig(backend=BackendConfig(name="supabase"))) is None
        assert get_backend(AgileboardConfig(), name="supabase") is None

    def test_detected_from_credentials(self):
        config = AgileboardConfig(
            backend=BackendConfig(url=URL, key="k"),
            realtime=RealtimeConfig(enabled=False),
        )
        backend = get_backend(config)
        assert backend.backend_name == "supabase"
        assert backend.feed is None

    def test_realtime_feed(self):
        config = AgileboardConfig(backend=BackendConfig(url=URL, key="k"))
        backend = SupabaseBackend(config)
        assert backend.feed is not None
        assert backend.feed.socket_url.startswith("wss://abc.supabase.co/realtime/v1/websocket")
