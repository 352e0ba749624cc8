"""
Tests for the dashboard API.

Tests validate:
- Snapshot and health endpoints, with and without a backend
- Work item CRUD, column moves and attachments
- Sprint CRUD, selection and date sync
- Users
- Report endpoints
- Error response format and status code mapping
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from agileboard.api.app import ErrorCode, create_app
from agileboard.core.backend import BackendError, SchemaMismatchError
from agileboard.core.items.ids import WORK_ITEM_ID_PATTERN
from agileboard.core.sync import RecordingNotifier, SyncService
from agileboard.core.sync.service import SCHEMA_MISMATCH_MESSAGE

from conftest import RecordingStore, StubBackend


@pytest.fixture
def api_store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def api_service(api_store) -> SyncService:
    return SyncService(StubBackend(store=api_store), notifier=RecordingNotifier())


@pytest.fixture
def client(api_service):
    with TestClient(create_app(api_service)) as test_client:
        yield test_client


def create_item(client: TestClient, **fields) -> dict:
    response = client.post("/api/items", json=fields)
    assert response.status_code == 201, response.text
    return response.json()


def assert_error(response, status_code: int, error_code: ErrorCode) -> dict:
    assert response.status_code == status_code, response.text
    data = response.json()
    assert data["error_code"] == error_code
    assert data["request_id"]
    assert "Traceback" not in str(data)
    return data


# ==============================================================================
# Health and snapshot
# ==============================================================================


class TestHealth:
    def test_root(self, client):
        assert client.get("/").json()["status"] == "ok"

    def test_health_reports_backend(self, client):
        data = client.get("/health").json()
        assert data == {"status": "healthy", "configured": True, "subscribed": False}


class TestSnapshot:
    def test_loaded_on_startup(self, api_store):
        api_store.tables["profiles"].append({"id": "u1", "name": "Ana"})
        service = SyncService(StubBackend(store=api_store))

        with TestClient(create_app(service)) as client:
            data = client.get("/api/snapshot").json()

        assert data["loading"] is False
        assert data["configured"] is True
        assert [u["name"] for u in data["users"]] == ["Ana"]

    def test_refresh_picks_up_remote_rows(self, client, api_store):
        api_store.tables["work_items"].append({"id": "A-00001", "title": "Remote"})

        data = client.post("/api/refresh").json()
        assert [i["title"] for i in data["work_items"]] == ["Remote"]


class TestUnconfigured:
    @pytest.fixture
    def bare_client(self):
        with TestClient(create_app(SyncService(None))) as test_client:
            yield test_client

    def test_snapshot_still_answers(self, bare_client):
        data = bare_client.get("/api/snapshot").json()
        assert data["configured"] is False
        assert data["loading"] is False
        assert data["work_items"] == []

    def test_data_routes_return_503(self, bare_client):
        data = assert_error(bare_client.get("/api/items"), 503, ErrorCode.NOT_CONFIGURED)
        assert "SUPABASE_URL" in data["message"]

    def test_health(self, bare_client):
        assert bare_client.get("/health").json()["configured"] is False


# ==============================================================================
# Work items
# ==============================================================================


class TestItems:
    def test_create_generates_id(self, client):
        item = create_item(client, title="Login", type="Task", effort=3)

        assert WORK_ITEM_ID_PATTERN.match(item["id"])
        assert item["type"] == "Task"
        assert item["column"] == "New"

    def test_create_defaults_title(self, client):
        assert create_item(client)["title"] == "New Item"

    def test_create_rejects_unknown_field(self, client):
        response = client.post("/api/items", json={"colour": "red"})
        assert_error(response, 400, ErrorCode.INVALID_REQUEST)

    def test_get_includes_rollup(self, client):
        parent = create_item(client, title="Checkout", type="Delivery")
        create_item(client, type="Task", parent_id=parent["id"], effort=3, status="Closed")
        create_item(client, type="Task", parent_id=parent["id"], effort=1)

        data = client.get(f"/api/items/{parent['id']}").json()

        assert data["item"]["id"] == parent["id"]
        assert data["rollup"] == {"total_effort": 4, "progress": 75.0}

    def test_get_unknown_is_404(self, client):
        data = assert_error(client.get("/api/items/A-ZZZZZ"), 404, ErrorCode.NOT_FOUND)
        assert "A-ZZZZZ" in data["message"]

    def test_list_filter_and_sort(self, client):
        create_item(client, title="Card form", effort=1)
        create_item(client, title="Card validation", effort=5)
        create_item(client, title="Reports")

        params = {"filter": "card", "sort": "effort", "desc": True}
        response = client.get("/api/items", params=params)

        assert [i["title"] for i in response.json()] == ["Card validation", "Card form"]

    def test_list_unknown_sort_key(self, client):
        assert_error(client.get("/api/items?sort=colour"), 400, ErrorCode.INVALID_REQUEST)

    def test_list_by_type(self, client):
        create_item(client, title="t", type="Task")
        create_item(client, title="b", type="Bug")
        assert [i["title"] for i in client.get("/api/items?type=bug").json()] == ["b"]

    def test_patch_sends_only_given_fields(self, client, api_store):
        item = create_item(client, title="Old")

        response = client.patch(f"/api/items/{item['id']}", json={"title": "New"})

        assert response.status_code == 200
        assert response.json()["title"] == "New"
        assert api_store.calls_to("update")[-1] == (
            "update",
            "work_items",
            (item["id"], {"title": "New"}),
        )

    def test_patch_invalid_value(self, client):
        item = create_item(client)
        response = client.patch(f"/api/items/{item['id']}", json={"priority": "P9"})
        assert_error(response, 400, ErrorCode.INVALID_REQUEST)

    def test_patch_schema_mismatch(self, client, api_store):
        item = create_item(client, title="Old")
        api_store.update = AsyncMock(side_effect=SchemaMismatchError("no column", code="PGRST204"))

        response = client.patch(f"/api/items/{item['id']}", json={"title": "New"})

        data = assert_error(response, 502, ErrorCode.BACKEND_ERROR)
        assert data["message"] == SCHEMA_MISMATCH_MESSAGE
        assert client.get("/api/alerts").json() == [SCHEMA_MISMATCH_MESSAGE]
        # Local change stands
        assert client.get(f"/api/items/{item['id']}").json()["item"]["title"] == "New"

    def test_move_column_sets_status(self, client):
        item = create_item(client)

        response = client.put(f"/api/items/{item['id']}/column", json={"column": "Done"})

        assert response.json()["column"] == "Done"
        assert response.json()["status"] == "Closed"

    def test_move_to_unknown_column(self, client):
        item = create_item(client)
        response = client.put(f"/api/items/{item['id']}/column", json={"column": "Later"})
        assert_error(response, 422, ErrorCode.VALIDATION_ERROR)

    def test_delete(self, client):
        item = create_item(client)

        assert client.delete(f"/api/items/{item['id']}").json() == {"deleted": True}
        assert client.get(f"/api/items/{item['id']}").status_code == 404

    def test_delete_failure_is_502(self, client, api_store):
        item = create_item(client)
        api_store.delete = AsyncMock(side_effect=BackendError("locked"))

        data = assert_error(client.delete(f"/api/items/{item['id']}"), 502, ErrorCode.BACKEND_ERROR)
        assert "locked" in data["message"]


class TestAttachments:
    def test_upload_and_remove(self, client, api_store):
        item = create_item(client)

        response = client.post(
            f"/api/items/{item['id']}/attachments",
            params={"name": "notes.txt"},
            content=b"hello",
            headers={"content-type": "text/plain"},
        )

        assert response.status_code == 201
        attachment = response.json()
        assert attachment["name"] == "notes.txt"
        assert attachment["mime_type"] == "text/plain"
        assert api_store.files[("attachments", attachment["id"])] == b"hello"

        removed = client.delete(f"/api/items/{item['id']}/attachments/{attachment['id']}")
        assert removed.json() == {"removed": True}
        assert client.get(f"/api/items/{item['id']}").json()["item"]["attachments"] == []
        # The stored file stays
        assert ("attachments", attachment["id"]) in api_store.files

    def test_upload_fails_when_row_update_fails(self, client, api_store):
        item = create_item(client)
        api_store.update = AsyncMock(side_effect=BackendError("row locked"))

        response = client.post(
            f"/api/items/{item['id']}/attachments",
            params={"name": "notes.txt"},
            content=b"hello",
        )

        assert_error(response, 502, ErrorCode.BACKEND_ERROR)
        assert client.get(f"/api/items/{item['id']}").json()["item"]["attachments"] == []

    def test_remove_unknown_attachment(self, client):
        item = create_item(client)
        response = client.delete(f"/api/items/{item['id']}/attachments/nope")
        assert_error(response, 404, ErrorCode.NOT_FOUND)


# ==============================================================================
# Sprints
# ==============================================================================


class TestSprints:
    def test_create_and_select(self, client):
        response = client.post(
            "/api/sprints",
            json={
                "name": "Sprint 7",
                "start_date": "2025-01-01",
                "end_date": "2025-01-14",
                "objective": "Ship v2",
            },
        )

        assert response.status_code == 201
        sprint = response.json()
        assert sprint["status"] == "Planned"
        assert sprint["start_date"] == "2025-01-01"
        snapshot = client.get("/api/snapshot").json()
        assert snapshot["selected_sprint"]["id"] == sprint["id"]

    def test_create_with_defaults(self, client):
        first = client.post(
            "/api/sprints", json={"start_date": "2025-01-01", "end_date": "2025-01-14"}
        ).json()
        second = client.post("/api/sprints").json()

        assert first["name"].startswith("SPRINT ")
        assert second["name"] == "SPRINT 2025 - NEW"
        assert second["start_date"] == "2025-01-15"
        assert second["end_date"] == "2025-01-29"

    def test_select_and_update(self, client):
        first = client.post("/api/sprints", json={"name": "S1"}).json()
        client.post("/api/sprints", json={"name": "S2"})

        selected = client.put("/api/sprints/selected", json={"sprint_id": first["id"]})
        assert selected.json()["id"] == first["id"]
        assert client.get("/api/snapshot").json()["selected_sprint"]["id"] == first["id"]

        updated = client.patch(f"/api/sprints/{first['id']}", json={"status": "Active"})
        assert updated.json()["status"] == "Active"

    def test_select_unknown(self, client):
        response = client.put("/api/sprints/selected", json={"sprint_id": "nope"})
        assert_error(response, 404, ErrorCode.NOT_FOUND)

    def test_delete_unlinks_items(self, client):
        sprint = client.post("/api/sprints", json={"name": "S1"}).json()
        item = create_item(client, sprint_id=sprint["id"])

        assert client.delete(f"/api/sprints/{sprint['id']}").json() == {"deleted": True}

        assert client.get(f"/api/items/{item['id']}").json()["item"]["sprint_id"] is None
        assert client.get("/api/sprints").json() == []

    def test_sync_dates(self, client):
        sprint = client.post(
            "/api/sprints",
            json={"name": "Jan", "start_date": "2025-01-01", "end_date": "2025-01-14"},
        ).json()
        item = create_item(client, type="Task", start_date="2025-01-03", end_date="2025-01-14")

        response = client.post("/api/sprints/sync-dates", json={"inclusive": False})
        assert response.json() == []

        response = client.post("/api/sprints/sync-dates")
        assert response.json() == [
            {"item_id": item["id"], "sprint_id": sprint["id"], "previous_sprint_id": None}
        ]


# ==============================================================================
# Users
# ==============================================================================


class TestUsers:
    def test_add_list_remove(self, client):
        response = client.post("/api/users", json={"name": "Ana"})
        assert response.status_code == 201
        user = response.json()
        assert user["name"] == "Ana"

        assert [u["id"] for u in client.get("/api/users").json()] == [user["id"]]
        assert client.delete(f"/api/users/{user['id']}").json() == {"deleted": True}
        assert client.get("/api/users").json() == []

    def test_blank_name(self, client):
        assert_error(client.post("/api/users", json={"name": ""}), 422, ErrorCode.VALIDATION_ERROR)

    def test_remove_unknown(self, client):
        assert_error(client.delete("/api/users/nope"), 404, ErrorCode.NOT_FOUND)


# ==============================================================================
# Reports
# ==============================================================================


class TestReports:
    def test_board_defaults_to_selected_sprint(self, client):
        sprint = client.post("/api/sprints", json={"name": "S1"}).json()
        done = create_item(client, type="Task", sprint_id=sprint["id"], effort=3)
        create_item(client, type="Task", sprint_id=sprint["id"], effort=1)
        create_item(client, type="Task", effort=8)
        client.put(f"/api/items/{done['id']}/column", json={"column": "Done"})

        data = client.get("/api/board").json()

        assert data["sprint_id"] == sprint["id"]
        lanes = {lane["column"]: [i["id"] for i in lane["items"]] for lane in data["lanes"]}
        assert lanes["Done"] == [done["id"]]
        assert len(lanes["New"]) == 1
        assert data["progress"]["total_points"] == 4
        assert data["progress"]["done_points"] == 3
        assert data["progress"]["percent"] == 75.0

    def test_metrics(self, client):
        create_item(client, type="Task", status="Closed")
        create_item(client, type="Task", blocked=True)

        data = client.get("/api/reports/metrics").json()

        assert data["total_items"] == 2
        assert data["blocked_items"] == 1
        assert data["delivery_rate"] == 50

    def test_finance(self, client):
        create_item(
            client,
            type="Task",
            cost_item="Licenses",
            cost_type="CAPEX",
            cost_value=1200,
            end_date="2025-03-10",
        )

        data = client.get("/api/reports/finance").json()

        assert data["summary"]["total"] == 1200
        assert data["summary"]["count"] == 1
        assert [m["total"] for m in data["months"] if m["item_ids"]] == [1200]

    def test_timeline_requires_initiative(self, client):
        task = create_item(client, type="Task")
        response = client.get(f"/api/reports/timeline/{task['id']}")
        assert_error(response, 404, ErrorCode.NOT_FOUND)

    def test_timeline_and_gantt(self, client):
        initiative = create_item(client, type="Initiative", start_date="2025-01-10")
        create_item(
            client, type="Delivery", parent_id=initiative["id"], end_date="2025-02-01"
        )

        timeline = client.get(f"/api/reports/timeline/{initiative['id']}").json()
        assert timeline["initiative_id"] == initiative["id"]
        assert len(timeline["items"]) == 1

        gantt = client.get("/api/reports/gantt").json()
        assert gantt["window_start"] == "2025-01-03"
        assert gantt["rows"][0]["level"] == "initiative"
