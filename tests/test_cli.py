"""
Tests for the agileboard CLI.

Commands run against the local backend persisted to a JSON file in a
temporary project directory, so every invocation reloads the data like a
real shell session would.
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from agileboard import __version__
from agileboard.cli import app
from agileboard.cli.errors import ExitCode
from agileboard.core.items.ids import WORK_ITEM_ID_PATTERN

runner = CliRunner()


@pytest.fixture
def project(tmp_path, monkeypatch):
    """Project directory using the local backend with a data file."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("AGILEBOARD_BACKEND", "local")
    monkeypatch.setenv("AGILEBOARD_DATA_FILE", str(tmp_path / "board.json"))
    return tmp_path


def parse_json_output(output: str):
    """Parse the JSON document printed by a --json command."""
    lines = output.splitlines()
    for index, line in enumerate(lines):
        if line.startswith(("{", "[")):
            return json.loads("\n".join(lines[index:]))
    raise AssertionError(f"No JSON in output:\n{output}")


def invoke(*args: str):
    result = runner.invoke(app, list(args))
    assert result.exit_code == 0, result.output
    return result


def invoke_json(*args: str):
    return parse_json_output(invoke(*args, "--json").output)


class TestBasics:
    def test_version(self):
        result = invoke("version")
        assert __version__ in result.output

    def test_no_command_shows_help(self):
        result = invoke()
        assert "items" in result.output
        assert "sprints" in result.output


class TestStatus:
    def test_not_configured(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["status", "--json"])

        assert result.exit_code == ExitCode.USER_ERROR
        assert parse_json_output(result.output) == {"configured": False}

    def test_data_commands_need_backend(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["items", "list"])
        assert result.exit_code == ExitCode.USER_ERROR

    def test_counts(self, project):
        invoke("items", "create", "Login", "--type", "Task")

        info = invoke_json("status")

        assert info["configured"] is True
        assert info["backend"] == "local"
        assert info["work_items"] == 1
        assert info["selected_sprint"] is None

    def test_reports_credential_sources(self, project, monkeypatch):
        (project / ".env").write_text("SUPABASE_URL=https://abc.supabase.co\n")
        monkeypatch.setenv("SUPABASE_KEY", "shell-key")

        info = invoke_json("status")

        credentials = info["credentials"]
        assert credentials["SUPABASE_KEY"] == "environment"
        assert Path(credentials["SUPABASE_URL"]).resolve() == (project / ".env").resolve()
        assert info["backend"] == "local"

    def test_table_shows_missing_credentials(self, project):
        result = invoke("status")
        assert "SUPABASE_URL" in result.output
        assert "not set" in result.output


class TestItems:
    def test_create_persists(self, project):
        item = invoke_json("items", "create", "Login page", "--type", "Task", "--effort", "3")

        assert WORK_ITEM_ID_PATTERN.match(item["id"])
        assert item["effort"] == 3
        stored = json.loads((project / "board.json").read_text())
        assert [row["id"] for row in stored["work_items"]] == [item["id"]]

    def test_child_inherits_workstream(self, project):
        workstream = invoke_json("items", "create", "Payments", "--type", "Workstream")
        initiative = invoke_json(
            "items", "create", "Checkout", "--type", "Initiative", "--parent", workstream["id"]
        )

        assert initiative["parent_id"] == workstream["id"]
        assert initiative["workstream_id"] == workstream["id"]

    def test_unknown_type(self, project):
        result = runner.invoke(app, ["items", "create", "x", "--type", "Epic"])
        assert result.exit_code == ExitCode.USER_ERROR

    def test_list_filter_and_sort(self, project):
        invoke("items", "create", "Card form", "--effort", "1")
        invoke("items", "create", "Card validation", "--effort", "5")
        invoke("items", "create", "Reports")

        items = invoke_json("items", "list", "--filter", "card", "--sort", "effort", "--desc")

        assert [i["title"] for i in items] == ["Card validation", "Card form"]

    def test_update_and_show(self, project):
        item = invoke_json("items", "create", "Old title")

        invoke(
            "items", "update", item["id"], "--title", "New title", "--set", "cost_value=1500"
        )

        shown = invoke_json("items", "show", item["id"])
        assert shown["title"] == "New title"
        assert shown["cost_value"] == 1500

    def test_update_unknown_field(self, project):
        item = invoke_json("items", "create", "x")
        result = runner.invoke(app, ["items", "update", item["id"], "--set", "colour=red"])
        assert result.exit_code == ExitCode.USER_ERROR

    def test_update_missing_item(self, project):
        result = runner.invoke(app, ["items", "update", "A-ZZZZZ", "--title", "x"])
        assert result.exit_code == ExitCode.USER_ERROR

    def test_move(self, project):
        item = invoke_json("items", "create", "Task", "--type", "Task")

        invoke("items", "move", item["id"], "Done")

        shown = invoke_json("items", "show", item["id"])
        assert shown["column"] == "Done"
        assert shown["status"] == "Closed"

    def test_delete(self, project):
        item = invoke_json("items", "create", "Doomed")

        invoke("items", "delete", item["id"], "--yes")

        assert invoke_json("items", "list") == []

    def test_attach_and_detach(self, project):
        item = invoke_json("items", "create", "With files")
        notes = project / "notes.txt"
        notes.write_text("hello")

        invoke("items", "attach", item["id"], str(notes))
        attachments = invoke_json("items", "show", item["id"])["attachments"]
        assert [a["name"] for a in attachments] == ["notes.txt"]
        assert attachments[0]["mime_type"] == "text/plain"

        invoke("items", "detach", item["id"], attachments[0]["id"])
        assert invoke_json("items", "show", item["id"])["attachments"] == []


class TestSprints:
    def test_create_selects(self, project):
        sprint = invoke_json(
            "sprints",
            "create",
            "--name",
            "Sprint 7",
            "--start",
            "2025-01-01",
            "--end",
            "2025-01-14",
            "--objective",
            "Ship v2",
        )

        assert sprint["name"] == "Sprint 7"
        assert sprint["status"] == "Planned"
        config = json.loads((project / ".agileboard.json").read_text())
        assert config["sprints"]["selected"] == sprint["id"]

    def test_select_persists(self, project):
        first = invoke_json("sprints", "create", "--name", "S1")
        invoke("sprints", "create", "--name", "S2")

        invoke("sprints", "select", first["id"])

        sprints = invoke_json("sprints", "list")
        assert [s["name"] for s in sprints if s["selected"]] == ["S1"]

    def test_bad_date(self, project):
        result = runner.invoke(app, ["sprints", "create", "--start", "January"])
        assert result.exit_code != 0

    def test_delete_unlinks_items(self, project):
        sprint = invoke_json("sprints", "create", "--name", "S1")
        item = invoke_json("items", "create", "In sprint", "--sprint", sprint["id"])

        invoke("sprints", "delete", sprint["id"], "--yes")

        assert invoke_json("sprints", "list") == []
        assert invoke_json("items", "show", item["id"])["sprint_id"] is None

    def test_sync_dates_dry_run(self, project):
        sprint = invoke_json(
            "sprints", "create", "--name", "Jan", "--start", "2025-01-01", "--end", "2025-01-14"
        )
        item = invoke_json(
            "items", "create", "Dated", "--type", "Task", "--start", "2025-01-02", "--end",
            "2025-01-05",
        )

        planned = invoke_json("sprints", "sync-dates", "--dry-run")
        assert [(a["item_id"], a["sprint_id"]) for a in planned] == [(item["id"], sprint["id"])]
        assert invoke_json("items", "show", item["id"])["sprint_id"] is None

        invoke("sprints", "sync-dates")
        assert invoke_json("items", "show", item["id"])["sprint_id"] == sprint["id"]


class TestUsers:
    def test_add_list_remove(self, project):
        result = invoke("users", "add", "Ana")
        assert "Added" in result.output

        users = invoke_json("users", "list")
        assert [u["name"] for u in users] == ["Ana"]

        invoke("users", "remove", users[0]["id"], "--yes")
        assert invoke_json("users", "list") == []

    def test_remove_unknown(self, project):
        result = runner.invoke(app, ["users", "remove", "nope", "--yes"])
        assert result.exit_code == ExitCode.USER_ERROR


class TestReports:
    def test_metrics(self, project):
        invoke("items", "create", "Blocked one", "--type", "Task")
        item = invoke_json("items", "create", "Done one", "--type", "Task")
        invoke("items", "move", item["id"], "Done")

        data = invoke_json("report", "metrics")

        assert data["total_items"] == 2
        assert data["delivery_rate"] == 50

    def test_board_uses_selected_sprint(self, project):
        sprint = invoke_json("sprints", "create", "--name", "S1")
        invoke_json("items", "create", "On board", "--type", "Task", "--sprint", sprint["id"])

        board = invoke_json("report", "board")

        assert board["sprint_id"] == sprint["id"]
        lanes = {lane["column"]: lane["items"] for lane in board["lanes"]}
        assert len(lanes["New"]) == 1

    def test_board_without_sprints(self, project):
        result = runner.invoke(app, ["report", "board"])
        assert result.exit_code == ExitCode.USER_ERROR


class TestSetup:
    def test_raw_prints_sql(self):
        result = invoke("setup", "--raw")
        assert "create table" in result.output.lower()
        assert "work_items" in result.output

    def test_seed(self, project):
        invoke("setup", "--seed")
        assert [u["name"] for u in invoke_json("users", "list")] == ["Agile Manager"]


class TestWatch:
    def test_not_configured(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["watch", "--duration", "0"])
        assert result.exit_code == ExitCode.USER_ERROR

    def test_prints_counts_on_refresh(self, project):
        invoke("users", "add", "Ana")

        result = invoke("watch", "--duration", "0")

        assert "Watching for changes" in result.output
        assert "1 users, 0 sprints, 0 items" in result.output

    def test_without_realtime(self, project, monkeypatch):
        monkeypatch.setenv("AGILEBOARD_REALTIME", "false")

        result = invoke("watch", "--duration", "0")

        assert "Live updates unavailable" in result.output


class TestDashboard:
    def test_runs_uvicorn_with_app(self, project, monkeypatch):
        calls = []
        monkeypatch.setattr("uvicorn.run", lambda app, **kwargs: calls.append((app, kwargs)))

        result = invoke("dashboard", "--port", "3000")

        assert "/api/snapshot" in result.output
        served, kwargs = calls[0]
        assert served.state.service.configured
        assert kwargs == {"host": "127.0.0.1", "port": 3000, "log_level": "warning"}

    def test_starts_without_backend(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        calls = []
        monkeypatch.setattr("uvicorn.run", lambda app, **kwargs: calls.append(app))

        result = invoke("dashboard")

        assert "will return 503" in result.output
        assert not calls[0].state.service.configured
