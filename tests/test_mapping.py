"""
Tests for translation between remote rows and local entities.
"""

from datetime import date

import pytest

from agileboard.core.items.mapping import (
    coerce_sprint_changes,
    coerce_work_item_changes,
    parse_date,
    row_to_sprint,
    row_to_user,
    row_to_work_item,
    sprint_changes_to_row,
    user_to_row,
    work_item_changes_to_row,
    work_item_to_row,
)
from agileboard.core.items.models import (
    Attachment,
    BillingStatus,
    BoardColumn,
    CostType,
    ItemPriority,
    ItemStatus,
    ItemType,
    SprintStatus,
    WorkItem,
)


class TestRowToWorkItem:
    """Tests for reading work item rows."""

    def test_nulls_get_defaults(self):
        item = row_to_work_item(
            {
                "id": "A-11111",
                "title": None,
                "priority": None,
                "effort": None,
                "status": None,
                "column_name": None,
                "attachments": None,
                "type": "Task",
            }
        )
        assert item.title == ""
        assert item.priority == ItemPriority.P3
        assert item.effort == 0
        assert item.status == ItemStatus.NEW
        assert item.column == BoardColumn.NEW
        assert item.attachments == []
        assert item.type == ItemType.TASK

    def test_renamed_columns(self):
        item = row_to_work_item(
            {
                "id": "A-11111",
                "column_name": "Doing",
                "start_date": "2025-03-01",
                "end_date": "2025-03-10T00:00:00+00:00",
                "attachments": [
                    {
                        "id": "attachments/A-11111/1-a.pdf",
                        "name": "a.pdf",
                        "type": "application/pdf",
                        "url": "u",
                    }
                ],
            }
        )
        assert item.column == BoardColumn.DOING
        assert item.start_date == date(2025, 3, 1)
        assert item.end_date == date(2025, 3, 10)
        assert item.attachments[0].mime_type == "application/pdf"

    def test_unmapped_columns_ignored(self):
        item = row_to_work_item({"id": "A-11111", "created_at": "2025-01-01", "legacy": 1})
        assert item.id == "A-11111"

    def test_cost_fields(self):
        item = row_to_work_item(
            {
                "id": "A-11111",
                "cost_type": "CAPEX",
                "cost_value": "1500.5",
                "billing_status": "OrderIssued",
            }
        )
        assert item.cost_type == CostType.CAPEX
        assert item.cost_value == 1500.5
        assert item.billing_status == BillingStatus.ORDER_ISSUED

    def test_unknown_enum_value_falls_back(self):
        item = row_to_work_item({"id": "A-11111", "priority": "P9", "cost_type": "???"})
        assert item.priority == ItemPriority.P3
        assert item.cost_type is None


class TestOtherRows:
    def test_row_to_sprint(self):
        sprint = row_to_sprint(
            {"id": 7, "name": "S7", "start_date": "2025-01-01", "end_date": None, "status": None}
        )
        assert sprint.id == "7"
        assert sprint.start_date == date(2025, 1, 1)
        assert sprint.end_date is None
        assert sprint.status == SprintStatus.PLANNED
        assert sprint.objective == ""

    def test_row_to_user(self):
        user = row_to_user({"id": "u1", "name": "Ana", "avatar_url": None, "created_at": "x"})
        assert user.name == "Ana"
        assert user.avatar_url is None

    def test_parse_date_malformed(self):
        assert parse_date("not a date") is None
        assert parse_date("") is None


class TestWriting:
    """Tests for building remote payloads."""

    def test_partial_update_sends_only_given_keys(self):
        row = work_item_changes_to_row({"title": "X"})
        assert row == {"title": "X"}

    def test_column_and_enum_translation(self):
        row = work_item_changes_to_row(
            {"column": BoardColumn.TODO, "status": ItemStatus.ACTIVE, "end_date": date(2025, 2, 1)}
        )
        assert row == {"column_name": "To Do", "status": "Active", "end_date": "2025-02-01"}

    def test_attachments_serialized_with_type_key(self):
        attachment = Attachment(id="p", name="n", mime_type="image/png", url="u")
        row = work_item_changes_to_row({"attachments": [attachment]})
        assert row == {"attachments": [{"id": "p", "name": "n", "type": "image/png", "url": "u"}]}

    def test_full_insert_payload_has_every_column(self):
        row = work_item_to_row(WorkItem(id="A-22222", title="T"))
        assert row["id"] == "A-22222"
        assert row["column_name"] == "New"
        assert row["priority"] == "P3"
        assert "column" not in row

    def test_sprint_payload(self):
        row = sprint_changes_to_row({"name": "S", "status": SprintStatus.ACTIVE})
        assert row == {"name": "S", "status": "Active"}

    def test_user_payload(self):
        assert user_to_row("Ana", None) == {"name": "Ana", "avatar_url": None}


class TestCoercion:
    """Tests for validating partial field sets."""

    def test_strings_become_enums_and_dates(self):
        changes = coerce_work_item_changes(
            {"priority": "P1", "start_date": "2025-01-02", "column": "Done"}
        )
        assert changes == {
            "priority": ItemPriority.P1,
            "start_date": date(2025, 1, 2),
            "column": BoardColumn.DONE,
        }

    def test_blank_reference_becomes_none(self):
        assert coerce_work_item_changes({"sprint_id": ""}) == {"sprint_id": None}

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError, match="bogus"):
            coerce_work_item_changes({"bogus": 1})

    def test_id_is_immutable(self):
        with pytest.raises(ValueError, match="id"):
            coerce_work_item_changes({"id": "A-99999"})

    def test_invalid_value_rejected(self):
        with pytest.raises(ValueError):
            coerce_work_item_changes({"effort": -1})

    def test_sprint_changes(self):
        changes = coerce_sprint_changes({"status": "Active", "end_date": "2025-01-14"})
        assert changes == {"status": SprintStatus.ACTIVE, "end_date": date(2025, 1, 14)}
