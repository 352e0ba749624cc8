"""
Translation between remote rows and local entities.

The remote store keeps snake_case columns that mostly match the local field
names. The exceptions are listed in the per-table column maps below
(``column`` is stored as ``column_name``, an attachment's ``mime_type`` is
stored under ``type``).

Reads ignore columns that are not mapped and substitute defaults for nulls.
Writes only ever contain mapped columns.
"""

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any

from agileboard.core.items.models import (
    SPRINT_MUTABLE_FIELDS,
    WORK_ITEM_MUTABLE_FIELDS,
    Attachment,
    BillingStatus,
    BoardColumn,
    CostType,
    ItemPriority,
    ItemStatus,
    ItemType,
    Sprint,
    SprintStatus,
    User,
    WorkItem,
)

logger = logging.getLogger(__name__)

USERS_TABLE = "profiles"
SPRINTS_TABLE = "sprints"
WORK_ITEMS_TABLE = "work_items"

ALL_TABLES = (USERS_TABLE, SPRINTS_TABLE, WORK_ITEMS_TABLE)

# local field -> remote column
WORK_ITEM_COLUMNS: dict[str, str] = {
    "id": "id",
    "type": "type",
    "title": "title",
    "description": "description",
    "priority": "priority",
    "effort": "effort",
    "kpi": "kpi",
    "kpi_impact": "kpi_impact",
    "assignee_id": "assignee_id",
    "status": "status",
    "column": "column_name",
    "parent_id": "parent_id",
    "sprint_id": "sprint_id",
    "workstream_id": "workstream_id",
    "blocked": "blocked",
    "block_reason": "block_reason",
    "start_date": "start_date",
    "end_date": "end_date",
    "attachments": "attachments",
    "cost_item": "cost_item",
    "cost_type": "cost_type",
    "cost_value": "cost_value",
    "request_num": "request_num",
    "order_num": "order_num",
    "billing_status": "billing_status",
}

SPRINT_COLUMNS: dict[str, str] = {
    "id": "id",
    "name": "name",
    "start_date": "start_date",
    "end_date": "end_date",
    "objective": "objective",
    "status": "status",
}

USER_COLUMNS: dict[str, str] = {
    "id": "id",
    "name": "name",
    "avatar_url": "avatar_url",
}

# Fields where an empty string means "no value" and is written as null.
_NULLABLE_REFERENCES = frozenset(
    {"assignee_id", "parent_id", "sprint_id", "workstream_id", "start_date", "end_date"}
)


# ==============================================================================
# Reading
# ==============================================================================


def _enum_or_default(enum_cls: type[Enum], value: Any, default: Any) -> Any:
    if value is None or value == "":
        return default
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning("Unknown %s value %r, using %s", enum_cls.__name__, value, default)
        return default


def parse_date(value: Any) -> date | None:
    """Parse an ISO date (or timestamp) from the remote store."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        logger.warning("Ignoring malformed date %r", value)
        return None


def _attachment_from_remote(raw: dict[str, Any]) -> Attachment:
    return Attachment(
        id=str(raw.get("id", "")),
        name=raw.get("name") or "",
        mime_type=raw.get("type") or raw.get("mime_type") or "",
        url=raw.get("url") or "",
    )


def row_to_user(row: dict[str, Any]) -> User:
    return User(id=str(row["id"]), name=row.get("name") or "", avatar_url=row.get("avatar_url"))


def row_to_sprint(row: dict[str, Any]) -> Sprint:
    return Sprint(
        id=str(row["id"]),
        name=row.get("name") or "",
        start_date=parse_date(row.get("start_date")),
        end_date=parse_date(row.get("end_date")),
        objective=row.get("objective") or "",
        status=_enum_or_default(SprintStatus, row.get("status"), SprintStatus.PLANNED),
    )


def row_to_work_item(row: dict[str, Any]) -> WorkItem:
    """
    Build a WorkItem from a ``work_items`` row.

    Nulls get the entity defaults: priority P3, effort 0, status New,
    column New, no attachments, empty free text.
    """
    cost_value = row.get("cost_value")
    return WorkItem(
        id=str(row["id"]),
        type=_enum_or_default(ItemType, row.get("type"), ItemType.DELIVERY),
        title=row.get("title") or "",
        description=row.get("description") or "",
        priority=_enum_or_default(ItemPriority, row.get("priority"), ItemPriority.P3),
        effort=max(int(row.get("effort") or 0), 0),
        kpi=row.get("kpi") or "",
        kpi_impact=row.get("kpi_impact") or "",
        assignee_id=row.get("assignee_id"),
        status=_enum_or_default(ItemStatus, row.get("status"), ItemStatus.NEW),
        column=_enum_or_default(BoardColumn, row.get("column_name"), BoardColumn.NEW),
        parent_id=row.get("parent_id"),
        sprint_id=row.get("sprint_id"),
        workstream_id=row.get("workstream_id"),
        blocked=bool(row.get("blocked") or False),
        block_reason=row.get("block_reason") or "",
        start_date=parse_date(row.get("start_date")),
        end_date=parse_date(row.get("end_date")),
        attachments=[_attachment_from_remote(a) for a in (row.get("attachments") or [])],
        cost_item=row.get("cost_item"),
        cost_type=_enum_or_default(CostType, row.get("cost_type"), None),
        cost_value=float(cost_value) if cost_value not in (None, "") else None,
        request_num=row.get("request_num"),
        order_num=row.get("order_num"),
        billing_status=_enum_or_default(BillingStatus, row.get("billing_status"), None),
    )


# ==============================================================================
# Writing
# ==============================================================================


def _to_remote(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Attachment):
        return {"id": value.id, "name": value.name, "type": value.mime_type, "url": value.url}
    if isinstance(value, list):
        return [_to_remote(v) for v in value]
    return value


def _blank_references_to_none(changes: dict[str, Any]) -> dict[str, Any]:
    return {
        key: (None if key in _NULLABLE_REFERENCES and value == "" else value)
        for key, value in changes.items()
    }


def coerce_work_item_changes(changes: dict[str, Any]) -> dict[str, Any]:
    """
    Validate a partial set of work item fields into local types.

    Args:
        changes: Field name -> new value (strings accepted for enums/dates)

    Returns:
        The same keys with values coerced to the WorkItem field types

    Raises:
        ValueError: On unknown/immutable fields or values that fail validation
    """
    unknown = set(changes) - WORK_ITEM_MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown or immutable work item fields: {', '.join(sorted(unknown))}")
    clean = _blank_references_to_none(changes)
    probe = WorkItem.model_validate({"id": "_", **clean})
    return {key: getattr(probe, key) for key in clean}


def coerce_sprint_changes(changes: dict[str, Any]) -> dict[str, Any]:
    """Validate a partial set of sprint fields into local types."""
    unknown = set(changes) - SPRINT_MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown or immutable sprint fields: {', '.join(sorted(unknown))}")
    clean = _blank_references_to_none(changes)
    probe = Sprint.model_validate({"id": "_", "name": "_", **clean})
    return {key: getattr(probe, key) for key in clean}


def work_item_changes_to_row(changes: dict[str, Any]) -> dict[str, Any]:
    """
    Translate a partial update into a remote payload.

    Only keys present in ``changes`` are emitted; absent keys are left out
    of the payload entirely rather than nulled.
    """
    return {WORK_ITEM_COLUMNS[key]: _to_remote(value) for key, value in changes.items()}


def work_item_to_row(item: WorkItem) -> dict[str, Any]:
    """Full insert payload for a new work item."""
    return {
        column: _to_remote(getattr(item, field)) for field, column in WORK_ITEM_COLUMNS.items()
    }


def sprint_changes_to_row(changes: dict[str, Any]) -> dict[str, Any]:
    return {SPRINT_COLUMNS[key]: _to_remote(value) for key, value in changes.items()}


def user_to_row(name: str, avatar_url: str | None) -> dict[str, Any]:
    return {"name": name, "avatar_url": avatar_url}
