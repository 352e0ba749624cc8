"""
Backlog listing: text filter, column sort, hierarchy tree and effort roll-up.
"""

from typing import Literal

from pydantic import BaseModel, Field

from agileboard.core.items.models import ItemStatus, ItemType, User, WorkItem

SortKey = Literal["priority", "assignee", "kpi", "effort", "progress", "status", "id"]
SORT_KEYS: tuple[str, ...] = ("priority", "assignee", "kpi", "effort", "progress", "status", "id")


class Rollup(BaseModel):
    """Effort and completion of an item over all of its descendants."""

    total_effort: int
    progress: float = Field(description="Percent complete, 0-100")


class BacklogNode(BaseModel):
    item: WorkItem
    children: list["BacklogNode"] = Field(default_factory=list)


def filter_items(items: list[WorkItem], text: str | None) -> list[WorkItem]:
    """Keep items whose title contains ``text`` (case-insensitive)."""
    if not text:
        return list(items)
    needle = text.lower()
    return [item for item in items if needle in item.title.lower()]


def descendants(item_id: str, items: list[WorkItem]) -> list[WorkItem]:
    """All items below ``item_id`` in the hierarchy."""
    children: dict[str | None, list[WorkItem]] = {}
    for item in items:
        children.setdefault(item.parent_id, []).append(item)

    found: list[WorkItem] = []
    seen = {item_id}
    stack = list(children.get(item_id, []))
    while stack:
        current = stack.pop()
        if current.id in seen:
            continue
        seen.add(current.id)
        found.append(current)
        stack.extend(children.get(current.id, []))
    return found


def rollup(item: WorkItem, items: list[WorkItem]) -> Rollup:
    """
    Total effort and progress of an item.

    With descendants, progress is effort-weighted over them (or the share
    of closed descendants when they carry no effort). A leaf reports its
    own effort and 100 or 0 depending on whether it is closed.
    """
    below = descendants(item.id, items)
    if not below:
        return Rollup(
            total_effort=item.effort,
            progress=100.0 if item.status == ItemStatus.CLOSED else 0.0,
        )

    closed = [d for d in below if d.status == ItemStatus.CLOSED]
    total = sum(d.effort for d in below)
    if total > 0:
        progress = sum(d.effort for d in closed) / total * 100
    else:
        progress = len(closed) / len(below) * 100
    return Rollup(total_effort=total, progress=progress)


def sort_items(
    items: list[WorkItem],
    key: SortKey,
    descending: bool = False,
    users: list[User] | None = None,
    all_items: list[WorkItem] | None = None,
) -> list[WorkItem]:
    """
    Sort items by one backlog column. Ties keep their input order.

    ``assignee`` sorts by the assignee's name (unassigned and unknown
    users sort as empty); ``progress`` uses the roll-up over
    ``all_items`` (defaults to ``items``).
    """
    if key not in SORT_KEYS:
        raise ValueError(f"Unknown sort key '{key}'. Choose from: {', '.join(SORT_KEYS)}")

    names = {user.id: user.name for user in users or []}
    pool = all_items if all_items is not None else items

    def value(item: WorkItem) -> str | int | float:
        if key == "assignee":
            return names.get(item.assignee_id or "", "")
        if key == "effort":
            return item.effort
        if key == "progress":
            return rollup(item, pool).progress
        if key in ("priority", "status"):
            return getattr(item, key).value
        return getattr(item, key)

    return sorted(items, key=value, reverse=descending)


def build_tree(items: list[WorkItem]) -> list[BacklogNode]:
    """
    Nest items under their parents.

    Roots are items without a parent or whose parent is not in ``items``
    (so a filtered list still shows every match).
    """
    by_id = {item.id: item for item in items}
    nodes = {item.id: BacklogNode(item=item) for item in items}
    roots: list[BacklogNode] = []
    for item in items:
        node = nodes[item.id]
        if item.parent_id in by_id and not _in_cycle(item, by_id):
            nodes[item.parent_id].children.append(node)
        else:
            roots.append(node)
    return roots


def _in_cycle(item: WorkItem, by_id: dict[str, WorkItem]) -> bool:
    seen = {item.id}
    parent_id = item.parent_id
    while parent_id in by_id:
        if parent_id in seen:
            return True
        seen.add(parent_id)
        parent_id = by_id[parent_id].parent_id
    return False


def child_fields(parent: WorkItem, item_type: ItemType) -> dict[str, object]:
    """
    Initial fields for a child created under ``parent``.

    The child inherits the workstream: the parent itself when it is a
    workstream, otherwise the parent's own workstream pointer.
    """
    workstream_id = parent.id if parent.type == ItemType.WORKSTREAM else parent.workstream_id
    return {
        "type": item_type,
        "title": f"New {item_type.value}",
        "parent_id": parent.id,
        "workstream_id": workstream_id,
    }
