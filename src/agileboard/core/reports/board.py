"""
Kanban board for a sprint.

The board shows the selected sprint's items in four lanes (the item's
``column``), optionally narrowed by a workstream/initiative/delivery
filter. Moving a card sets the lane and derives the status from it.
"""

from pydantic import BaseModel, Field

from agileboard.core.items.models import BoardColumn, ItemStatus, WorkItem

_COLUMN_STATUS: dict[BoardColumn, ItemStatus] = {
    BoardColumn.NEW: ItemStatus.NEW,
    BoardColumn.TODO: ItemStatus.NEW,
    BoardColumn.DOING: ItemStatus.ACTIVE,
    BoardColumn.DONE: ItemStatus.CLOSED,
}


def status_for_column(column: BoardColumn) -> ItemStatus:
    """Status an item gets when dropped into a lane."""
    return _COLUMN_STATUS[column]


class HierarchyFilter(BaseModel):
    """
    Narrow the board to one branch of the hierarchy.

    - workstream: the workstream itself or items pointing at it through
      ``workstream_id``
    - initiative: the initiative, its children and its grandchildren
    - delivery: the delivery and its children
    """

    workstream_id: str | None = None
    initiative_id: str | None = None
    delivery_id: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.workstream_id or self.initiative_id or self.delivery_id)

    def matches(self, item: WorkItem, by_id: dict[str, WorkItem]) -> bool:
        if self.workstream_id and self.workstream_id not in (item.workstream_id, item.id):
            return False

        if self.initiative_id:
            parent = by_id.get(item.parent_id) if item.parent_id else None
            grandparent_id = parent.parent_id if parent else None
            if self.initiative_id not in (item.id, item.parent_id, grandparent_id):
                return False

        if self.delivery_id and self.delivery_id not in (item.id, item.parent_id):
            return False

        return True


class BoardLane(BaseModel):
    column: BoardColumn
    items: list[WorkItem] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.items)


class SprintProgress(BaseModel):
    """Effort totals for one sprint."""

    total_points: int = 0
    done_points: int = 0
    blocked: int = 0

    @property
    def percent(self) -> float:
        if self.total_points == 0:
            return 0.0
        return self.done_points / self.total_points * 100


def sprint_items(items: list[WorkItem], sprint_id: str | None) -> list[WorkItem]:
    if sprint_id is None:
        return []
    return [item for item in items if item.sprint_id == sprint_id]


def build_board(
    items: list[WorkItem],
    sprint_id: str | None,
    hierarchy: HierarchyFilter | None = None,
) -> list[BoardLane]:
    """
    Lay out a sprint's items into the four lanes, in load order.

    Args:
        items: Every work item (needed to resolve parents)
        sprint_id: Sprint shown on the board
        hierarchy: Optional branch filter
    """
    by_id = {item.id: item for item in items}
    lanes = {column: BoardLane(column=column) for column in BoardColumn}
    for item in sprint_items(items, sprint_id):
        if hierarchy is not None and not hierarchy.matches(item, by_id):
            continue
        lanes[item.column].items.append(item)
    return list(lanes.values())


def sprint_progress(items: list[WorkItem], sprint_id: str | None) -> SprintProgress:
    """Total and closed effort of a sprint, plus its blocked item count."""
    in_sprint = sprint_items(items, sprint_id)
    return SprintProgress(
        total_points=sum(item.effort for item in in_sprint),
        done_points=sum(item.effort for item in in_sprint if item.status == ItemStatus.CLOSED),
        blocked=sum(1 for item in in_sprint if item.blocked),
    )
