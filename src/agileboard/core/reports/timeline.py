"""
Gantt and timeline rows.

The Gantt chart lists initiatives, their deliveries and the deliveries'
tasks and bugs. The timeline shows one initiative's dated deliveries,
tasks and bugs in end date order.
"""

from datetime import date, timedelta
from typing import Literal

from pydantic import BaseModel, Field

from agileboard.core.items.models import ItemStatus, ItemType, WorkItem

# Leading margin before the earliest start date
WINDOW_MARGIN_DAYS = 7
# Window start when no item has a start date
EMPTY_WINDOW_LOOKBACK_DAYS = 15


class GanttRow(BaseModel):
    item: WorkItem
    level: Literal["initiative", "delivery", "task"]
    progress: int = Field(description="Percent complete, 0-100")


class TimelineView(BaseModel):
    initiative_id: str
    items: list[WorkItem] = Field(default_factory=list)
    progress: int = 0


def child_progress(item: WorkItem, items: list[WorkItem]) -> int:
    """
    Progress from direct children.

    Closed items are 100; otherwise the rounded share of closed children
    (0 without children).
    """
    if item.status == ItemStatus.CLOSED:
        return 100
    children = [child for child in items if child.parent_id == item.id]
    if not children:
        return 0
    done = sum(1 for child in children if child.status == ItemStatus.CLOSED)
    return round(done / len(children) * 100)


def gantt_rows(
    items: list[WorkItem],
    workstream_id: str | None = None,
    initiative_id: str | None = None,
) -> list[GanttRow]:
    """
    Flatten initiatives -> deliveries -> tasks/bugs into chart rows.

    Args:
        items: Every work item
        workstream_id: Only initiatives of this workstream
        initiative_id: Only this initiative
    """
    initiatives = [item for item in items if item.type == ItemType.INITIATIVE]
    if workstream_id:
        initiatives = [i for i in initiatives if i.workstream_id == workstream_id]
    if initiative_id:
        initiatives = [i for i in initiatives if i.id == initiative_id]

    rows: list[GanttRow] = []
    for initiative in initiatives:
        rows.append(
            GanttRow(
                item=initiative, level="initiative", progress=child_progress(initiative, items)
            )
        )
        deliveries = [
            item
            for item in items
            if item.type == ItemType.DELIVERY and item.parent_id == initiative.id
        ]
        for delivery in deliveries:
            rows.append(
                GanttRow(item=delivery, level="delivery", progress=child_progress(delivery, items))
            )
            for task in items:
                if task.type.is_leaf and task.parent_id == delivery.id:
                    rows.append(
                        GanttRow(item=task, level="task", progress=child_progress(task, items))
                    )
    return rows


def timeline_window_start(items: list[WorkItem], today: date | None = None) -> date:
    """First day of the chart: a week before the earliest start date."""
    starts = [item.start_date for item in items if item.start_date is not None]
    if not starts:
        return (today or date.today()) - timedelta(days=EMPTY_WINDOW_LOOKBACK_DAYS)
    return min(starts) - timedelta(days=WINDOW_MARGIN_DAYS)


def initiative_timeline(items: list[WorkItem], initiative_id: str) -> TimelineView:
    """
    Dated deliveries, tasks and bugs under an initiative (children and
    grandchildren), sorted by end date, with the share already closed.
    """
    by_id = {item.id: item for item in items}

    def under_initiative(item: WorkItem) -> bool:
        if item.parent_id == initiative_id:
            return True
        parent = by_id.get(item.parent_id) if item.parent_id else None
        return parent is not None and parent.parent_id == initiative_id

    selected = [
        item
        for item in items
        if item.id != initiative_id
        and item.type in (ItemType.DELIVERY, ItemType.TASK, ItemType.BUG)
        and item.end_date is not None
        and under_initiative(item)
    ]
    selected.sort(key=lambda item: item.end_date or date.max)

    closed = sum(1 for item in selected if item.status == ItemStatus.CLOSED)
    progress = round(closed / len(selected) * 100) if selected else 0
    return TimelineView(initiative_id=initiative_id, items=selected, progress=progress)
