"""
Cost roll-up over work items.

A work item is a cost line when it has a positive ``cost_value`` or a
``cost_item`` label. Lines can be narrowed to one workstream or initiative
(matching up to three levels up through parents and workstream
pointers), summarized, and bucketed by month of their end (or start) date.
"""

from pydantic import BaseModel, Field

from agileboard.core.items.models import BillingStatus, CostType, WorkItem

MONTHS = ("JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC")

ORDERED_STATUSES = frozenset({BillingStatus.ORDER_ISSUED, BillingStatus.INVOICED})


class FinanceSummary(BaseModel):
    total: float = 0.0
    capex: float = 0.0
    count: int = 0
    order_percentage: float = Field(
        default=0.0,
        description="Share of cost lines with an order issued or invoiced",
    )


class MonthBucket(BaseModel):
    month: str
    items: list[WorkItem] = Field(default_factory=list)

    @property
    def total(self) -> float:
        return sum(item.cost for item in self.items)


def is_cost_item(item: WorkItem) -> bool:
    return item.cost > 0 or bool(item.cost_item)


def _points_at(item: WorkItem | None, parent_id: str) -> bool:
    return item is not None and parent_id in (item.parent_id, item.workstream_id)


def cost_items(items: list[WorkItem], parent_id: str | None = None) -> list[WorkItem]:
    """
    Cost lines, optionally under one workstream or initiative.

    An item is under ``parent_id`` when it, its parent or its grandparent
    has ``parent_id`` as parent or workstream.
    """
    lines = [item for item in items if is_cost_item(item)]
    if not parent_id:
        return lines

    by_id = {item.id: item for item in items}
    selected = []
    for item in lines:
        parent = by_id.get(item.parent_id) if item.parent_id else None
        grandparent = by_id.get(parent.parent_id) if parent and parent.parent_id else None
        if (
            _points_at(item, parent_id)
            or _points_at(parent, parent_id)
            or _points_at(grandparent, parent_id)
        ):
            selected.append(item)
    return selected


def summarize(lines: list[WorkItem]) -> FinanceSummary:
    if not lines:
        return FinanceSummary()
    ordered = [item for item in lines if item.billing_status in ORDERED_STATUSES]
    return FinanceSummary(
        total=sum(item.cost for item in lines),
        capex=sum(item.cost for item in lines if item.cost_type == CostType.CAPEX),
        count=len(lines),
        order_percentage=len(ordered) / len(lines) * 100,
    )


def by_month(lines: list[WorkItem]) -> list[MonthBucket]:
    """Twelve buckets, JAN..DEC. Lines without dates are left out."""
    buckets = [MonthBucket(month=month) for month in MONTHS]
    for item in lines:
        when = item.end_date or item.start_date
        if when is not None:
            buckets[when.month - 1].items.append(item)
    return buckets


def format_currency(value: float, symbol: str = "R$") -> str:
    """
    Compact currency label.

    Example:
        >>> format_currency(1_250_000)
        'R$ 1.2M'
    """
    if value >= 1_000_000:
        return f"{symbol} {value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"{symbol} {value / 1_000:.1f}K"
    return f"{symbol} {value:.0f}"
