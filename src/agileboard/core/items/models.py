"""
Entity models for the agile dashboard.

These Pydantic models define the local shape of the three entity types the
dashboard works with (users, sprints, work items) together with the enums
for their constrained fields.

Work items form a five level containment hierarchy through ``parent_id``:

    Workstream -> Initiative -> Delivery -> Task / Bug

The hierarchy is a convention. Nothing here (or in the remote store) rejects
a work item whose parent has an unexpected type.
"""

from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ItemType(str, Enum):
    """Work item levels, from the broadest to the most concrete."""

    WORKSTREAM = "Workstream"
    INITIATIVE = "Initiative"
    DELIVERY = "Delivery"
    TASK = "Task"
    BUG = "Bug"

    @property
    def parent_type(self) -> "ItemType | None":
        """Expected type of this level's parent (None for workstreams)."""
        return _PARENT_TYPES[self]

    @property
    def is_leaf(self) -> bool:
        """Tasks and bugs are the executable leaves of the hierarchy."""
        return self in (ItemType.TASK, ItemType.BUG)


_PARENT_TYPES: dict[ItemType, ItemType | None] = {
    ItemType.WORKSTREAM: None,
    ItemType.INITIATIVE: ItemType.WORKSTREAM,
    ItemType.DELIVERY: ItemType.INITIATIVE,
    ItemType.TASK: ItemType.DELIVERY,
    ItemType.BUG: ItemType.DELIVERY,
}


class ItemPriority(str, Enum):
    """Priority levels (P1 is highest)."""

    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    P4 = "P4"


class ItemStatus(str, Enum):
    """Workflow status of a work item."""

    NEW = "New"
    ACTIVE = "Active"
    RESOLVED = "Resolved"
    CLOSED = "Closed"


class BoardColumn(str, Enum):
    """Kanban lanes. Independent of status, kept loosely consistent by moves."""

    NEW = "New"
    TODO = "To Do"
    DOING = "Doing"
    DONE = "Done"


class SprintStatus(str, Enum):
    """Sprint lifecycle."""

    PLANNED = "Planned"
    ACTIVE = "Active"
    CLOSED = "Closed"


class CostType(str, Enum):
    """Budget category of a cost line."""

    OPEX = "OPEX"
    CAPEX = "CAPEX"
    SEVIM = "SEVIM"
    OUTROS = "OUTROS"


class BillingStatus(str, Enum):
    """Purchasing progress of a cost line."""

    OPEN = "Open"
    ORDER_ISSUED = "OrderIssued"
    INVOICED = "Invoiced"


class User(BaseModel):
    """A team member that work items can be assigned to."""

    id: str
    name: str
    avatar_url: str | None = None


class Sprint(BaseModel):
    """
    A time-boxed iteration.

    Dates are calendar dates; rows created without dates come back as None.
    """

    id: str
    name: str
    start_date: date | None = None
    end_date: date | None = None
    objective: str = ""
    status: SprintStatus = SprintStatus.PLANNED

    def contains(self, day: date, inclusive: bool = True) -> bool:
        """Check whether a day falls inside this sprint's window."""
        if self.start_date is None or self.end_date is None:
            return False
        if inclusive:
            return self.start_date <= day <= self.end_date
        return self.start_date < day < self.end_date


class Attachment(BaseModel):
    """A file stored in the attachments bucket and linked from a work item."""

    id: str = Field(..., description="Storage path of the object")
    name: str
    mime_type: str = ""
    url: str


class WorkItem(BaseModel):
    """
    A backlog entry at any level of the hierarchy.

    ``workstream_id`` is a denormalized pointer to the owning workstream and
    is maintained independently of the ``parent_id`` chain.

    Example:
        >>> item = WorkItem(id="A-4K2ZQ", type=ItemType.TASK, title="Wire login")
        >>> item.priority
        <ItemPriority.P3: 'P3'>
    """

    id: str
    type: ItemType = ItemType.DELIVERY
    title: str = ""
    description: str = ""
    priority: ItemPriority = ItemPriority.P3
    effort: int = Field(default=0, ge=0, description="Effort in points")
    kpi: str = ""
    kpi_impact: str = ""

    assignee_id: str | None = None
    status: ItemStatus = ItemStatus.NEW
    column: BoardColumn = BoardColumn.NEW

    parent_id: str | None = None
    sprint_id: str | None = None
    workstream_id: str | None = None

    blocked: bool = False
    block_reason: str = ""

    start_date: date | None = None
    end_date: date | None = None

    attachments: list[Attachment] = Field(default_factory=list)

    # Cost tracking
    cost_item: str | None = None
    cost_type: CostType | None = None
    cost_value: float | None = None
    request_num: str | None = None
    order_num: str | None = None
    billing_status: BillingStatus | None = None

    @property
    def cost(self) -> float:
        """Cost value with None treated as zero."""
        return self.cost_value or 0.0


class FileUpload(BaseModel):
    """
    A file to be uploaded to a storage bucket.

    Stands in for the browser ``File`` object: a display name, the raw
    bytes and the MIME type.
    """

    name: str
    content: bytes
    mime_type: str = "application/octet-stream"

    model_config = ConfigDict(frozen=True)


# Fields a caller may change through update_work_item(); id is immutable.
WORK_ITEM_MUTABLE_FIELDS: frozenset[str] = frozenset(WorkItem.model_fields) - {"id"}
SPRINT_MUTABLE_FIELDS: frozenset[str] = frozenset(Sprint.model_fields) - {"id"}
