"""
Entity models, remote row mapping and ID generation.
"""

from agileboard.core.items.ids import (
    IdGenerationError,
    generate_unique_work_item_id,
    generate_work_item_id,
    is_valid_work_item_id,
)
from agileboard.core.items.models import (
    Attachment,
    BillingStatus,
    BoardColumn,
    CostType,
    FileUpload,
    ItemPriority,
    ItemStatus,
    ItemType,
    Sprint,
    SprintStatus,
    User,
    WorkItem,
)

__all__ = [
    # Models
    "Attachment",
    "BillingStatus",
    "BoardColumn",
    "CostType",
    "FileUpload",
    "ItemPriority",
    "ItemStatus",
    "ItemType",
    "Sprint",
    "SprintStatus",
    "User",
    "WorkItem",
    # IDs
    "IdGenerationError",
    "generate_unique_work_item_id",
    "generate_work_item_id",
    "is_valid_work_item_id",
]
