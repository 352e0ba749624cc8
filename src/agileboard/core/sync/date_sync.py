"""
Assign tasks and bugs to sprints by their dates.

A bulk convenience: for every Task/Bug with dates, find the sprint whose
window holds it and plan a ``sprint_id`` change. The rule is a policy:

- match ``contained``: item start and end both inside the sprint window
- match ``end_date``: the item's end date inside the window
- ``inclusive``: whether the window boundaries count as inside
- ``overlap``: when several sprints match, take the ``first`` or ``last``
  in load order, or ``skip`` the item

Planning is pure. SyncService.sync_sprints_by_date() applies the plan.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from agileboard.core.config.models import DateSyncConfig
from agileboard.core.items.models import Sprint, WorkItem


class DateSyncPolicy(BaseModel):
    """How items are matched to sprint windows."""

    match: Literal["contained", "end_date"] = "contained"
    inclusive: bool = True
    overlap: Literal["first", "last", "skip"] = "first"

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_config(cls, config: DateSyncConfig) -> "DateSyncPolicy":
        return cls(match=config.match, inclusive=config.inclusive, overlap=config.overlap)


class SprintAssignment(BaseModel):
    """A planned sprint change for one work item."""

    item_id: str
    sprint_id: str
    previous_sprint_id: str | None = Field(default=None)


def _matches(item: WorkItem, sprint: Sprint, policy: DateSyncPolicy) -> bool:
    if item.end_date is None:
        return False
    if policy.match == "end_date":
        return sprint.contains(item.end_date, policy.inclusive)
    if item.start_date is None:
        return False
    return sprint.contains(item.start_date, policy.inclusive) and sprint.contains(
        item.end_date, policy.inclusive
    )


def plan_sprint_assignments(
    items: list[WorkItem],
    sprints: list[Sprint],
    policy: DateSyncPolicy | None = None,
) -> list[SprintAssignment]:
    """
    Plan sprint changes for dated tasks and bugs.

    Args:
        items: Work items in load order
        sprints: Sprints in load order
        policy: Matching policy (defaults: contained, inclusive, first)

    Returns:
        One assignment per item whose sprint should change. Items already
        in the matching sprint are left out.
    """
    policy = policy or DateSyncPolicy()
    plan: list[SprintAssignment] = []

    for item in items:
        if not item.type.is_leaf:
            continue

        candidates = [sprint for sprint in sprints if _matches(item, sprint, policy)]
        if not candidates:
            continue
        if len(candidates) > 1 and policy.overlap == "skip":
            continue

        target = candidates[-1] if policy.overlap == "last" else candidates[0]
        if item.sprint_id == target.id:
            continue

        plan.append(
            SprintAssignment(
                item_id=item.id, sprint_id=target.id, previous_sprint_id=item.sprint_id
            )
        )

    return plan
