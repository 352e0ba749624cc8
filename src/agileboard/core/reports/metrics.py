"""Dashboard indicators."""

from pydantic import BaseModel, Field

from agileboard.core.items.models import ItemStatus, Sprint, SprintStatus, User, WorkItem


class VelocityPoint(BaseModel):
    sprint_id: str
    sprint_name: str
    planned: int
    delivered: int


class AssigneeLoad(BaseModel):
    user_id: str
    name: str
    total: int
    closed: int


class DashboardMetrics(BaseModel):
    total_items: int
    active_sprints: int
    blocked_items: int
    delivery_rate: int = Field(description="Percent of items closed, rounded")
    status_breakdown: dict[str, int]
    velocity: list[VelocityPoint]
    by_assignee: list[AssigneeLoad]


def velocity(items: list[WorkItem], sprints: list[Sprint]) -> list[VelocityPoint]:
    """Planned vs delivered effort for each sprint, in load order."""
    points = []
    for sprint in sprints:
        in_sprint = [item for item in items if item.sprint_id == sprint.id]
        points.append(
            VelocityPoint(
                sprint_id=sprint.id,
                sprint_name=sprint.name,
                planned=sum(item.effort for item in in_sprint),
                delivered=sum(
                    item.effort for item in in_sprint if item.status == ItemStatus.CLOSED
                ),
            )
        )
    return points


def compute_metrics(
    items: list[WorkItem],
    sprints: list[Sprint],
    users: list[User],
) -> DashboardMetrics:
    closed = sum(1 for item in items if item.status == ItemStatus.CLOSED)
    return DashboardMetrics(
        total_items=len(items),
        active_sprints=sum(1 for sprint in sprints if sprint.status == SprintStatus.ACTIVE),
        blocked_items=sum(1 for item in items if item.blocked),
        delivery_rate=round(closed / len(items) * 100) if items else 0,
        status_breakdown={
            status.value: sum(1 for item in items if item.status == status)
            for status in ItemStatus
        },
        velocity=velocity(items, sprints),
        by_assignee=[
            AssigneeLoad(
                user_id=user.id,
                name=user.name,
                total=sum(1 for item in items if item.assignee_id == user.id),
                closed=sum(
                    1
                    for item in items
                    if item.assignee_id == user.id and item.status == ItemStatus.CLOSED
                ),
            )
            for user in users
        ],
    )
