"""Selected-sprint rules."""

from agileboard.core.items.models import Sprint, SprintStatus


def reconcile_selection(selected_id: str | None, sprints: list[Sprint]) -> str | None:
    """
    Pick the selected sprint id after a reload.

    - A selection that still exists is kept.
    - A selection that disappeared falls back to the last sprint in load
      order (None when there are no sprints).
    - With no selection, the Active sprint wins; otherwise the last one.

    Example:
        >>> reconcile_selection(None, [closed, active, planned]) == active.id
        True
    """
    if not sprints:
        return None

    if selected_id is not None:
        if any(sprint.id == selected_id for sprint in sprints):
            return selected_id
        return sprints[-1].id

    for sprint in sprints:
        if sprint.status == SprintStatus.ACTIVE:
            return sprint.id
    return sprints[-1].id


def resolve_selected(selected_id: str | None, sprints: list[Sprint]) -> Sprint | None:
    """The selected Sprint, or the last one when the id matches nothing."""
    for sprint in sprints:
        if sprint.id == selected_id:
            return sprint
    return sprints[-1] if sprints else None
