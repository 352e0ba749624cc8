"""
Sprint API routes.

Provides endpoints for sprints and the sprint selection:
- GET /api/sprints - All sprints in creation order
- POST /api/sprints - Create (defaults follow the last sprint) and select
- PATCH /api/sprints/{id} - Update
- DELETE /api/sprints/{id} - Unlink its items, then delete
- PUT /api/sprints/selected - Change the selected sprint
- POST /api/sprints/sync-dates - Move dated tasks into matching sprints
"""

from typing import Any, Literal

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import BaseModel

from agileboard.api.deps import backend_failure, get_configured_service
from agileboard.core.items.models import Sprint
from agileboard.core.sync import DateSyncPolicy, SprintAssignment, SyncService

router = APIRouter()


class SprintSelection(BaseModel):
    """Request body for PUT /api/sprints/selected."""

    sprint_id: str


class DateSyncRequest(BaseModel):
    """Request body for POST /api/sprints/sync-dates; unset fields use the config."""

    match: Literal["contained", "end_date"] | None = None
    inclusive: bool | None = None
    overlap: Literal["first", "last", "skip"] | None = None


def _require_sprint(service: SyncService, sprint_id: str) -> Sprint:
    sprint = service.get_sprint(sprint_id)
    if sprint is None:
        raise HTTPException(status_code=404, detail=f"Sprint not found: {sprint_id}")
    return sprint


@router.get("/sprints", response_model=list[Sprint])
async def list_sprints(service: SyncService = Depends(get_configured_service)) -> list[Sprint]:
    return service.sprints


# NOTE: These routes must be defined BEFORE /sprints/{sprint_id} so that
# "selected" and "sync-dates" are not taken as sprint ids
@router.put("/sprints/selected", response_model=Sprint)
async def select_sprint(
    selection: SprintSelection,
    service: SyncService = Depends(get_configured_service),
) -> Sprint:
    sprint = _require_sprint(service, selection.sprint_id)
    service.select_sprint(sprint.id)
    return sprint


@router.post("/sprints/sync-dates", response_model=list[SprintAssignment])
async def sync_dates(
    request: DateSyncRequest | None = None,
    service: SyncService = Depends(get_configured_service),
) -> list[SprintAssignment]:
    policy = DateSyncPolicy.from_config(service.config.date_sync)
    if request is not None:
        policy = policy.model_copy(update=request.model_dump(exclude_none=True))
    return await service.sync_sprints_by_date(policy)


@router.post("/sprints", response_model=Sprint, status_code=status.HTTP_201_CREATED)
async def create_sprint(
    fields: dict[str, Any] = Body(default_factory=dict),
    service: SyncService = Depends(get_configured_service),
) -> Sprint:
    """
    Create a sprint and select it.

    Missing fields default to: name "SPRINT <year> - NEW", start the day
    after the last sprint ends (or today), end after the configured sprint
    length, status Planned.
    """
    try:
        sprint = await service.create_sprint(fields)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if sprint is None:
        raise backend_failure(service)
    return sprint


@router.patch("/sprints/{sprint_id}", response_model=Sprint)
async def update_sprint(
    sprint_id: str,
    changes: dict[str, Any] = Body(...),
    service: SyncService = Depends(get_configured_service),
) -> Sprint:
    _require_sprint(service, sprint_id)
    try:
        ok = await service.update_sprint(sprint_id, changes)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not ok:
        raise backend_failure(service)
    return _require_sprint(service, sprint_id)


@router.delete("/sprints/{sprint_id}")
async def delete_sprint(
    sprint_id: str, service: SyncService = Depends(get_configured_service)
) -> dict[str, bool]:
    """Delete a sprint. Its work items stay, with no sprint."""
    _require_sprint(service, sprint_id)
    if not await service.delete_sprint(sprint_id):
        raise backend_failure(service)
    return {"deleted": True}
