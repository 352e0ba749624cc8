"""
Snapshot API routes.

Provides endpoints for reading the whole synchronized state:
- GET /api/snapshot - Users, sprints, work items, loading flag, selection
- GET /api/alerts - Alerts raised by failed operations, oldest first
- POST /api/refresh - Reload everything from the backend
"""

from fastapi import APIRouter, Depends

from agileboard.api.deps import get_configured_service, get_service
from agileboard.core.sync import RecordingNotifier, Snapshot, SyncService

router = APIRouter()


@router.get("/snapshot", response_model=Snapshot)
async def get_snapshot(service: SyncService = Depends(get_service)) -> Snapshot:
    """
    Get the current snapshot.

    Answers even without a backend: the collections are then empty and
    ``configured`` is false.
    """
    return service.snapshot()


@router.get("/alerts")
async def get_alerts(service: SyncService = Depends(get_service)) -> list[str]:
    notifier = service.notifier
    if isinstance(notifier, RecordingNotifier):
        return list(notifier.messages)
    return []


@router.post("/refresh", response_model=Snapshot)
async def refresh(service: SyncService = Depends(get_configured_service)) -> Snapshot:
    await service.refresh()
    return service.snapshot()
