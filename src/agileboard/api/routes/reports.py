"""
Report API routes.

Read-only roll-ups computed from the current snapshot:
- GET /api/board - Kanban lanes and progress of a sprint
- GET /api/reports/metrics - Dashboard indicators
- GET /api/reports/finance - Cost lines, summary and months
- GET /api/reports/gantt - Gantt rows
- GET /api/reports/timeline/{initiative_id} - Initiative timeline
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from agileboard.api.deps import get_configured_service
from agileboard.core.items.models import ItemType, WorkItem
from agileboard.core.reports.board import BoardLane, HierarchyFilter, build_board, sprint_progress
from agileboard.core.reports.finance import FinanceSummary, by_month, cost_items, summarize
from agileboard.core.reports.metrics import DashboardMetrics, compute_metrics
from agileboard.core.reports.timeline import (
    GanttRow,
    TimelineView,
    gantt_rows,
    initiative_timeline,
    timeline_window_start,
)
from agileboard.core.sync import SyncService

router = APIRouter()


class BoardProgress(BaseModel):
    total_points: int
    done_points: int
    blocked: int
    percent: float


class BoardResponse(BaseModel):
    """Lanes of one sprint's board, with its point progress."""

    sprint_id: str | None
    lanes: list[BoardLane]
    progress: BoardProgress


class MonthTotal(BaseModel):
    month: str
    total: float
    item_ids: list[str]


class FinanceResponse(BaseModel):
    summary: FinanceSummary
    months: list[MonthTotal]
    items: list[WorkItem]


class GanttResponse(BaseModel):
    window_start: date
    rows: list[GanttRow]


@router.get("/board", response_model=BoardResponse)
async def get_board(
    sprint_id: str | None = Query(None, description="Sprint (default: selected)"),
    workstream_id: str | None = Query(None),
    initiative_id: str | None = Query(None),
    delivery_id: str | None = Query(None),
    service: SyncService = Depends(get_configured_service),
) -> BoardResponse:
    """
    Get the kanban board of a sprint.

    Without ``sprint_id`` the selected sprint is shown; with no sprints at
    all every lane is empty.
    """
    if sprint_id is None and service.selected_sprint is not None:
        sprint_id = service.selected_sprint.id
    hierarchy = HierarchyFilter(
        workstream_id=workstream_id, initiative_id=initiative_id, delivery_id=delivery_id
    )
    progress = sprint_progress(service.work_items, sprint_id)
    return BoardResponse(
        sprint_id=sprint_id,
        lanes=build_board(service.work_items, sprint_id, hierarchy),
        progress=BoardProgress(**progress.model_dump(), percent=progress.percent),
    )


@router.get("/reports/metrics", response_model=DashboardMetrics)
async def get_metrics(service: SyncService = Depends(get_configured_service)) -> DashboardMetrics:
    return compute_metrics(service.work_items, service.sprints, service.users)


@router.get("/reports/finance", response_model=FinanceResponse)
async def get_finance(
    parent_id: str | None = Query(None, description="Workstream or initiative"),
    service: SyncService = Depends(get_configured_service),
) -> FinanceResponse:
    lines = cost_items(service.work_items, parent_id)
    return FinanceResponse(
        summary=summarize(lines),
        months=[
            MonthTotal(month=b.month, total=b.total, item_ids=[i.id for i in b.items])
            for b in by_month(lines)
        ],
        items=lines,
    )


@router.get("/reports/gantt", response_model=GanttResponse)
async def get_gantt(
    workstream_id: str | None = Query(None),
    initiative_id: str | None = Query(None),
    service: SyncService = Depends(get_configured_service),
) -> GanttResponse:
    rows = gantt_rows(service.work_items, workstream_id, initiative_id)
    return GanttResponse(
        window_start=timeline_window_start([r.item for r in rows]),
        rows=rows,
    )


@router.get("/reports/timeline/{initiative_id}", response_model=TimelineView)
async def get_timeline(
    initiative_id: str, service: SyncService = Depends(get_configured_service)
) -> TimelineView:
    initiative = service.get_work_item(initiative_id)
    if initiative is None or initiative.type != ItemType.INITIATIVE:
        raise HTTPException(status_code=404, detail=f"Initiative not found: {initiative_id}")
    return initiative_timeline(service.work_items, initiative_id)
