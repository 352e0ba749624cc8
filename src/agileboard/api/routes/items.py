"""
Work item API routes.

Provides endpoints for the backlog and the board:
- GET /api/items - Filtered and sorted list
- GET /api/items/{id} - One item with its effort roll-up
- POST /api/items - Create (id generated server-side)
- PATCH /api/items/{id} - Optimistic partial update
- PUT /api/items/{id}/column - Move to a kanban lane
- DELETE /api/items/{id} - Delete
- POST /api/items/{id}/attachments - Upload a file (raw request body)
- DELETE /api/items/{id}/attachments/{attachment_id} - Forget an attachment
"""

from typing import Any, cast

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel

from agileboard.api.deps import backend_failure, get_configured_service
from agileboard.core.items.models import Attachment, BoardColumn, FileUpload, WorkItem
from agileboard.core.reports.backlog import (
    Rollup,
    SortKey,
    filter_items,
    rollup,
    sort_items,
)
from agileboard.core.sync import SyncService

router = APIRouter()


class WorkItemDetail(BaseModel):
    """Work item with its effort and progress over its descendants."""

    item: WorkItem
    rollup: Rollup


class ColumnMove(BaseModel):
    """Request body for PUT /api/items/{id}/column."""

    column: BoardColumn


def _require_item(service: SyncService, item_id: str) -> WorkItem:
    item = service.get_work_item(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail=f"Work item not found: {item_id}")
    return item


def _bad_request(e: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/items", response_model=list[WorkItem])
async def list_items(
    filter_text: str | None = Query(None, alias="filter", description="Title contains"),
    sort: str | None = Query(None, description="Column to sort by"),
    desc: bool = Query(False, description="Sort descending"),
    item_type: str | None = Query(None, alias="type", description="Only this type"),
    sprint_id: str | None = Query(None, description="Only items of this sprint"),
    service: SyncService = Depends(get_configured_service),
) -> list[WorkItem]:
    items = filter_items(service.work_items, filter_text)
    if item_type:
        items = [i for i in items if i.type.value.lower() == item_type.lower()]
    if sprint_id:
        items = [i for i in items if i.sprint_id == sprint_id]
    if sort:
        try:
            items = sort_items(
                items, cast(SortKey, sort), desc, users=service.users, all_items=service.work_items
            )
        except ValueError as e:
            raise _bad_request(e)
    return items


@router.get("/items/{item_id}", response_model=WorkItemDetail)
async def get_item(
    item_id: str, service: SyncService = Depends(get_configured_service)
) -> WorkItemDetail:
    item = _require_item(service, item_id)
    return WorkItemDetail(item=item, rollup=rollup(item, service.work_items))


@router.post("/items", response_model=WorkItem, status_code=status.HTTP_201_CREATED)
async def create_item(
    fields: dict[str, Any] = Body(default_factory=dict),
    service: SyncService = Depends(get_configured_service),
) -> WorkItem:
    """
    Create a work item.

    Unset fields take their defaults; the title defaults to "New Item".
    Enum and date fields accept their string forms.
    """
    try:
        item = await service.create_work_item(fields)
    except ValueError as e:
        raise _bad_request(e)
    if item is None:
        raise backend_failure(service)
    return item


@router.patch("/items/{item_id}", response_model=WorkItem)
async def update_item(
    item_id: str,
    changes: dict[str, Any] = Body(...),
    service: SyncService = Depends(get_configured_service),
) -> WorkItem:
    """
    Update some fields of a work item.

    Only the given keys are written. On a schema mismatch the local change
    stays and the response is 502 with setup guidance.
    """
    _require_item(service, item_id)
    try:
        ok = await service.update_work_item(item_id, changes)
    except ValueError as e:
        raise _bad_request(e)
    if not ok:
        raise backend_failure(service)
    return _require_item(service, item_id)


@router.put("/items/{item_id}/column", response_model=WorkItem)
async def move_item(
    item_id: str,
    move: ColumnMove,
    service: SyncService = Depends(get_configured_service),
) -> WorkItem:
    _require_item(service, item_id)
    if not await service.move_to_column(item_id, move.column):
        raise backend_failure(service)
    return _require_item(service, item_id)


@router.delete("/items/{item_id}")
async def delete_item(
    item_id: str, service: SyncService = Depends(get_configured_service)
) -> dict[str, bool]:
    _require_item(service, item_id)
    if not await service.delete_work_item(item_id):
        raise backend_failure(service)
    return {"deleted": True}


@router.post(
    "/items/{item_id}/attachments",
    response_model=Attachment,
    status_code=status.HTTP_201_CREATED,
)
async def upload_attachment(
    item_id: str,
    request: Request,
    name: str = Query(..., min_length=1, description="File name"),
    service: SyncService = Depends(get_configured_service),
) -> Attachment:
    """
    Upload the request body as an attachment of a work item.

    The MIME type is taken from the Content-Type header.
    """
    _require_item(service, item_id)
    upload = FileUpload(
        name=name,
        content=await request.body(),
        mime_type=request.headers.get("content-type") or "application/octet-stream",
    )
    attachment = await service.upload_attachment(item_id, upload)
    if attachment is None:
        raise backend_failure(service)
    return attachment


@router.delete("/items/{item_id}/attachments/{attachment_id:path}")
async def remove_attachment(
    item_id: str,
    attachment_id: str,
    service: SyncService = Depends(get_configured_service),
) -> dict[str, bool]:
    """Drop an attachment from the item. The stored file is kept."""
    item = _require_item(service, item_id)
    if not any(a.id == attachment_id for a in item.attachments):
        raise HTTPException(status_code=404, detail=f"Attachment not found: {attachment_id}")
    if not await service.remove_attachment(item_id, attachment_id):
        raise backend_failure(service)
    return {"removed": True}
