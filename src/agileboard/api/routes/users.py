"""
Team member API routes.

- GET /api/users - All users by name
- POST /api/users - Add a user
- DELETE /api/users/{id} - Remove a user
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from agileboard.api.deps import backend_failure, get_configured_service
from agileboard.core.items.models import User
from agileboard.core.sync import SyncService

router = APIRouter()


class UserCreate(BaseModel):
    """Request body for POST /api/users."""

    name: str = Field(min_length=1)


@router.get("/users", response_model=list[User])
async def list_users(service: SyncService = Depends(get_configured_service)) -> list[User]:
    return service.users


@router.post("/users", response_model=User, status_code=status.HTTP_201_CREATED)
async def add_user(
    body: UserCreate, service: SyncService = Depends(get_configured_service)
) -> User:
    known = {user.id for user in service.users}
    if not await service.add_user(body.name):
        raise backend_failure(service)
    added = [u for u in service.users if u.id not in known and u.name == body.name]
    if not added:
        raise backend_failure(service)
    return added[0]


@router.delete("/users/{user_id}")
async def remove_user(
    user_id: str, service: SyncService = Depends(get_configured_service)
) -> dict[str, bool]:
    if not any(u.id == user_id for u in service.users):
        raise HTTPException(status_code=404, detail=f"User not found: {user_id}")
    if not await service.remove_user(user_id):
        raise backend_failure(service)
    return {"deleted": True}
