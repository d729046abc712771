"""
Users Router: team members and their roles (Super Admin manages).
"""

import logging
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from changetracker.auth import get_current_user, require_super_admin
from changetracker.database import get_db
from changetracker.models import User
from changetracker.schemas import UserCreate, UserOut, UserUpdate
from changetracker.services.tracker_service import TrackerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("", response_model=list[UserOut])
async def list_users(
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List all users, oldest first."""
    return await TrackerService(db, current).users.get_all()


@router.post("", response_model=UserOut)
async def create_user(
    payload: UserCreate,
    current: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create a user directly. Super Admin only."""
    return await TrackerService(db, current).add_user(payload)


@router.patch("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: str,
    payload: UserUpdate,
    current: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
):
    """Update a user. Renaming also renames the manager on their accounts."""
    return await TrackerService(db, current).update_user(user_id, payload)


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    current: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
):
    """Delete a user. Cannot delete self. Their accounts go to another Admin or "Unassigned"."""
    reassigned = await TrackerService(db, current).delete_user(user_id)
    return {"ok": True, "accountsReassigned": reassigned}
