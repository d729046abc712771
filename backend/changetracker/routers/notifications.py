"""
Notifications Router: the activity feed written on every change-log and comment mutation.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from changetracker.auth import get_current_user, require_super_admin
from changetracker.config import get_settings
from changetracker.database import get_db
from changetracker.models import User
from changetracker.schemas import NotificationOut
from changetracker.services.tracker_service import TrackerService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=list[NotificationOut])
async def list_notifications(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Newest first."""
    limit = limit or get_settings().notification_list_limit
    return await TrackerService(db, current).notifications.get_all(limit)


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    current: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
):
    await TrackerService(db, current).delete_notification(notification_id)
    return {"ok": True}
