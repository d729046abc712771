"""
Change Logs Router: log campaign changes, record outcomes, discuss via comments.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from changetracker.auth import get_current_user, require_editor, require_super_admin
from changetracker.database import get_db
from changetracker.models import User
from changetracker.schemas import (
    ChangeLogCreate, ChangeLogOut, ChangeLogUpdate, CommentCreate, CommentOut, MetricComparison,
)
from changetracker.services.reporting_service import filter_change_logs, metric_comparison
from changetracker.services.tracker_service import TrackerService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=list[ChangeLogOut])
async def list_change_logs(
    search: Optional[str] = Query(None, description="Case-insensitive text search"),
    account_id: Optional[str] = Query(None, alias="accountId", description="Restrict to one account, or 'all'"),
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """All change logs, newest first, optionally filtered."""
    tracker = TrackerService(db, current)
    logs = await tracker.change_logs.get_all()
    if not search and not account_id:
        return logs
    accounts = await tracker.accounts.get_all()
    return filter_change_logs(logs, accounts, search=search, account_id=account_id)


@router.get("/{log_id}", response_model=ChangeLogOut)
async def get_change_log(
    log_id: str,
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TrackerService(db, current).change_logs.get(log_id)


@router.get("/{log_id}/comparison", response_model=list[MetricComparison])
async def get_metric_comparison(
    log_id: str,
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Before/after values for each metric present on both sides."""
    log = await TrackerService(db, current).change_logs.get(log_id)
    return metric_comparison(log)


@router.post("", response_model=ChangeLogOut)
async def create_change_log(
    payload: ChangeLogCreate,
    current: User = Depends(require_editor),
    db: AsyncSession = Depends(get_db),
):
    """Log a new change. It starts Pending with no outcome recorded."""
    return await TrackerService(db, current).add_change_log(payload)


@router.patch("/{log_id}", response_model=ChangeLogOut)
async def update_change_log(
    log_id: str,
    payload: ChangeLogUpdate,
    current: User = Depends(require_editor),
    db: AsyncSession = Depends(get_db),
):
    """Edit a log or record its outcome (post-change metrics, result, summary)."""
    return await TrackerService(db, current).update_change_log(log_id, payload)


@router.delete("/{log_id}")
async def delete_change_log(
    log_id: str,
    current: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
):
    await TrackerService(db, current).delete_change_log(log_id)
    return {"ok": True}


# ── Comments ───────────────────────────────────────────────────────────

@router.post("/{log_id}/comments", response_model=CommentOut)
async def add_comment(
    log_id: str,
    payload: CommentCreate,
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TrackerService(db, current).add_comment(log_id, payload.text)


@router.delete("/{log_id}/comments/{comment_id}")
async def delete_comment(
    log_id: str,
    comment_id: str,
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await TrackerService(db, current).delete_comment(log_id, comment_id)
    return {"ok": True}
