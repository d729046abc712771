"""
Accounts Router: the advertising accounts the team tracks.
"""

import logging
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from changetracker.auth import get_current_user, require_super_admin
from changetracker.database import get_db
from changetracker.models import User
from changetracker.schemas import AccountCreate, AccountOut, AccountUpdate
from changetracker.services.data_service import account_to_domain
from changetracker.services.tracker_service import TrackerService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=list[AccountOut])
async def list_accounts(
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await TrackerService(db, current).accounts.get_all()


@router.get("/{account_id}", response_model=AccountOut)
async def get_account(
    account_id: str,
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    account = await TrackerService(db, current).accounts.get_row(account_id)
    return account_to_domain(account)


@router.post("", response_model=AccountOut)
async def create_account(
    payload: AccountCreate,
    current: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
):
    return await TrackerService(db, current).add_account(payload)


@router.patch("/{account_id}", response_model=AccountOut)
async def update_account(
    account_id: str,
    payload: AccountUpdate,
    current: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
):
    return await TrackerService(db, current).update_account(account_id, payload)


@router.delete("/{account_id}")
async def delete_account(
    account_id: str,
    current: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
):
    """Delete an account together with all of its change logs."""
    removed = await TrackerService(db, current).delete_account(account_id)
    return {"ok": True, "changeLogsDeleted": removed}
