"""
Reports Router: aggregate charts, dashboard counters and change-log exports.

All numbers are recomputed per request from the full collections.
"""

import asyncio
import io
import logging
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from changetracker.auth import get_current_user
from changetracker.database import get_db
from changetracker.models import User
from changetracker.schemas import DashboardStats, ReportSummary
from changetracker.services.export_service import build_change_log_csv, build_change_log_pdf
from changetracker.services.reporting_service import build_summary, dashboard_stats
from changetracker.services.tracker_service import TrackerService
from changetracker.utils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()

CSV_FILENAME = "change_log_export.csv"
PDF_FILENAME = "change_log_report.pdf"


@router.get("/summary", response_model=ReportSummary)
async def report_summary(
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Changes by category, changes and successes per user, per-account activity windows."""
    snap = await TrackerService(db, current).snapshot()
    return build_summary(snap.accounts, snap.change_logs, snap.users, utcnow())


@router.get("/dashboard", response_model=DashboardStats)
async def dashboard(
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tracker = TrackerService(db, current)
    accounts = await tracker.accounts.get_all()
    logs = await tracker.change_logs.get_all()
    return dashboard_stats(accounts, logs, utcnow())


@router.get("/export.csv")
async def export_csv(
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Every change log as CSV (one row per log)."""
    snap = await TrackerService(db, current).snapshot()
    content = build_change_log_csv(snap.change_logs, snap.accounts, snap.users)
    logger.info(f"CSV export by {current.email}: {len(snap.change_logs)} row(s)")
    return StreamingResponse(
        io.StringIO(content),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={CSV_FILENAME}"},
    )


@router.get("/export.pdf")
async def export_pdf(
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Every change log as a landscape PDF table."""
    snap = await TrackerService(db, current).snapshot()
    content = await asyncio.to_thread(
        build_change_log_pdf, snap.change_logs, snap.accounts, snap.users, generated_at=utcnow(),
    )
    return StreamingResponse(
        io.BytesIO(content),
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={PDF_FILENAME}"},
    )
