"""
Change Tracker: FastAPI Backend
Shared log of campaign changes for a paid-media team: who changed what,
why, the metrics before and after, and whether it worked.
"""

import logging
from contextlib import asynccontextmanager
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from changetracker.config import get_settings
from changetracker.database import init_db, check_db_connection
from changetracker.routers import (
    auth, users, accounts, change_logs, notifications, reports,
)
from changetracker.models import User, UserRole
from changetracker.services.auth_service import hash_password
from sqlalchemy import select, func

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()

SERVICE_NAME = "Change Tracker"


async def _bootstrap_first_admin():
    """Create the first Super Admin if FIRST_ADMIN_EMAIL and FIRST_ADMIN_PASSWORD are set and no users exist."""
    if not settings.first_admin_email or not settings.first_admin_password:
        return
    from changetracker.database import async_session
    async with async_session() as db:
        r = await db.execute(select(func.count()).select_from(User))
        count = r.scalar() or 0
        if count > 0:
            return  # Users already exist
        admin = User(
            email=settings.first_admin_email.lower(),
            password_hash=hash_password(settings.first_admin_password),
            name=settings.first_admin_name,
            role=UserRole.SUPER_ADMIN.value,
            is_active=True,
        )
        db.add(admin)
        await db.commit()
        logger.info(f"Bootstrap: created first Super Admin {admin.email}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {SERVICE_NAME}...")
    try:
        await init_db()
        await _bootstrap_first_admin()
        logger.info("Database initialized, all tables ready.")
    except Exception as e:
        logger.error(f"Startup failed (DB/init): {e}", exc_info=True)
        # Still yield so app can serve /api/health (degraded) and logs are visible
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title=SERVICE_NAME,
    description="Campaign change log with before/after metrics, comments, reports and exports",
    version="1.0.0",
    lifespan=lifespan,
)

CORS_ORIGINS = settings.cors_origin_list


class AddCORSHeadersMiddleware(BaseHTTPMiddleware):
    """Ensure CORS headers on ALL responses (including errors). Runs before CORSMiddleware."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method == "OPTIONS":
            origin = request.headers.get("origin", "")
            if origin in CORS_ORIGINS or not origin:
                return Response(
                    status_code=200,
                    headers={
                        "Access-Control-Allow-Origin": origin or CORS_ORIGINS[0],
                        "Access-Control-Allow-Methods": "GET, POST, PATCH, DELETE, OPTIONS",
                        "Access-Control-Allow-Headers": "Content-Type, Authorization",
                        "Access-Control-Allow-Credentials": "true",
                        "Access-Control-Max-Age": "86400",
                    },
                )
        response = await call_next(request)
        origin = request.headers.get("origin", "")
        if origin in CORS_ORIGINS:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
        return response


# Add CORSMiddleware first (runs second); AddCORSHeadersMiddleware last (runs first for OPTIONS)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(AddCORSHeadersMiddleware)

# ── Auth (signup/login public; logout/session require JWT) ────────────
app.include_router(auth.router, prefix="/api")

# ── Register Routers (each endpoint resolves the current user itself) ─
app.include_router(users.router, prefix="/api")
app.include_router(accounts.router, prefix="/api/accounts", tags=["Accounts"])
app.include_router(change_logs.router, prefix="/api/change-logs", tags=["Change Logs"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(reports.router, prefix="/api/reports", tags=["Reports"])


@app.get("/api/health")
async def health_check():
    db_ok = await check_db_connection()
    return {
        "status": "healthy" if db_ok else "degraded",
        "service": SERVICE_NAME,
        "database": "connected" if db_ok else "disconnected",
    }
