"""
Auth Router: sign up, sign in, sign out, session lookup.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException
from pydantic import EmailStr, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from changetracker.auth import get_current_user
from changetracker.database import get_db
from changetracker.models import User, UserRole
from changetracker.schemas import CamelModel, UserOut
from changetracker.services.auth_service import (
    hash_password,
    verify_password,
    create_access_token,
)
from changetracker.services.data_service import UserStore, user_to_domain
from changetracker.utils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


# ── Schemas ────────────────────────────────────────────────────────────

class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class SignUpRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str
    role: UserRole = UserRole.VIEWER

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


def _token_response(user: User) -> TokenResponse:
    token = create_access_token(str(user.id), user.email, user.role, user.token_version or 0)
    return TokenResponse(access_token=token, user=user_to_domain(user))


# ── Endpoints ───────────────────────────────────────────────────────────

@router.post("/signup", response_model=TokenResponse)
async def sign_up(payload: SignUpRequest, db: AsyncSession = Depends(get_db)):
    """Create an account and sign in. The very first user becomes Super Admin;
    nobody else can self-assign a role above Viewer."""
    users = UserStore(db)
    if await users.get_by_email(payload.email):
        raise HTTPException(status_code=409, detail="Email already registered")

    if await users.count() == 0:
        role = UserRole.SUPER_ADMIN
    elif payload.role in (UserRole.SUPER_ADMIN, UserRole.ADMIN):
        raise HTTPException(status_code=403, detail="Only a Super Admin can grant admin roles")
    else:
        role = payload.role

    user = await users.create(
        name=payload.name,
        email=payload.email,
        password_hash=hash_password(payload.password),
        role=role.value,
    )
    user.last_login_at = utcnow()
    await db.flush()
    logger.info(f"Sign-up: {user.email} as {user.role}")
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login with email and password. Returns JWT."""
    user = await UserStore(db).get_by_email(payload.email)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account is disabled")
    if not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    user.last_login_at = utcnow()
    await db.flush()
    return _token_response(user)


@router.post("/logout")
async def logout(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """End every session of the current user; existing tokens stop working."""
    user.token_version = (user.token_version or 0) + 1
    await db.flush()
    logger.info(f"Sign-out: {user.email}")
    return {"ok": True}


@router.get("/session", response_model=UserOut)
async def session(user: User = Depends(get_current_user)):
    """Return the signed-in user for the bearer token."""
    return user_to_domain(user)
