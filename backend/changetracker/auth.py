"""
Authentication & Authorization: JWT bearer sessions and role gating.

- Web/frontend: JWT from login/signup. Include: Authorization: Bearer <jwt>
- Roles gate endpoints: Super Admin > Admin > Analyst > Viewer.
"""

import logging
import uuid
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from changetracker.database import get_db
from changetracker.models import User, UserRole
from changetracker.services.auth_service import decode_access_token, token_is_revoked

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

# Roles allowed to log and edit changes
EDITOR_ROLES = (UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.ANALYST)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Require JWT and return the User from DB.
    Tokens issued before the user's last sign-out are rejected.
    """
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Missing authorization. Include header: Authorization: Bearer <token>",
        )

    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid or expired token. Please log in again.")

    try:
        user_id = uuid.UUID(str(payload["sub"]))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid or expired token. Please log in again.")
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account is disabled")
    if token_is_revoked(payload, user):
        raise HTTPException(status_code=401, detail="Session has ended. Please log in again.")

    return user


def require_roles(*roles: UserRole):
    """Build a dependency that admits only users holding one of `roles`."""
    allowed = {r.value for r in roles}

    def _dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            logger.info(f"Denied {user.email} ({user.role}); requires one of {sorted(allowed)}")
            raise HTTPException(status_code=403, detail=f"Requires role: {', '.join(sorted(allowed))}")
        return user

    return _dependency


require_super_admin = require_roles(UserRole.SUPER_ADMIN)
require_editor = require_roles(*EDITOR_ROLES)
