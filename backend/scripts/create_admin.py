#!/usr/bin/env python3
"""
Create the first Super Admin from FIRST_ADMIN_EMAIL and FIRST_ADMIN_PASSWORD in .env.
Run from backend/: python -m scripts.create_admin
"""
import asyncio
import sys


async def main():
    from changetracker.config import get_settings
    from changetracker.database import async_session, init_db
    from changetracker.models import User, UserRole
    from changetracker.services.auth_service import hash_password
    from sqlalchemy import select, func

    settings = get_settings()
    if not settings.first_admin_email or not settings.first_admin_password:
        print("Error: Set FIRST_ADMIN_EMAIL and FIRST_ADMIN_PASSWORD in .env")
        sys.exit(1)

    await init_db()
    async with async_session() as db:
        r = await db.execute(select(func.count()).select_from(User))
        count = r.scalar() or 0
        if count > 0:
            print(f"Users already exist ({count}). Bootstrap only creates the first Super Admin when no users exist.")
            sys.exit(0)

        admin = User(
            email=settings.first_admin_email.lower(),
            password_hash=hash_password(settings.first_admin_password),
            name=settings.first_admin_name,
            role=UserRole.SUPER_ADMIN.value,
            is_active=True,
        )
        db.add(admin)
        await db.commit()
        print(f"Created Super Admin: {admin.email}")


if __name__ == "__main__":
    asyncio.run(main())
