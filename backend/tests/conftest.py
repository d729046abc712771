"""
Shared fixtures. The app runs against a throwaway SQLite file so tests need no Postgres.
DATABASE_URL must be set before changetracker is imported (the engine is built at import time).
"""

import os
import tempfile
from datetime import date

import pytest

_TEST_DB_DIR = tempfile.mkdtemp(prefix="changetracker-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"
os.environ["ENVIRONMENT"] = "development"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["FIRST_ADMIN_EMAIL"] = ""
os.environ["FIRST_ADMIN_PASSWORD"] = ""

from httpx import AsyncClient, ASGITransport  # noqa: E402
from unittest.mock import patch  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def fast_hashing():
    """bcrypt at 12 rounds is slow; tests only need a working hash."""
    from changetracker.services import auth_service
    fast = auth_service.CryptContext(schemes=["bcrypt"], bcrypt__rounds=4)
    with patch.object(auth_service, "pwd_context", fast):
        yield


@pytest.fixture
async def fresh_db(anyio_backend):
    from changetracker.database import drop_and_recreate_db
    await drop_and_recreate_db()
    yield


@pytest.fixture
async def db(fresh_db):
    from changetracker.database import async_session
    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(fresh_db):
    from changetracker.main import app
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def make_user(db, name="Alice", email=None, role="Viewer", password="secret123"):
    from changetracker.services.auth_service import hash_password
    from changetracker.services.data_service import UserStore
    user = await UserStore(db).create(
        name=name,
        email=email or f"{name.lower().replace(' ', '.')}@example.com",
        password_hash=hash_password(password),
        role=role,
    )
    return user


async def make_account(db, name="Acme Search", manager="Alice", **kwargs):
    from changetracker.schemas import AccountCreate
    from changetracker.services.data_service import AccountStore
    payload = AccountCreate(name=name, client=kwargs.pop("client", "Acme"), manager=manager, **kwargs)
    return await AccountStore(db).create(payload)


def change_log_payload(account_id: str, **overrides):
    from changetracker.schemas import ChangeLogCreate
    data = {
        "date_of_change": date(2026, 10, 1),
        "account_id": account_id,
        "campaign_name": "Brand - Exact",
        "category": "Bidding",
        "description": "Raised max CPC by 10%",
        "reason": "Impression share lost to rank",
        "expected_impact": "Positive",
        "pre_change_metrics": {"ctr": 2.5, "cpc": 1.2, "conv_rate": 3.1, "cpa": 38.0},
    }
    data.update(overrides)
    return ChangeLogCreate(**data)


async def signup(client, email="first@example.com", name="First User", password="secret123", role=None):
    body = {"email": email, "name": name, "password": password}
    if role:
        body["role"] = role
    r = await client.post("/api/auth/signup", json=body)
    return r


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
