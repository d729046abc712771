"""
Tests for the FastAPI application: health endpoint, CORS preflight, auth wall.
"""

import pytest
from unittest.mock import patch, AsyncMock
from httpx import AsyncClient, ASGITransport


@pytest.mark.anyio
async def test_health_endpoint_healthy():
    """Health endpoint should return healthy when DB is connected."""
    with patch("changetracker.main.check_db_connection", new_callable=AsyncMock, return_value=True):
        from changetracker.main import app
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/health")
            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "healthy"
            assert data["database"] == "connected"
            assert data["service"] == "Change Tracker"


@pytest.mark.anyio
async def test_health_endpoint_degraded():
    """Health endpoint should return degraded when DB is disconnected."""
    with patch("changetracker.main.check_db_connection", new_callable=AsyncMock, return_value=False):
        from changetracker.main import app
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/health")
            assert response.status_code == 200
            assert response.json()["status"] == "degraded"


@pytest.mark.anyio
async def test_preflight_allows_configured_origin():
    from changetracker.main import app
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.options(
            "/api/change-logs",
            headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "POST"},
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
        assert "PATCH" in response.headers["access-control-allow-methods"]


@pytest.mark.anyio
@pytest.mark.parametrize("path", [
    "/api/users",
    "/api/accounts",
    "/api/change-logs",
    "/api/notifications",
    "/api/reports/summary",
    "/api/reports/export.csv",
])
async def test_data_endpoints_require_token(client, path):
    response = await client.get(path)
    assert response.status_code == 401
