"""
Integration tests for the health endpoint.
"""

import pytest
import pytest_asyncio
from httpx import AsyncClient

from app.api.endpoints import health
from app.db import async_session
from app.db.async_session import AsyncDatabaseManager


@pytest_asyncio.fixture
async def sqlite_db_manager(monkeypatch):
    manager = AsyncDatabaseManager("sqlite+aiosqlite://")
    monkeypatch.setattr(async_session, "_async_db_manager", manager)
    yield manager
    await manager.close()


class TestHealthEndpoint:

    @pytest.mark.asyncio
    async def test_healthy(self, async_client: AsyncClient, sqlite_db_manager):
        response = await async_client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["response_time_ms"] >= 0

    @pytest.mark.asyncio
    async def test_database_down(self, async_client: AsyncClient, monkeypatch):
        async def unhealthy():
            return {"status": "unhealthy", "connection_test": False, "response_time_ms": 1.0, "timestamp": "now"}

        monkeypatch.setattr(health, "check_async_database_health", unhealthy)

        response = await async_client.get("/api/health")

        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_root(self, async_client: AsyncClient):
        response = await async_client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
