"""
Integration Tests for the health endpoints.
"""

import pytest
from httpx import AsyncClient


class TestHealth:
    @pytest.mark.asyncio
    async def test_liveness(self, client: AsyncClient):
        response = await client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client: AsyncClient):
        response = await client.get("/api/health", headers={"X-Request-ID": "req-123"})

        assert response.headers.get("X-Request-ID") == "req-123"

    @pytest.mark.asyncio
    async def test_webhook_health(self, client: AsyncClient):
        response = await client.get("/api/telegram/webhook/health")

        assert response.status_code == 200
        assert response.json()["webhook_path"] == "/api/telegram/webhook"
