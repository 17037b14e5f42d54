"""
Integration Tests for the users endpoints.
"""

import pytest
from httpx import AsyncClient


class TestUsersApi:
    @pytest.mark.asyncio
    async def test_admin_lists_tenant_users(self, client: AsyncClient, seed, headers_for):
        response = await client.get("/api/users", headers=headers_for(seed.owner))

        assert response.status_code == 200
        emails = sorted(u["email"] for u in response.json()["data"])
        assert emails == ["alice@agence.test", "bob@agence.test"]

    @pytest.mark.asyncio
    async def test_regular_user_forbidden(self, client: AsyncClient, seed, headers_for):
        response = await client.get("/api/users", headers=headers_for(seed.member))

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_create_returns_temporary_password(self, client: AsyncClient, seed, headers_for):
        headers = headers_for(seed.owner)

        response = await client.post(
            "/api/users",
            json={"name": "Chloé", "email": "chloe@agence.test"},
            headers=headers,
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["user"]["email"] == "chloe@agence.test"
        assert data["user"]["role"] == "tenant_user"
        assert data["temporaryPassword"]

        login = await client.post(
            "/api/auth/login",
            json={"email": "chloe@agence.test", "password": data["temporaryPassword"]},
        )
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_duplicate_email(self, client: AsyncClient, seed, headers_for):
        response = await client.post(
            "/api/users",
            json={"name": "Bob bis", "email": "bob@agence.test"},
            headers=headers_for(seed.owner),
        )

        assert response.status_code == 409
