"""
Integration Tests for the authentication endpoints.
"""

import pytest
from httpx import AsyncClient

TEST_PASSWORD = "motdepasse-test"


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_returns_token(self, client: AsyncClient, seed):
        response = await client.post(
            "/api/auth/login",
            json={"email": "alice@agence.test", "password": TEST_PASSWORD},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["tokenType"] == "bearer"
        assert body["data"]["user"]["email"] == "alice@agence.test"
        assert body["data"]["user"]["tenantId"] == seed.tenant.id
        assert body["data"]["impersonating"] is False

        me = await client.get(
            "/api/auth/me",
            headers={"Authorization": f"Bearer {body['data']['accessToken']}"},
        )
        assert me.json()["data"]["id"] == seed.owner.id

    @pytest.mark.asyncio
    async def test_wrong_password(self, client: AsyncClient, seed):
        response = await client.post(
            "/api/auth/login",
            json={"email": "alice@agence.test", "password": "mauvais"},
        )

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["data"] is None
        assert body["error"]["code"] == "AUTH_UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_unknown_email(self, client: AsyncClient, seed):
        response = await client.post(
            "/api/auth/login",
            json={"email": "personne@agence.test", "password": TEST_PASSWORD},
        )

        assert response.status_code == 401


class TestMe:
    @pytest.mark.asyncio
    async def test_me(self, client: AsyncClient, seed, headers_for):
        response = await client.get("/api/auth/me", headers=headers_for(seed.owner))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["email"] == "alice@agence.test"
        assert data["isAdmin"] is True
        assert data["isImpersonating"] is False

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_garbage_token(self, client: AsyncClient):
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer pas-un-jeton"})

        assert response.status_code == 401


class TestImpersonation:
    @pytest.mark.asyncio
    async def test_admin_impersonates_and_switches_back(self, client: AsyncClient, seed, headers_for):
        response = await client.post(
            "/api/auth/impersonate",
            json={"userId": seed.member.id},
            headers=headers_for(seed.owner),
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["impersonating"] is True
        assert data["user"]["id"] == seed.member.id
        as_member = {"Authorization": f"Bearer {data['accessToken']}"}

        me = (await client.get("/api/auth/me", headers=as_member)).json()["data"]
        assert me["id"] == seed.member.id
        assert me["isImpersonating"] is True
        assert me["originalUserId"] == seed.owner.id

        ended = await client.post("/api/auth/impersonate/end", headers=as_member)
        assert ended.status_code == 200
        back = {"Authorization": f"Bearer {ended.json()['data']['accessToken']}"}

        me = (await client.get("/api/auth/me", headers=back)).json()["data"]
        assert me["id"] == seed.owner.id
        assert me["isImpersonating"] is False

    @pytest.mark.asyncio
    async def test_member_cannot_impersonate(self, client: AsyncClient, seed, headers_for):
        response = await client.post(
            "/api/auth/impersonate",
            json={"userId": seed.owner.id},
            headers=headers_for(seed.member),
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "AUTHZ_FORBIDDEN"

    @pytest.mark.asyncio
    async def test_cannot_impersonate_self(self, client: AsyncClient, seed, headers_for):
        response = await client.post(
            "/api/auth/impersonate",
            json={"userId": seed.owner.id},
            headers=headers_for(seed.owner),
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_end_without_impersonation(self, client: AsyncClient, seed, headers_for):
        response = await client.post("/api/auth/impersonate/end", headers=headers_for(seed.owner))

        assert response.status_code == 400
