"""
Integration Tests for role-based access to the dashboard endpoints.

Client portal accounts can log in but never reach tenant-wide data, and
integration credentials are only returned to tenant administrators.
"""

import json

import pytest
from httpx import AsyncClient

from crm.backend.core.security import hash_password
from crm.backend.models.client import Client
from crm.backend.models.tenant import ROLE_CLIENT, Tenant, User

TEST_PASSWORD = "motdepasse-test"

SECRETS = {"smtpHost": "smtp.agence.test", "smtpPassword": "TOPSECRET", "openaiApiKey": "sk-test-key"}


@pytest.fixture
async def portal_user(db_session_factory, seed) -> User:
    """Client-portal login of "Dupont SARL", next to a second customer."""
    async with db_session_factory() as session:
        session.add(Client(tenant_id=seed.tenant.id, company_name="Concurrent SA"))
        user = User(
            tenant_id=seed.tenant.id,
            name="Paul Dupont",
            email="paul@dupont.test",
            password=hash_password(TEST_PASSWORD),
            role=ROLE_CLIENT,
            client_id=seed.client.id,
        )
        session.add(user)
        tenant = await session.get(Tenant, seed.tenant.id)
        tenant.settings = json.dumps(SECRETS)
        await session.commit()
        return user


class TestClientPortalAccount:
    @pytest.mark.asyncio
    async def test_login_still_works(self, client: AsyncClient, portal_user):
        response = await client.post(
            "/api/auth/login",
            json={"email": "paul@dupont.test", "password": TEST_PASSWORD},
        )

        assert response.status_code == 200
        assert response.json()["data"]["user"]["role"] == ROLE_CLIENT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", [
        "/api/settings",
        "/api/clients",
        "/api/invoices",
        "/api/quotes",
        "/api/treasury/accounts",
        "/api/treasury/transactions",
    ])
    async def test_staff_endpoints_forbidden(self, client: AsyncClient, portal_user, headers_for, path):
        response = await client.get(path, headers=headers_for(portal_user))

        assert response.status_code == 403
        body = response.json()
        assert body["error"]["code"] == "AUTHZ_FORBIDDEN"
        assert "TOPSECRET" not in response.text
        assert "Concurrent SA" not in response.text

    @pytest.mark.asyncio
    async def test_cannot_create_client(self, client: AsyncClient, portal_user, headers_for):
        response = await client.post(
            "/api/clients", json={"companyName": "Intrus"}, headers=headers_for(portal_user),
        )

        assert response.status_code == 403


class TestSettingsSecrets:
    @pytest.mark.asyncio
    async def test_member_gets_blanked_credentials(self, client: AsyncClient, seed, portal_user, headers_for):
        response = await client.get("/api/settings", headers=headers_for(seed.member))

        assert response.status_code == 200
        settings = response.json()["data"]["settings"]
        assert settings["smtpHost"] == "smtp.agence.test"
        assert settings["smtpPassword"] == ""
        assert settings["openaiApiKey"] == ""

    @pytest.mark.asyncio
    async def test_owner_gets_credentials(self, client: AsyncClient, seed, portal_user, headers_for):
        response = await client.get("/api/settings", headers=headers_for(seed.owner))

        settings = response.json()["data"]["settings"]
        assert settings["smtpPassword"] == "TOPSECRET"
        assert settings["openaiApiKey"] == "sk-test-key"
