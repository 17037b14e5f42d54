"""
Integration Test Fixtures.

Fixtures for integration tests - real services against the per-test
SQLite database from the root conftest.
"""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crm.backend.core.database import get_db_session
from crm.backend.core.security import create_access_token, hash_password
from crm.backend.models.client import Client
from crm.backend.models.tenant import ROLE_TENANT_OWNER, ROLE_TENANT_USER, Tenant, User
from crm.backend.services.auth import build_claims

TEST_PASSWORD = "motdepasse-test"


# =============================================================================
# Seed Data
# =============================================================================


@dataclass
class Seed:
    tenant: Tenant
    owner: User
    member: User
    client: Client


@pytest.fixture
async def seed(db_session_factory: async_sessionmaker[AsyncSession]) -> Seed:
    """
    One tenant with an owner, a regular user and a client "Dupont SARL".

    The tenant gets id 1, the default tenant of the Telegram channel.
    """
    async with db_session_factory() as session:
        tenant = Tenant(
            name="Agence Test",
            slug="agence-test",
            email="contact@agence.test",
            settings='{"telegramAllowedUsers": "111", "smtp_host": "smtp.agence.test"}',
        )
        session.add(tenant)
        await session.flush()

        password = hash_password(TEST_PASSWORD)
        owner = User(
            tenant_id=tenant.id, name="Alice Owner", email="alice@agence.test",
            password=password, role=ROLE_TENANT_OWNER, telegram_chat_id=111,
        )
        member = User(
            tenant_id=tenant.id, name="Bob Member", email="bob@agence.test",
            password=password, role=ROLE_TENANT_USER,
        )
        client = Client(tenant_id=tenant.id, company_name="Dupont SARL", email="compta@dupont.test")
        session.add_all([owner, member, client])
        await session.commit()
        return Seed(tenant=tenant, owner=owner, member=member, client=client)


def auth_headers(user: User, **extra_claims: Any) -> dict[str, str]:
    """Bearer header for ``user``, as issued by /auth/login."""
    token = create_access_token({**build_claims(user), **extra_claims})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    """
    Build the Authorization header of a seeded user.

    Usage:
        response = await client.get("/api/auth/me", headers=headers_for(seed.owner))
    """
    return auth_headers


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
async def client(
    db_session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client with the database session dependency bound to the test engine.

    Each request gets its own session that commits on success, like the
    application's get_db_session.

    Usage:
        async def test_health_endpoint(client: AsyncClient):
            response = await client.get("/api/health")
            assert response.status_code == 200
    """
    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with db_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    from crm.backend.main import create_app

    app = create_app()
    app.dependency_overrides[get_db_session] = override_get_db_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()

