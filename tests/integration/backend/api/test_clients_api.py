"""
Integration Tests for the clients endpoints.
"""

import pytest
from httpx import AsyncClient

from crm.backend.models.client import Client
from crm.backend.models.tenant import Tenant


class TestClientsApi:
    @pytest.mark.asyncio
    async def test_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/clients")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_list_is_paginated(self, client: AsyncClient, seed, headers_for):
        response = await client.get("/api/clients", headers=headers_for(seed.member))

        assert response.status_code == 200
        body = response.json()
        assert body["pagination"]["total"] == 1
        assert body["pagination"]["has_more"] is False
        assert body["data"][0]["companyName"] == "Dupont SARL"
        assert body["data"][0]["displayName"] == "Dupont SARL"

    @pytest.mark.asyncio
    async def test_create_update_delete(self, client: AsyncClient, seed, headers_for):
        headers = headers_for(seed.owner)

        created = await client.post(
            "/api/clients",
            json={"companyName": "Martin & Fils", "email": "contact@martin.test", "city": "Lyon"},
            headers=headers,
        )
        assert created.status_code == 201
        data = created.json()["data"]
        assert data["status"] == "prospect"
        assert data["country"] == "France"
        client_id = data["id"]

        updated = await client.put(f"/api/clients/{client_id}", json={"status": "active"}, headers=headers)
        assert updated.status_code == 200
        assert updated.json()["data"]["status"] == "active"
        assert updated.json()["data"]["city"] == "Lyon"

        deleted = await client.delete(f"/api/clients/{client_id}", headers=headers)
        assert deleted.status_code == 204

        missing = await client.get(f"/api/clients/{client_id}", headers=headers)
        assert missing.status_code == 404
        assert missing.json()["error"]["code"] == "RES_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_name_required(self, client: AsyncClient, seed, headers_for):
        response = await client.post(
            "/api/clients", json={"email": "anonyme@test.fr"}, headers=headers_for(seed.owner),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VAL_VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_search(self, client: AsyncClient, seed, headers_for):
        response = await client.get(
            "/api/clients", params={"search": "dup"}, headers=headers_for(seed.owner),
        )

        assert [c["companyName"] for c in response.json()["data"]] == ["Dupont SARL"]

    @pytest.mark.asyncio
    async def test_other_tenant_is_invisible(self, client: AsyncClient, seed, headers_for, db_session_factory):
        async with db_session_factory() as session:
            other = Tenant(name="Autre Agence", slug="autre-agence")
            session.add(other)
            await session.flush()
            foreign = Client(tenant_id=other.id, company_name="Secret SAS")
            session.add(foreign)
            await session.commit()

        response = await client.get(f"/api/clients/{foreign.id}", headers=headers_for(seed.owner))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_cannot_delete_invoiced_client(self, client: AsyncClient, seed, headers_for):
        headers = headers_for(seed.owner)
        await client.post(
            "/api/invoices",
            json={"clientId": seed.client.id, "items": [{"description": "Dev", "unitPrice": 100}]},
            headers=headers,
        )

        response = await client.delete(f"/api/clients/{seed.client.id}", headers=headers)

        assert response.status_code == 409
