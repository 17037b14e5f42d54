"""
Integration Tests for the invoices and quotes endpoints.
"""

import pytest
from httpx import AsyncClient

LINES = [{"description": "Développement", "quantity": 10, "unitPrice": 80, "vatRate": 20}]


class TestInvoicesApi:
    @pytest.mark.asyncio
    async def test_create_and_get(self, client: AsyncClient, seed, headers_for):
        headers = headers_for(seed.owner)

        response = await client.post(
            "/api/invoices", json={"clientId": seed.client.id, "items": LINES}, headers=headers,
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["invoiceNumber"].startswith("FAC-")
        assert data["status"] == "draft"
        assert data["subtotalHt"] == 800.0
        assert data["taxAmount"] == 160.0
        assert data["totalTtc"] == 960.0
        assert data["client"]["displayName"] == "Dupont SARL"
        assert len(data["items"]) == 1
        assert data["items"][0]["unitPriceHt"] == 80.0

        fetched = await client.get(f"/api/invoices/{data['id']}", headers=headers)
        assert fetched.json()["data"]["invoiceNumber"] == data["invoiceNumber"]

    @pytest.mark.asyncio
    async def test_percentage_discount(self, client: AsyncClient, seed, headers_for):
        response = await client.post(
            "/api/invoices",
            json={
                "clientId": seed.client.id,
                "items": LINES,
                "discountType": "percentage",
                "discountValue": 10,
            },
            headers=headers_for(seed.owner),
        )

        data = response.json()["data"]
        assert data["discountAmount"] == 80.0
        assert data["taxAmount"] == 144.0
        assert data["totalTtc"] == 864.0

    @pytest.mark.asyncio
    async def test_empty_items_rejected(self, client: AsyncClient, seed, headers_for):
        response = await client.post(
            "/api/invoices", json={"clientId": seed.client.id, "items": []}, headers=headers_for(seed.owner),
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VAL_REQUEST_INVALID"

    @pytest.mark.asyncio
    async def test_list_and_stats(self, client: AsyncClient, seed, headers_for):
        headers = headers_for(seed.owner)
        for _ in range(2):
            await client.post("/api/invoices", json={"clientId": seed.client.id, "items": LINES}, headers=headers)

        listed = await client.get("/api/invoices", params={"limit": 1}, headers=headers)
        assert listed.status_code == 200
        body = listed.json()
        assert len(body["data"]) == 1
        assert body["pagination"]["total"] == 2
        assert body["pagination"]["has_more"] is True

        stats = (await client.get("/api/invoices/stats", headers=headers)).json()["data"]
        assert stats["total"] == 2
        assert stats["byStatus"]["draft"] == 2
        assert stats["pendingAmount"] == 0

    @pytest.mark.asyncio
    async def test_mark_paid(self, client: AsyncClient, seed, headers_for):
        headers = headers_for(seed.owner)
        created = await client.post(
            "/api/invoices",
            json={"clientId": seed.client.id, "items": LINES, "status": "sent"},
            headers=headers,
        )
        invoice_id = created.json()["data"]["id"]

        unpaid = await client.get("/api/invoices", params={"status": "unpaid"}, headers=headers)
        assert unpaid.json()["pagination"]["total"] == 1

        paid = await client.post(
            f"/api/invoices/{invoice_id}/mark-paid",
            json={"paymentMethod": "virement"},
            headers=headers,
        )
        assert paid.status_code == 200
        assert paid.json()["data"]["status"] == "paid"
        assert paid.json()["data"]["paymentMethod"] == "virement"

        unpaid = await client.get("/api/invoices", params={"status": "unpaid"}, headers=headers)
        assert unpaid.json()["pagination"]["total"] == 0

    @pytest.mark.asyncio
    async def test_mark_paid_twice_keeps_first_payment(self, client: AsyncClient, seed, headers_for):
        headers = headers_for(seed.owner)
        created = await client.post(
            "/api/invoices",
            json={"clientId": seed.client.id, "items": LINES, "status": "sent"},
            headers=headers,
        )
        invoice_id = created.json()["data"]["id"]

        first = await client.post(
            f"/api/invoices/{invoice_id}/mark-paid",
            json={"paymentMethod": "virement", "paymentDate": "2026-03-01T00:00:00"},
            headers=headers,
        )
        assert first.status_code == 200

        second = await client.post(
            f"/api/invoices/{invoice_id}/mark-paid",
            json={"paymentMethod": "cheque", "paymentDate": "2026-03-20T00:00:00"},
            headers=headers,
        )
        assert second.status_code == 409
        assert second.json()["error"]["code"] == "RES_CONFLICT"

        invoice = (await client.get(f"/api/invoices/{invoice_id}", headers=headers)).json()["data"]
        assert invoice["status"] == "paid"
        assert invoice["paymentMethod"] == "virement"
        assert invoice["paymentDate"].startswith("2026-03-01")


class TestQuotesApi:
    @pytest.mark.asyncio
    async def test_convert_only_once(self, client: AsyncClient, seed, headers_for):
        headers = headers_for(seed.owner)
        quote = (await client.post(
            "/api/quotes", json={"clientId": seed.client.id, "items": LINES}, headers=headers,
        )).json()["data"]
        assert quote["quoteNumber"].startswith("DEV-")
        assert quote["totalTtc"] == 960.0

        first = await client.post(f"/api/quotes/{quote['id']}/convert", headers=headers)
        assert first.status_code == 201
        assert first.json()["data"]["invoiceNumber"].startswith("FAC-")
        assert first.json()["data"]["totalTtc"] == 960.0

        second = await client.post(f"/api/quotes/{quote['id']}/convert", headers=headers)
        assert second.status_code == 409
        assert second.json()["error"]["code"] == "RES_CONFLICT"

        refreshed = (await client.get(f"/api/quotes/{quote['id']}", headers=headers)).json()["data"]
        assert refreshed["status"] == "accepted"
        assert refreshed["invoiceId"] == first.json()["data"]["id"]

        invoices = await client.get("/api/invoices", headers=headers)
        assert invoices.json()["pagination"]["total"] == 1

    @pytest.mark.asyncio
    async def test_unknown_quote(self, client: AsyncClient, seed, headers_for):
        response = await client.post("/api/quotes/999/convert", headers=headers_for(seed.owner))

        assert response.status_code == 404
