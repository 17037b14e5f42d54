"""
Integration Tests for transaction reconciliation.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from httpx import AsyncClient

from crm.backend.models.treasury import BankAccount, BankTransaction

LINES = [{"description": "Développement", "quantity": 10, "unitPrice": 80, "vatRate": 20}]


@pytest.fixture
async def credit(db_session_factory, seed) -> BankTransaction:
    """A 960 € incoming transfer on a manual account."""
    async with db_session_factory() as session:
        account = BankAccount(tenant_id=seed.tenant.id, name="Compte courant")
        session.add(account)
        await session.flush()
        transaction = BankTransaction(
            tenant_id=seed.tenant.id,
            account_id=account.id,
            transaction_date=datetime(2026, 3, 1),
            amount=Decimal("960.00"),
            label="VIR DUPONT SARL",
        )
        session.add(transaction)
        await session.commit()
        return transaction


async def _sent_invoice(client: AsyncClient, seed, headers) -> int:
    created = await client.post(
        "/api/invoices",
        json={"clientId": seed.client.id, "items": LINES, "status": "sent"},
        headers=headers,
    )
    return created.json()["data"]["id"]


class TestReconcile:
    @pytest.mark.asyncio
    async def test_reconcile_marks_invoice_paid(self, client: AsyncClient, seed, headers_for, credit):
        headers = headers_for(seed.owner)
        invoice_id = await _sent_invoice(client, seed, headers)

        response = await client.patch(
            f"/api/treasury/transactions/{credit.id}", json={"invoiceId": invoice_id}, headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["isReconciled"] is True
        assert response.json()["data"]["invoiceId"] == invoice_id
        invoice = (await client.get(f"/api/invoices/{invoice_id}", headers=headers)).json()["data"]
        assert invoice["status"] == "paid"
        assert invoice["paymentMethod"] == "virement"

    @pytest.mark.asyncio
    async def test_reconciled_transaction_cannot_move(self, client: AsyncClient, seed, headers_for, credit):
        headers = headers_for(seed.owner)
        first_id = await _sent_invoice(client, seed, headers)
        second_id = await _sent_invoice(client, seed, headers)
        url = f"/api/treasury/transactions/{credit.id}"
        await client.patch(url, json={"invoiceId": first_id}, headers=headers)

        moved = await client.patch(url, json={"invoiceId": second_id}, headers=headers)

        assert moved.status_code == 409
        assert moved.json()["error"]["code"] == "RES_CONFLICT"
        listed = (await client.get("/api/treasury/transactions", headers=headers)).json()["data"]
        assert listed[0]["invoiceId"] == first_id
        second = (await client.get(f"/api/invoices/{second_id}", headers=headers)).json()["data"]
        assert second["status"] == "sent"

        again = await client.patch(url, json={"invoiceId": first_id}, headers=headers)
        assert again.status_code == 200

    @pytest.mark.asyncio
    async def test_detach_then_reconcile_elsewhere(self, client: AsyncClient, seed, headers_for, credit):
        headers = headers_for(seed.owner)
        first_id = await _sent_invoice(client, seed, headers)
        second_id = await _sent_invoice(client, seed, headers)
        url = f"/api/treasury/transactions/{credit.id}"
        await client.patch(url, json={"invoiceId": first_id}, headers=headers)

        detached = await client.patch(url, json={"isReconciled": False}, headers=headers)
        assert detached.json()["data"]["invoiceId"] is None

        moved = await client.patch(url, json={"invoiceId": second_id}, headers=headers)
        assert moved.status_code == 200
        assert moved.json()["data"]["invoiceId"] == second_id


class TestBankCallback:
    @pytest.mark.asyncio
    async def test_unknown_reference_redirects_to_dashboard(self, client: AsyncClient, seed):
        response = await client.get("/api/gocardless/callback", params={"ref": "inconnu"})

        assert response.status_code == 303
        assert response.headers["location"] == "http://localhost:3000/treasury?error=unknown_connection"
