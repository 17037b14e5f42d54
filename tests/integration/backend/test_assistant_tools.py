"""
Integration Tests for assistant tool dispatch.

Tools run through execute_tool_call against the test database, each call
in its own transaction, exactly as the conversation loop runs them.
"""

from datetime import datetime

import pytest
from sqlalchemy import func, select

from crm.backend.agents.assistant.tools import TOOLS, ToolContext, execute_tool_call, tool_schemas
from crm.backend.models.billing import Invoice, Quote
from crm.backend.models.client import Client
from crm.backend.services.settings import TenantSettings

DUPONT_LINES = [{"description": "Développement", "quantity": 10, "unitPrice": 80, "vatRate": 20}]


@pytest.fixture
def ctx(seed, db_session_factory) -> ToolContext:
    return ToolContext(
        tenant_id=seed.tenant.id,
        settings=TenantSettings(),
        session_factory=db_session_factory,
        clock=lambda: datetime(2026, 3, 2, 10, 0),
    )


async def _count(db_session_factory, model) -> int:
    async with db_session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestRegistry:
    def test_every_tool_has_an_openai_schema(self):
        schemas = tool_schemas()

        assert len(schemas) == len(TOOLS)
        for schema in schemas:
            assert schema["type"] == "function"
            assert schema["function"]["parameters"]["type"] == "object"

    def test_core_tools_registered(self):
        for name in (
            "create_quote", "convert_quote_to_invoice", "mark_invoice_paid",
            "list_unpaid_invoices", "create_note", "get_treasury",
        ):
            assert name in TOOLS


class TestDispatchErrors:
    async def test_unknown_tool(self, ctx):
        result = await execute_tool_call("nope", "{}", ctx)
        assert result == {"error": "Outil inconnu: nope"}

    async def test_malformed_arguments(self, ctx):
        result = await execute_tool_call("search_clients", "{not json", ctx)
        assert result == {"error": "Arguments JSON invalides"}

    async def test_missing_required_argument(self, ctx):
        result = await execute_tool_call("search_clients", "{}", ctx)
        assert result == {"error": "Paramètre requis: query"}

    async def test_unknown_client(self, ctx):
        result = await execute_tool_call("get_client", {"clientName": "Inexistant"}, ctx)
        assert "error" in result
        assert "Inexistant" in result["error"]

    async def test_failed_call_leaves_no_rows(self, ctx, db_session_factory):
        before = await _count(db_session_factory, Client)

        result = await execute_tool_call("create_client", {"email": "x@y.fr"}, ctx)

        assert "error" in result
        assert await _count(db_session_factory, Client) == before


class TestClientTools:
    async def test_search_by_partial_name(self, ctx):
        result = await execute_tool_call("search_clients", '{"query": "dupont"}', ctx)

        assert [c["name"] for c in result] == ["Dupont SARL"]

    async def test_create_client_is_prospect(self, ctx):
        result = await execute_tool_call("create_client", {"companyName": "Martin & Fils"}, ctx)

        assert result["created"] is True
        assert result["status"] == "prospect"


class TestQuoteToInvoice:
    async def test_quote_totals(self, ctx):
        result = await execute_tool_call(
            "create_quote", {"clientName": "Dupont", "items": DUPONT_LINES}, ctx,
        )

        assert result["created"] is True
        assert result["number"].startswith("DEV-")
        assert result["subtotalHt"] == 800.0
        assert result["taxAmount"] == 160.0
        assert result["totalTtc"] == 960.0
        assert result["client"] == "Dupont SARL"

    async def test_quote_numbers_are_sequential(self, ctx):
        first = await execute_tool_call("create_quote", {"clientName": "Dupont", "items": DUPONT_LINES}, ctx)
        second = await execute_tool_call("create_quote", {"clientName": "Dupont", "items": DUPONT_LINES}, ctx)

        assert int(second["number"][-5:]) == int(first["number"][-5:]) + 1

    async def test_convert_only_once(self, ctx, db_session_factory):
        quote = await execute_tool_call("create_quote", {"clientName": "Dupont", "items": DUPONT_LINES}, ctx)

        converted = await execute_tool_call("convert_quote_to_invoice", {"quoteId": quote["id"]}, ctx)
        again = await execute_tool_call("convert_quote_to_invoice", {"quoteNumber": quote["number"]}, ctx)

        assert converted["converted"] is True
        assert converted["number"].startswith("FAC-")
        assert converted["totalTtc"] == 960.0
        assert "error" in again
        assert await _count(db_session_factory, Invoice) == 1

        async with db_session_factory() as session:
            stored = await session.get(Quote, quote["id"])
            assert stored.invoice_id == converted["id"]
            assert stored.status == "accepted"

    async def test_invoicing_activates_prospect(self, ctx):
        await execute_tool_call("create_invoice", {"clientName": "Dupont", "items": DUPONT_LINES}, ctx)

        client = await execute_tool_call("get_client", {"clientName": "Dupont"}, ctx)

        assert client["status"] == "active"
        assert client["invoiceCount"] == 1


class TestInvoicePayment:
    async def test_paid_invoice_leaves_unpaid_list(self, ctx):
        invoice = await execute_tool_call(
            "create_invoice", {"clientName": "Dupont", "items": DUPONT_LINES}, ctx,
        )
        await execute_tool_call("mark_invoice_sent", {"invoiceId": invoice["id"]}, ctx)

        unpaid = await execute_tool_call("list_unpaid_invoices", {}, ctx)
        assert unpaid["count"] == 1
        assert unpaid["totalTtc"] == 960.0

        paid = await execute_tool_call(
            "mark_invoice_paid",
            {"invoiceNumber": invoice["number"], "paymentMethod": "virement"},
            ctx,
        )
        assert paid["paid"] is True
        assert paid["status"] == "paid"
        assert paid["paymentDate"] == "02/03/2026"

        unpaid = await execute_tool_call("list_unpaid_invoices", {}, ctx)
        assert unpaid["count"] == 0

    async def test_draft_invoice_is_not_unpaid(self, ctx):
        await execute_tool_call("create_invoice", {"clientName": "Dupont", "items": DUPONT_LINES}, ctx)

        unpaid = await execute_tool_call("list_unpaid_invoices", {}, ctx)

        assert unpaid["count"] == 0

    async def test_reminder_requires_sent_invoice(self, ctx):
        invoice = await execute_tool_call(
            "create_invoice", {"clientName": "Dupont", "items": DUPONT_LINES}, ctx,
        )

        result = await execute_tool_call("send_invoice_reminder", {"invoiceId": invoice["id"]}, ctx)

        assert "error" in result
