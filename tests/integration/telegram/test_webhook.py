"""
Integration Tests for the Telegram webhook endpoint.

The dispatcher and the bot are mocked; tenant settings come from the test
database.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from crm.telegram.webhook import SECRET_HEADER, get_webhook_router, get_webhook_url

UPDATE = {
    "update_id": 1,
    "message": {
        "message_id": 10,
        "date": 1772442000,
        "chat": {"id": 111, "type": "private"},
        "from": {"id": 111, "is_bot": False, "first_name": "Alice"},
        "text": "Bonjour",
    },
}


@pytest.fixture
def dispatcher() -> MagicMock:
    dispatcher = MagicMock()
    dispatcher.feed_update = AsyncMock()
    return dispatcher


@pytest.fixture
async def webhook_client(dispatcher, db_session_factory):
    app = FastAPI()
    app.include_router(get_webhook_router(
        dispatcher=dispatcher,
        bot_factory=lambda token: MagicMock(),
        session_factory=db_session_factory,
    ))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


def _secret(value: str):
    return patch(
        "crm.telegram.webhook.get_settings",
        return_value=SimpleNamespace(telegram_webhook_secret=value),
    )


class TestWebhook:
    @pytest.mark.asyncio
    async def test_wrong_secret_rejected(self, webhook_client, dispatcher, seed):
        with _secret("s3cret"):
            response = await webhook_client.post(
                "/api/telegram/webhook", json=UPDATE, headers={SECRET_HEADER: "nope"},
            )

        assert response.status_code == 403
        assert response.json() == {"ok": False}
        dispatcher.feed_update.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_secret_header_rejected(self, webhook_client, dispatcher, seed):
        with _secret("s3cret"):
            response = await webhook_client.post("/api/telegram/webhook", json=UPDATE)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_update_fed_with_tenant_allow_list(self, webhook_client, dispatcher, seed):
        with _secret("s3cret"):
            response = await webhook_client.post(
                "/api/telegram/webhook", json=UPDATE, headers={SECRET_HEADER: "s3cret"},
            )

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        dispatcher.feed_update.assert_awaited_once()
        update = dispatcher.feed_update.await_args.args[1]
        assert update.update_id == 1
        kwargs = dispatcher.feed_update.await_args.kwargs
        assert kwargs["allowed_users"] == [111]
        assert kwargs["assistant"].tenant_id == seed.tenant.id

    @pytest.mark.asyncio
    async def test_processing_errors_still_answer_ok(self, webhook_client, dispatcher, seed):
        dispatcher.feed_update.side_effect = RuntimeError("boom")

        with _secret(""):
            response = await webhook_client.post("/api/telegram/webhook", json=UPDATE)

        assert response.status_code == 200
        assert response.json() == {"ok": True}

    @pytest.mark.asyncio
    async def test_health(self, webhook_client):
        response = await webhook_client.get("/api/telegram/webhook/health")

        assert response.json() == {"status": "healthy", "webhook_path": "/api/telegram/webhook"}


def test_webhook_url():
    assert get_webhook_url("https://crm.example.com/") == "https://crm.example.com/api/telegram/webhook"
