"""
Webhook Endpoint for the Telegram Bot.

Telegram is always answered 200 ``{"ok": true}`` so it never retries an
update, except for a wrong secret token header which gets 403.
"""

import hmac
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from crm.backend.agents.assistant.service import AssistantService
from crm.backend.core.config import get_app_config, get_settings
from crm.backend.core.database import session_scope
from crm.backend.core.logging import get_logger, log_with_source
from crm.backend.services.settings import get_settings_registry

if TYPE_CHECKING:
    from aiogram import Bot, Dispatcher

logger = get_logger(__name__)

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def _ok() -> JSONResponse:
    return JSONResponse({"ok": True})


def get_webhook_router(
    dispatcher: "Dispatcher | None" = None,
    bot_factory: Callable[[str], "Bot"] | None = None,
    session_factory: Any = None,
) -> APIRouter:
    """
    Router serving ``application.telegram.webhook_path``.

    Usage:
        app.include_router(get_webhook_router())
    """
    from aiogram.types import Update

    from crm.telegram.bot import get_bot, get_dispatcher

    telegram_config = get_app_config().application.telegram
    webhook_path = telegram_config.webhook_path
    router = APIRouter(tags=["telegram"])

    @router.post(webhook_path)
    async def telegram_webhook(request: Request) -> JSONResponse:
        webhook_secret = get_settings().telegram_webhook_secret
        if webhook_secret:
            header = request.headers.get(SECRET_HEADER) or ""
            if not hmac.compare_digest(header, webhook_secret):
                logger.warning(
                    "Invalid webhook secret token",
                    extra={"client_ip": request.client.host if request.client else None},
                )
                return JSONResponse({"ok": False}, status_code=403)

        if not get_app_config().features.channel_telegram_enabled:
            return _ok()

        tenant_id = telegram_config.default_tenant_id
        try:
            async with session_scope(session_factory) as session:
                settings = await get_settings_registry().get(session, tenant_id)
            bot = (bot_factory or get_bot)(settings.telegram_bot_token)
            update = Update.model_validate(await request.json(), context={"bot": bot})
            await (dispatcher or get_dispatcher()).feed_update(
                bot,
                update,
                allowed_users=settings.allowed_telegram_users or telegram_config.authorized_users,
                assistant=AssistantService(tenant_id, session_factory=session_factory),
            )
        except Exception as e:
            log_with_source(
                logger, "telegram", "error", "Error processing Telegram update",
                error=str(e), error_type=type(e).__name__,
            )
        return _ok()

    @router.get(webhook_path + "/health")
    async def telegram_webhook_health() -> dict:
        return {"status": "healthy", "webhook_path": webhook_path}

    return router


def get_webhook_url(base_url: str) -> str:
    """Public URL Telegram should call, e.g. https://crm.example.com/api/telegram/webhook."""
    return f"{base_url.rstrip('/')}{get_app_config().application.telegram.webhook_path}"
