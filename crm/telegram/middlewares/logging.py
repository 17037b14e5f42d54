"""
Logging Middleware.

Logs every Telegram update with source="telegram" and its processing time.
"""

import time
from typing import Any, Awaitable, Callable

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject, Update

from crm.backend.core.logging import get_logger, log_with_source

logger = get_logger(__name__)


class LoggingMiddleware(BaseMiddleware):
    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        start_time = time.perf_counter()
        context = self._extract_context(event)
        log_with_source(logger, "telegram", "info", "Telegram update received", **context)

        try:
            result = await handler(event, data)
        except Exception as e:
            log_with_source(
                logger, "telegram", "error", "Telegram update processing error",
                error=str(e),
                error_type=type(e).__name__,
                elapsed_ms=round((time.perf_counter() - start_time) * 1000, 2),
                **context,
            )
            raise

        log_with_source(
            logger, "telegram", "debug", "Telegram update processed",
            elapsed_ms=round((time.perf_counter() - start_time) * 1000, 2),
            **context,
        )
        return result

    def _extract_context(self, event: TelegramObject) -> dict[str, Any]:
        if not isinstance(event, Update):
            return {}

        context: dict[str, Any] = {"update_id": event.update_id, "update_type": event.event_type}
        msg = event.message
        if msg:
            context["chat_id"] = msg.chat.id
            if msg.from_user:
                context["user_id"] = msg.from_user.id
                context["username"] = msg.from_user.username
            if msg.text and msg.text.startswith("/"):
                context["command"] = msg.text.split()[0]
            elif msg.voice or msg.audio:
                context["content"] = "voice"
            elif msg.photo or msg.document:
                context["content"] = "file"
        elif event.callback_query:
            cb = event.callback_query
            context["user_id"] = cb.from_user.id
            context["callback_data"] = cb.data
        return context
