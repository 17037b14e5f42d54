"""
Rate Limiting Middleware.

Sliding window per Telegram user, sized by security.yaml
``rate_limiting.telegram.messages_per_minute``. In-memory, so the limit is
per process.
"""

import time
from collections import defaultdict
from typing import Any, Awaitable, Callable

from aiogram import BaseMiddleware
from aiogram.types import Message, TelegramObject

from crm.backend.core.config import get_app_config
from crm.backend.core.logging import get_logger

logger = get_logger(__name__)


class RateLimitMiddleware(BaseMiddleware):
    def __init__(
        self,
        rate_limit: int | None = None,
        rate_window: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rate_limit = (
            rate_limit
            if rate_limit is not None
            else get_app_config().security.rate_limiting.telegram.messages_per_minute
        )
        self.rate_window = rate_window
        self._clock = clock
        self._requests: dict[int, list[float]] = defaultdict(list)

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        if not isinstance(event, Message) or event.from_user is None:
            return await handler(event, data)

        user_id = event.from_user.id
        now = self._clock()
        window = [ts for ts in self._requests[user_id] if ts > now - self.rate_window]
        self._requests[user_id] = window

        if len(window) >= self.rate_limit:
            wait = int(self.rate_window - (now - min(window))) + 1
            logger.warning(
                "Rate limit exceeded",
                extra={"user_id": user_id, "rate_limit": self.rate_limit},
            )
            await event.answer(f"Trop de messages, réessayez dans {wait} secondes.")
            return None

        window.append(now)
        return await handler(event, data)
