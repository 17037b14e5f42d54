"""
Unit Tests for Telegram Middlewares.

Tests the allow-list and rate limiting middlewares with mocked aiogram
objects.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from aiogram.types import Message, Update


def _update(user_id: int, chat_id: int = 999) -> MagicMock:
    event = MagicMock(spec=Update)
    event.message = MagicMock()
    event.message.from_user = MagicMock()
    event.message.from_user.id = user_id
    event.message.from_user.username = "testuser"
    event.message.chat.id = chat_id
    return event


def _message(user_id: int) -> MagicMock:
    message = MagicMock(spec=Message)
    message.from_user = MagicMock()
    message.from_user.id = user_id
    message.answer = AsyncMock()
    return message


class TestAuthMiddleware:
    """Tests for AuthMiddleware."""

    @pytest.mark.asyncio
    async def test_allows_listed_user(self, mock_bot):
        from crm.telegram.middlewares.auth import AuthMiddleware

        middleware = AuthMiddleware()
        handler = AsyncMock(return_value="handled")
        event = _update(12345)
        data = {"allowed_users": [12345, 67890], "bot": mock_bot}

        result = await middleware(handler, event, data)

        assert result == "handled"
        handler.assert_called_once()
        assert data["telegram_user"].id == 12345
        mock_bot.send_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_blocks_unlisted_user_with_message(self, mock_bot):
        from crm.telegram.middlewares.auth import UNAUTHORIZED_MESSAGE, AuthMiddleware

        middleware = AuthMiddleware()
        handler = AsyncMock()
        event = _update(99999, chat_id=555)
        data = {"allowed_users": [12345], "bot": mock_bot}

        result = await middleware(handler, event, data)

        assert result is None
        handler.assert_not_called()
        mock_bot.send_message.assert_awaited_once_with(555, UNAUTHORIZED_MESSAGE)

    @pytest.mark.asyncio
    async def test_empty_allow_list_lets_everyone_in(self, mock_bot):
        from crm.telegram.middlewares.auth import AuthMiddleware

        middleware = AuthMiddleware()
        handler = AsyncMock(return_value="handled")

        result = await middleware(handler, _update(42), {"allowed_users": [], "bot": mock_bot})

        assert result == "handled"

    @pytest.mark.asyncio
    async def test_update_without_sender_passes(self):
        from crm.telegram.middlewares.auth import AuthMiddleware

        middleware = AuthMiddleware()
        handler = AsyncMock(return_value="handled")
        event = MagicMock(spec=Update)
        event.message = None
        event.edited_message = None
        event.callback_query = None

        result = await middleware(handler, event, {"allowed_users": [1]})

        assert result == "handled"

    @pytest.mark.asyncio
    async def test_non_update_events_pass_through(self):
        from crm.telegram.middlewares.auth import AuthMiddleware

        middleware = AuthMiddleware()
        handler = AsyncMock(return_value="handled")

        result = await middleware(handler, MagicMock(), {"allowed_users": [1]})

        assert result == "handled"


class TestRateLimitMiddleware:
    """Tests for RateLimitMiddleware."""

    @pytest.mark.asyncio
    async def test_allows_under_limit(self, fake_clock):
        from crm.telegram.middlewares.rate_limit import RateLimitMiddleware

        middleware = RateLimitMiddleware(rate_limit=3, rate_window=60, clock=fake_clock)
        handler = AsyncMock(return_value="ok")

        for _ in range(3):
            assert await middleware(handler, _message(1), {}) == "ok"

        assert handler.await_count == 3

    @pytest.mark.asyncio
    async def test_blocks_over_limit(self, fake_clock):
        from crm.telegram.middlewares.rate_limit import RateLimitMiddleware

        middleware = RateLimitMiddleware(rate_limit=2, rate_window=60, clock=fake_clock)
        handler = AsyncMock(return_value="ok")
        for _ in range(2):
            await middleware(handler, _message(1), {})

        fake_clock.advance(10)
        blocked = _message(1)
        result = await middleware(handler, blocked, {})

        assert result is None
        assert handler.await_count == 2
        blocked.answer.assert_awaited_once_with("Trop de messages, réessayez dans 51 secondes.")

    @pytest.mark.asyncio
    async def test_window_slides(self, fake_clock):
        from crm.telegram.middlewares.rate_limit import RateLimitMiddleware

        middleware = RateLimitMiddleware(rate_limit=1, rate_window=60, clock=fake_clock)
        handler = AsyncMock(return_value="ok")
        await middleware(handler, _message(1), {})

        fake_clock.advance(61)

        assert await middleware(handler, _message(1), {}) == "ok"

    @pytest.mark.asyncio
    async def test_users_counted_separately(self, fake_clock):
        from crm.telegram.middlewares.rate_limit import RateLimitMiddleware

        middleware = RateLimitMiddleware(rate_limit=1, rate_window=60, clock=fake_clock)
        handler = AsyncMock(return_value="ok")

        await middleware(handler, _message(1), {})

        assert await middleware(handler, _message(2), {}) == "ok"

    @pytest.mark.asyncio
    async def test_default_limit_from_config(self):
        from crm.telegram.middlewares.rate_limit import RateLimitMiddleware

        assert RateLimitMiddleware().rate_limit == 20
