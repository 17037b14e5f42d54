"""
Unit Test Fixtures.

Fixtures for unit tests - external services (Telegram, OpenAI) are mocked.
"""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest


# =============================================================================
# Telegram Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_bot() -> MagicMock:
    """
    Mock aiogram Bot.

    Usage:
        async def test_notify(mock_bot):
            await NotificationService(mock_bot).send(123, "Bonjour")
            mock_bot.send_message.assert_called_once()
    """
    bot = MagicMock()
    bot.send_message = AsyncMock()
    bot.send_document = AsyncMock()
    bot.send_chat_action = AsyncMock()
    return bot


# =============================================================================
# Clock Fixtures
# =============================================================================


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def monday_morning() -> datetime:
    """Monday 2 March 2026, 10:00 wall-clock."""
    return datetime(2026, 3, 2, 10, 0)
