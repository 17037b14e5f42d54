"""
Unit Tests for the Telegram notification service.
"""

from unittest.mock import AsyncMock

import pytest
from aiogram.exceptions import TelegramAPIError

from crm.telegram.services.notifications import NotificationService, split_message


class TestSplitMessage:
    def test_short_text_is_one_chunk(self):
        assert split_message("Bonjour", limit=100) == ["Bonjour"]

    def test_empty_text_is_one_empty_chunk(self):
        assert split_message("", limit=100) == [""]

    def test_cuts_on_newline(self):
        text = "ligne une\nligne deux\nligne trois"

        chunks = split_message(text, limit=20)

        assert chunks == ["ligne une", "ligne deux", "ligne trois"]
        assert all(len(c) <= 20 for c in chunks)

    def test_hard_cut_without_newline(self):
        chunks = split_message("x" * 25, limit=10)
        assert chunks == ["x" * 10, "x" * 10, "x" * 5]

    def test_nothing_lost(self):
        text = "\n".join(f"Facture FAC-2026-{i:05d}" for i in range(400))

        chunks = split_message(text, limit=4096)

        assert len(chunks) > 1
        assert "\n".join(chunks) == text


class TestNotificationService:
    @pytest.mark.asyncio
    async def test_send_success(self, mock_bot):
        result = await NotificationService(mock_bot).send(123, "Rapport")

        assert result.success is True
        assert result.chat_id == 123
        mock_bot.send_message.assert_awaited_once_with(123, "Rapport", parse_mode=None)

    @pytest.mark.asyncio
    async def test_html_keeps_default_parse_mode(self, mock_bot):
        await NotificationService(mock_bot).send(123, "<b>Rapport</b>", html=True)

        mock_bot.send_message.assert_awaited_once_with(123, "<b>Rapport</b>")

    @pytest.mark.asyncio
    async def test_long_text_sent_in_chunks(self, mock_bot):
        service = NotificationService(mock_bot, message_limit=10)

        await service.send(1, "aaaaa\nbbbbb\nccccc")

        assert mock_bot.send_message.await_count == 3

    @pytest.mark.asyncio
    async def test_broadcast_continues_after_failure(self, mock_bot):
        mock_bot.send_message = AsyncMock(side_effect=[
            TelegramAPIError(method=None, message="Forbidden: bot was blocked by the user"),
            None,
        ])

        results = await NotificationService(mock_bot).broadcast([1, 2], "Rapport")

        assert [r.success for r in results] == [False, True]
        assert "blocked" in results[0].error
