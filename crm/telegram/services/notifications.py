"""
Notification Service.

Proactive messages from the scheduled jobs (morning report, calendar
reminders, bank sync) and the chunked delivery used for assistant replies.

Usage:
    service = NotificationService(get_bot(settings.telegram_bot_token))
    await service.broadcast(settings.allowed_telegram_users, "Rapport du jour...")
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from aiogram.exceptions import TelegramAPIError

from crm.backend.core.logging import get_logger, log_with_source
from crm.backend.core.utils import utc_now

if TYPE_CHECKING:
    from aiogram import Bot

logger = get_logger(__name__)

TELEGRAM_MESSAGE_LIMIT = 4096


def split_message(text: str, limit: int = TELEGRAM_MESSAGE_LIMIT) -> list[str]:
    """
    Cut ``text`` into chunks of at most ``limit`` characters.

    Cuts fall on the last newline of a chunk when there is one.
    """
    chunks = []
    while len(text) > limit:
        cut = text.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(text[:cut])
        text = text[cut:].lstrip("\n")
    if text or not chunks:
        chunks.append(text)
    return chunks


@dataclass
class NotificationResult:
    chat_id: int
    success: bool
    error: str | None = None
    timestamp: datetime = field(default_factory=utc_now)


class NotificationService:
    def __init__(self, bot: "Bot", message_limit: int = TELEGRAM_MESSAGE_LIMIT) -> None:
        self.bot = bot
        self.message_limit = message_limit

    async def send_text(self, chat_id: int, text: str, html: bool = False) -> None:
        """Send ``text`` in as many messages as needed; plain text unless ``html``."""
        for chunk in split_message(text, self.message_limit):
            if html:
                await self.bot.send_message(chat_id, chunk)
            else:
                await self.bot.send_message(chat_id, chunk, parse_mode=None)

    async def send(self, chat_id: int, text: str, html: bool = False) -> NotificationResult:
        try:
            await self.send_text(chat_id, text, html=html)
        except TelegramAPIError as e:
            log_with_source(
                logger, "telegram", "warning", "Notification failed",
                chat_id=chat_id, error=str(e),
            )
            return NotificationResult(chat_id, False, str(e))
        log_with_source(logger, "telegram", "info", "Notification sent", chat_id=chat_id)
        return NotificationResult(chat_id, True)

    async def broadcast(self, chat_ids: list[int], text: str, html: bool = False) -> list[NotificationResult]:
        """Send the same message to every chat; one failure does not stop the others."""
        return [await self.send(chat_id, text, html=html) for chat_id in chat_ids]
