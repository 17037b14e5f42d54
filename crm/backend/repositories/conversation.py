"""
Telegram Conversation Repository.
"""

from crm.backend.models.conversation import TelegramConversation
from crm.backend.repositories.base import BaseRepository


class ConversationRepository(BaseRepository[TelegramConversation]):
    """Keyed by Telegram chat id, which is unique across tenants."""

    model = TelegramConversation
    not_found_message = "Conversation non trouvée"

    async def get_by_chat_id(self, chat_id: int) -> TelegramConversation | None:
        return await self.first(TelegramConversation.chat_id == chat_id)
