"""
Conversation Store.

Rolling history per Telegram chat, persisted in ``telegram_conversations``
and mirrored in a bounded TTL cache so consecutive messages skip the read.
Only user and assistant text turns are kept; tool traffic stays inside a
single reply.
"""

import json
from functools import lru_cache
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.cache import TTLCache
from crm.backend.core.logging import get_logger
from crm.backend.core.utils import utc_now
from crm.backend.repositories.conversation import ConversationRepository

logger = get_logger(__name__)

Message = dict[str, str]


def trim_history(history: list[Message], max_history: int) -> list[Message]:
    """Keep the last ``max_history`` messages, never starting on an assistant turn."""
    trimmed = history[-max_history:] if max_history > 0 else []
    while trimmed and trimmed[0].get("role") != "user":
        trimmed = trimmed[1:]
    return trimmed


def _decode(raw: str | None) -> list[Message]:
    try:
        data: Any = json.loads(raw or "[]")
    except ValueError:
        logger.warning("Unreadable conversation history, starting over")
        return []
    if not isinstance(data, list):
        return []
    return [
        {"role": m["role"], "content": m["content"]}
        for m in data
        if isinstance(m, dict) and m.get("role") in ("user", "assistant") and isinstance(m.get("content"), str)
    ]


class ConversationStore:
    def __init__(self, cache: TTLCache[int, list[Message]], max_history: int = 20) -> None:
        self._cache = cache
        self.max_history = max_history

    async def load(self, session: AsyncSession, chat_id: int) -> list[Message]:
        cached = self._cache.get(chat_id)
        if cached is not None:
            return list(cached)
        row = await ConversationRepository(session).get_by_chat_id(chat_id)
        history = trim_history(_decode(row.history if row else None), self.max_history)
        self._cache.set(chat_id, history)
        return list(history)

    async def append(
        self,
        session: AsyncSession,
        chat_id: int,
        tenant_id: int | None,
        *messages: Message,
    ) -> list[Message]:
        """Add turns to the chat history and persist the trimmed result."""
        history = trim_history([*await self.load(session, chat_id), *messages], self.max_history)
        repo = ConversationRepository(session)
        row = await repo.get_by_chat_id(chat_id)
        encoded = json.dumps(history, ensure_ascii=False)
        if row is None:
            await repo.create(chat_id=chat_id, tenant_id=tenant_id, history=encoded, last_activity=utc_now())
        else:
            row.history = encoded
            row.last_activity = utc_now()
            await session.flush()
        self._cache.set(chat_id, history)
        return history

    async def reset(self, session: AsyncSession, chat_id: int) -> None:
        repo = ConversationRepository(session)
        row = await repo.get_by_chat_id(chat_id)
        if row is not None:
            row.history = "[]"
            row.last_activity = utc_now()
            await session.flush()
        self._cache.pop(chat_id)
        logger.info("Conversation reset", extra={"chat_id": chat_id})


@lru_cache
def get_conversation_store() -> ConversationStore:
    from crm.backend.core.config import get_app_config

    config = get_app_config().assistant
    return ConversationStore(
        TTLCache(maxsize=config.conversation_cache.maxsize, ttl=config.conversation_cache.ttl_seconds),
        max_history=config.max_history,
    )
