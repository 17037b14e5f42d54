"""
Authentication Middleware.

Telegram user id allow-list. The list comes from the tenant settings and
is passed by the webhook route as ``allowed_users``; when the tenant has
none, application.yaml ``telegram.authorized_users`` is used. An empty list
lets everyone in.
"""

from typing import Any, Awaitable, Callable

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject, Update, User

from crm.backend.core.config import get_app_config
from crm.backend.core.logging import get_logger

logger = get_logger(__name__)

UNAUTHORIZED_MESSAGE = "Accès non autorisé."


def _sender(event: Update) -> tuple[User | None, int | None]:
    if event.message:
        return event.message.from_user, event.message.chat.id
    if event.edited_message:
        return event.edited_message.from_user, event.edited_message.chat.id
    if event.callback_query:
        message = event.callback_query.message
        return event.callback_query.from_user, message.chat.id if message else None
    return None, None


class AuthMiddleware(BaseMiddleware):
    """
    Rejects senders missing from a non-empty allow-list.

    Rejected senders get ``UNAUTHORIZED_MESSAGE`` and no handler runs.
    Authorized updates carry ``telegram_user`` in the handler data.
    """

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        if not isinstance(event, Update):
            return await handler(event, data)

        user, chat_id = _sender(event)
        if user is None:
            return await handler(event, data)

        allowed = data.get("allowed_users") or get_app_config().application.telegram.authorized_users
        if allowed and user.id not in allowed:
            logger.warning(
                "Unauthorized Telegram access attempt",
                extra={"user_id": user.id, "username": user.username, "chat_id": chat_id},
            )
            bot = data.get("bot")
            if bot is not None and chat_id is not None:
                await bot.send_message(chat_id, UNAUTHORIZED_MESSAGE)
            return None

        data["telegram_user"] = user
        return await handler(event, data)
