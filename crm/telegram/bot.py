"""
Bot and Dispatcher Configuration.

The bot token comes from the tenant settings when set there, otherwise from
TELEGRAM_BOT_TOKEN in config/.env. Instances are created lazily so importing
this module never needs a token.
"""

from typing import TYPE_CHECKING

from crm.backend.core.logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from aiogram import Bot, Dispatcher

_bots: dict[str, "Bot"] = {}
_dispatcher: "Dispatcher | None" = None


def resolve_bot_token(tenant_token: str = "") -> str:
    from crm.backend.core.config import get_settings

    return tenant_token or get_settings().telegram_bot_token


def create_bot(token: str) -> "Bot":
    """
    Create an aiogram Bot.

    Raises:
        RuntimeError: If no token is configured
    """
    from aiogram import Bot
    from aiogram.client.default import DefaultBotProperties
    from aiogram.enums import ParseMode

    if not token:
        raise RuntimeError(
            "Telegram bot token not configured. "
            "Set it in the tenant settings or TELEGRAM_BOT_TOKEN in config/.env"
        )
    bot = Bot(token=token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
    logger.info("Telegram bot created")
    return bot


def create_dispatcher() -> "Dispatcher":
    """Dispatcher with the middlewares and every router."""
    from aiogram import Dispatcher

    from crm.telegram.handlers import get_all_routers
    from crm.telegram.middlewares import setup_middlewares

    dp = Dispatcher()
    setup_middlewares(dp)
    for router in get_all_routers():
        dp.include_router(router)

    logger.info("Telegram dispatcher created with routers and middlewares")
    return dp


def get_bot(token: str = "") -> "Bot":
    token = resolve_bot_token(token)
    if token not in _bots:
        _bots[token] = create_bot(token)
    return _bots[token]


def get_dispatcher() -> "Dispatcher":
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = create_dispatcher()
    return _dispatcher


async def setup_webhook(bot: "Bot", webhook_url: str, secret_token: str) -> None:
    """Register ``webhook_url`` with Telegram, dropping pending updates."""
    await bot.set_webhook(
        url=webhook_url,
        secret_token=secret_token or None,
        drop_pending_updates=True,
        allowed_updates=get_dispatcher().resolve_used_update_types(),
    )
    logger.info("Webhook configured", extra={"webhook_url": webhook_url})


async def close_bots() -> None:
    """Close the HTTP sessions of every bot created by this process."""
    for bot in _bots.values():
        await bot.session.close()
    _bots.clear()
    logger.info("Telegram bot sessions closed")
