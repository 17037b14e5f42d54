"""
Telegram Channel.

aiogram v3 bot running in webhook mode inside the FastAPI application. The
bot is a thin presentation layer: text, voice and images are handed to the
assistant, which works through the service layer.

Structure:
    crm/telegram/
    ├── bot.py               # Bot and dispatcher setup
    ├── webhook.py           # FastAPI webhook route
    ├── handlers/            # /start, /help, /reset and the assistant handlers
    ├── middlewares/         # Allow-list, logging, rate limiting
    └── services/            # Proactive notifications (scheduled jobs)
"""

from crm.telegram.bot import create_bot, create_dispatcher, get_bot, get_dispatcher

__all__ = [
    "create_bot",
    "create_dispatcher",
    "get_bot",
    "get_dispatcher",
]
