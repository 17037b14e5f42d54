"""
Telegram Bot Handlers.

- common.py: /start, /help, /reset
- assistant.py: free text, voice and images answered by the assistant

The common router is included first so commands never reach the assistant.
"""

from aiogram import Router

from crm.telegram.handlers.assistant import router as assistant_router
from crm.telegram.handlers.common import router as common_router

__all__ = ["get_all_routers", "assistant_router", "common_router"]


def get_all_routers() -> list[Router]:
    return [common_router, assistant_router]
