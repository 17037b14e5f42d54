"""
Middleware Registration.

Order: logging and the allow-list run on every update (outer), rate
limiting only on messages that reached a handler (inner).
"""

from typing import TYPE_CHECKING

from crm.telegram.middlewares.auth import AuthMiddleware
from crm.telegram.middlewares.logging import LoggingMiddleware
from crm.telegram.middlewares.rate_limit import RateLimitMiddleware

if TYPE_CHECKING:
    from aiogram import Dispatcher


def setup_middlewares(dp: "Dispatcher") -> None:
    dp.update.outer_middleware(LoggingMiddleware())
    dp.update.outer_middleware(AuthMiddleware())
    dp.message.middleware(RateLimitMiddleware())
