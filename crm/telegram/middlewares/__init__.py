"""Telegram middlewares: allow-list, logging and rate limiting."""

from crm.telegram.middlewares.auth import AuthMiddleware
from crm.telegram.middlewares.logging import LoggingMiddleware
from crm.telegram.middlewares.rate_limit import RateLimitMiddleware
from crm.telegram.middlewares.setup import setup_middlewares

__all__ = [
    "AuthMiddleware",
    "LoggingMiddleware",
    "RateLimitMiddleware",
    "setup_middlewares",
]
