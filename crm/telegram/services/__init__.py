"""Telegram-side services."""

from crm.telegram.services.notifications import NotificationService, split_message

__all__ = ["NotificationService", "split_message"]
