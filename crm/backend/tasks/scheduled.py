"""
Scheduled Background Tasks.

Cron jobs of the CRM, all delivered over Telegram:

    morning_report      "0 7 * * *"     Daily briefing
    calendar_reminders  "*/5 * * * *"   Office 365 event reminders
    treasury_sync       "0 7,13 * * *"  GoCardless import and summary

Cron expressions are evaluated in UTC by the scheduler; the report and
the reminders compute their own wall-clock time in the configured
timezone.

The functions are plain coroutines and can be awaited directly in tests;
``register_scheduled_tasks`` wraps them with ``broker.task`` and their
schedule labels. Every job accepts a ``session_factory`` and a ``bot``
so tests can run it without Postgres or Telegram.
"""

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crm.backend.core.cache import TTLCache
from crm.backend.core.config import get_app_config
from crm.backend.core.database import session_scope
from crm.backend.core.exceptions import ExternalServiceError
from crm.backend.core.logging import get_logger, log_with_source
from crm.backend.core.utils import format_currency, local_now
from crm.backend.integrations.gocardless import GoCardlessClient
from crm.backend.integrations.graph import CalendarEvent, GraphCalendarClient
from crm.backend.models.tenant import User
from crm.backend.repositories.tenant import UserRepository
from crm.backend.services.settings import TenantSettings, get_settings_registry
from crm.backend.services.treasury import AccountSyncResult, BankSyncService, TreasuryService
from crm.backend.tasks.reports import build_morning_report
from crm.telegram.bot import get_bot
from crm.telegram.services.notifications import NotificationService

if TYPE_CHECKING:
    from aiogram import Bot

logger = get_logger(__name__)

SessionFactory = async_sessionmaker[AsyncSession] | None

SYNC_MESSAGE_MAX_TRANSACTIONS = 10

# (user id, event id, start) of reminders already sent by this worker
_sent_reminders: TTLCache[tuple[int, str, datetime], bool] = TTLCache(maxsize=1024, ttl=3600)


def telegram_recipients(settings: TenantSettings) -> list[int]:
    """Tenant allow-list, or the globally authorised users when it is empty."""
    return settings.allowed_telegram_users or list(
        get_app_config().application.telegram.authorized_users
    )


def _tenant(tenant_id: int | None) -> int:
    return tenant_id or get_app_config().application.telegram.default_tenant_id


def _notifier(settings: TenantSettings, bot: "Bot | None") -> NotificationService:
    return NotificationService(
        bot or get_bot(settings.telegram_bot_token),
        get_app_config().assistant.telegram_message_limit,
    )


async def _calendar_events(
    user: User,
    settings: TenantSettings,
    start: datetime,
    end: datetime,
    limit: int = 50,
) -> list[CalendarEvent]:
    """Events of ``user`` between two local times; empty when Graph fails."""
    try:
        async with GraphCalendarClient(user, settings) as client:
            return await client.list_events(start, end, limit=limit)
    except ExternalServiceError as e:
        log_with_source(
            logger, "tasks", "warning", "Calendar unavailable",
            user_id=user.id, error=e.message,
        )
        return []


# =============================================================================
# Morning report
# =============================================================================


async def morning_report(
    tenant_id: int | None = None,
    session_factory: SessionFactory = None,
    bot: "Bot | None" = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Send the daily briefing to every authorised Telegram user."""
    config = get_app_config()
    if not config.features.scheduler_morning_report_enabled:
        return {"status": "disabled"}

    tenant_id = _tenant(tenant_id)
    timezone = config.assistant.timezone
    now = now or local_now(timezone)

    async with session_scope(session_factory) as session:
        settings = await get_settings_registry().get(session, tenant_id)
        recipients = telegram_recipients(settings)
        if not recipients:
            logger.info("Morning report skipped, no recipients", extra={"tenant_id": tenant_id})
            return {"status": "skipped", "reason": "no_recipients"}

        events: list[CalendarEvent] = []
        calendar_users = await UserRepository(session, tenant_id).list_with_calendar()
        if calendar_users:
            today = now.replace(hour=0, minute=0, second=0, microsecond=0)
            events = await _calendar_events(calendar_users[0], settings, today, today + timedelta(days=1))

        text = await build_morning_report(session, tenant_id, now, timezone, events)

    results = await _notifier(settings, bot).broadcast(recipients, text)
    sent = sum(1 for r in results if r.success)
    logger.info(
        "Morning report sent",
        extra={"tenant_id": tenant_id, "sent": sent, "failed": len(results) - sent},
    )
    return {"status": "completed", "sent": sent, "failed": len(results) - sent}


# =============================================================================
# Calendar reminders
# =============================================================================


def minutes_until(start: datetime, now: datetime) -> int:
    return round((start - now).total_seconds() / 60)


def format_reminder(event: CalendarEvent, minutes: int) -> str:
    lines = [f"Rappel RDV dans {minutes} min", "", event.subject, f"{event.start:%H:%M}"]
    if event.location:
        lines.append(event.location)
    return "\n".join(lines)


def is_reminder_due(event: CalendarEvent, now: datetime, before: int, tolerance: int) -> bool:
    """True when ``event`` starts ``before`` minutes from ``now``, give or take ``tolerance``."""
    if event.is_all_day:
        return False
    return abs(minutes_until(event.start, now) - before) <= tolerance


async def calendar_reminders(
    tenant_id: int | None = None,
    session_factory: SessionFactory = None,
    bot: "Bot | None" = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Remind each linked user of events starting in about ten minutes."""
    config = get_app_config()
    if not config.features.scheduler_calendar_reminders_enabled:
        return {"status": "disabled"}

    tenant_id = _tenant(tenant_id)
    graph = config.integrations.graph
    now = now or local_now(graph.timezone)
    horizon = now + timedelta(minutes=graph.reminder_lookahead_minutes)

    due: list[tuple[int, tuple[int, str, datetime], str]] = []
    async with session_scope(session_factory) as session:
        settings = await get_settings_registry().get(session, tenant_id)
        users = [
            u for u in await UserRepository(session, tenant_id).list_with_calendar()
            if u.telegram_chat_id
        ]
        for user in users:
            for event in await _calendar_events(user, settings, now, horizon, limit=5):
                if not is_reminder_due(
                    event, now, graph.reminder_minutes_before, graph.reminder_tolerance_minutes,
                ):
                    continue
                key = (user.id, event.id, event.start)
                if _sent_reminders.get(key):
                    continue
                due.append((user.telegram_chat_id, key, format_reminder(event, minutes_until(event.start, now))))

    if not due:
        return {"status": "completed", "users": len(users), "sent": 0}

    notifier = _notifier(settings, bot)
    sent = 0
    for chat_id, key, text in due:
        result = await notifier.send(chat_id, text)
        if result.success:
            _sent_reminders.set(key, True)
            sent += 1

    logger.info("Calendar reminders sent", extra={"tenant_id": tenant_id, "sent": sent})
    return {"status": "completed", "users": len(users), "sent": sent}


# =============================================================================
# Treasury sync
# =============================================================================


def format_sync_message(
    results: list[AccountSyncResult],
    total_balance: Any,
    now: datetime,
) -> str:
    lines = [f"Sync Trésorerie {now:%H:%M}", "", f"Solde total: {format_currency(total_balance)}", ""]

    if results:
        lines.append("Comptes:")
        for result in results:
            if result.error:
                lines.append(f"  - {result.account_name}: {result.error}")
                continue
            line = f"  - {result.account_name}: {format_currency(result.balance)}"
            if result.new_transactions:
                line += f" (+{len(result.new_transactions)} nouvelles)"
            lines.append(line)
        lines.append("")

    transactions = sorted(
        (tx for r in results for tx in r.new_transactions),
        key=lambda tx: tx.transaction_date,
        reverse=True,
    )
    if not transactions:
        lines.append("Aucune nouvelle opération")
        return "\n".join(lines)

    lines.append("Dernières opérations:")
    for tx in transactions[:SYNC_MESSAGE_MAX_TRANSACTIONS]:
        sign = "+" if tx.amount >= 0 else "-"
        lines.append(f"  {sign}{format_currency(abs(tx.amount))}")
        lines.append(f"    {tx.label}")
    if len(transactions) > SYNC_MESSAGE_MAX_TRANSACTIONS:
        lines.append(f"  ... et {len(transactions) - SYNC_MESSAGE_MAX_TRANSACTIONS} autre(s)")
    return "\n".join(lines)


async def treasury_sync(
    tenant_id: int | None = None,
    session_factory: SessionFactory = None,
    bot: "Bot | None" = None,
    client: GoCardlessClient | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Import bank transactions from GoCardless and post a summary."""
    config = get_app_config()
    if not config.features.scheduler_treasury_sync_enabled:
        return {"status": "disabled"}

    tenant_id = _tenant(tenant_id)
    now = now or local_now(config.assistant.timezone)

    async with session_scope(session_factory) as session:
        settings = await get_settings_registry().get(session, tenant_id)
        if client is None and not settings.gocardless_enabled:
            logger.info("Treasury sync skipped, GoCardless disabled", extra={"tenant_id": tenant_id})
            return {"status": "skipped", "reason": "gocardless_disabled"}

        service = BankSyncService(session, tenant_id, settings, client=client)
        try:
            results = await service.sync(days=config.integrations.gocardless.sync_days)
        finally:
            await service.close()
        total_balance = await TreasuryService(session, tenant_id, settings).total_balance()

    new_count = sum(len(r.new_transactions) for r in results)
    recipients = telegram_recipients(settings)
    sent = 0
    if recipients:
        text = format_sync_message(results, total_balance, now)
        notifications = await _notifier(settings, bot).broadcast(recipients, text)
        sent = sum(1 for r in notifications if r.success)

    logger.info(
        "Treasury sync completed",
        extra={"tenant_id": tenant_id, "accounts": len(results), "new_transactions": new_count},
    )
    return {
        "status": "completed",
        "accounts": len(results),
        "new_transactions": new_count,
        "notifications": sent,
    }


# =============================================================================
# Task Registration
# =============================================================================

SCHEDULED_TASKS = {
    "morning_report": {
        "function": morning_report,
        "schedule": [{"cron": "0 7 * * *"}],
        "description": "Daily Telegram briefing",
    },
    "calendar_reminders": {
        "function": calendar_reminders,
        "schedule": [{"cron": "*/5 * * * *"}],
        "description": "Office 365 event reminders",
    },
    "treasury_sync": {
        "function": treasury_sync,
        "schedule": [{"cron": "0 7,13 * * *"}],
        "description": "GoCardless transaction import",
    },
}

_registered: dict[str, Any] = {}


def register_scheduled_tasks() -> dict[str, Any]:
    """
    Register the scheduled functions with the Taskiq broker.

    Safe to call more than once; tasks are only registered the first time.
    """
    if _registered:
        return _registered

    from crm.backend.tasks.broker import get_broker

    broker = get_broker()
    for task_name, config in SCHEDULED_TASKS.items():
        _registered[task_name] = broker.task(
            task_name=task_name,
            schedule=config["schedule"],
        )(config["function"])

    logger.info(
        "Scheduled tasks registered",
        extra={"task_count": len(_registered), "tasks": list(_registered)},
    )
    return _registered
