"""
Background Tasks Package.

Taskiq jobs with a Redis broker. The job functions are plain coroutines
and can be awaited directly without Redis:

    from crm.backend.tasks import morning_report
    await morning_report(session_factory=factory, bot=bot)

CLI Commands:
    python run.py --action worker
    python run.py --action scheduler

Important:
    Run only ONE scheduler instance to avoid duplicate notifications.
"""

from crm.backend.tasks.broker import get_broker
from crm.backend.tasks.scheduled import (
    SCHEDULED_TASKS,
    calendar_reminders,
    morning_report,
    register_scheduled_tasks,
    treasury_sync,
)
from crm.backend.tasks.scheduler import get_scheduler

__all__ = [
    "get_broker",
    "get_scheduler",
    "register_scheduled_tasks",
    "SCHEDULED_TASKS",
    "morning_report",
    "calendar_reminders",
    "treasury_sync",
]
