"""
Task Scheduler Configuration.

Sends the cron-labelled tasks of crm.backend.tasks.scheduled to the
worker. Schedules are read from the task labels by LabelScheduleSource.

Usage:
    python run.py --action scheduler

    # Or directly with taskiq
    taskiq scheduler crm.backend.tasks.scheduler:scheduler

Important:
    Run only ONE scheduler instance. Multiple instances send every
    morning report and reminder more than once.
"""

from typing import TYPE_CHECKING

from crm.backend.core.logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from taskiq import TaskiqScheduler


def create_scheduler() -> "TaskiqScheduler":
    from taskiq import TaskiqScheduler
    from taskiq.schedule_sources import LabelScheduleSource

    from crm.backend.tasks.broker import get_broker
    from crm.backend.tasks.scheduled import register_scheduled_tasks

    broker = get_broker()
    register_scheduled_tasks()

    scheduler = TaskiqScheduler(
        broker=broker,
        sources=[LabelScheduleSource(broker)],
    )
    logger.info("Taskiq scheduler configured with LabelScheduleSource")
    return scheduler


_scheduler: "TaskiqScheduler | None" = None


def get_scheduler() -> "TaskiqScheduler":
    global _scheduler
    if _scheduler is None:
        _scheduler = create_scheduler()
    return _scheduler


def __getattr__(name: str):
    """Lazy attribute access for scheduler."""
    if name == "scheduler":
        return get_scheduler()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
