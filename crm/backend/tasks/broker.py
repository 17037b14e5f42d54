"""
Taskiq Broker Configuration.

Redis list queue shared by the worker and the scheduler. Queue name and
result expiry come from database.yaml (redis.broker).

Usage:
    # Start worker process
    python run.py --action worker

    # Or directly with taskiq
    taskiq worker crm.backend.tasks.broker:broker
"""

from typing import TYPE_CHECKING

from crm.backend.core.config import get_app_config, get_redis_url
from crm.backend.core.logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from taskiq_redis import ListQueueBroker


def create_broker() -> "ListQueueBroker":
    """
    Create and configure the Taskiq broker.

    Returns:
        Configured ListQueueBroker instance
    """
    from taskiq_redis import ListQueueBroker, RedisAsyncResultBackend

    redis_url = get_redis_url()
    broker_config = get_app_config().database.redis.broker

    result_backend = RedisAsyncResultBackend(
        redis_url=redis_url,
        result_ex_time=broker_config.result_expiry_seconds,
    )

    broker = ListQueueBroker(
        url=redis_url,
        queue_name=broker_config.queue_name,
    ).with_result_backend(result_backend)

    logger.debug(
        "Taskiq broker configured",
        extra={
            "queue_name": broker_config.queue_name,
            "result_expiry": broker_config.result_expiry_seconds,
        },
    )
    return broker


_broker: "ListQueueBroker | None" = None


def get_broker() -> "ListQueueBroker":
    """Get the broker instance, creating it if necessary."""
    global _broker
    if _broker is None:
        _broker = create_broker()

        @_broker.on_event("startup")
        async def on_startup() -> None:
            from crm.backend.core.logging import setup_logging

            setup_logging()
            logger.info("Taskiq worker starting up")

        @_broker.on_event("shutdown")
        async def on_shutdown() -> None:
            from crm.backend.core.database import dispose_engine
            from crm.telegram.bot import close_bots

            await close_bots()
            await dispose_engine()
            logger.info("Taskiq worker shutting down")

    return _broker


def __getattr__(name: str):
    """Lazy attribute access for ``taskiq worker crm.backend.tasks.broker:broker``."""
    if name == "broker":
        from crm.backend.tasks.scheduled import register_scheduled_tasks

        register_scheduled_tasks()
        return get_broker()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
