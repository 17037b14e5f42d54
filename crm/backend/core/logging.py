"""
Centralized Logging Configuration.

structlog on top of the standard logging module, configured from
config/settings/logging.yaml. Every record carries timestamp, level,
logger, event, func_name and lineno, plus whatever is bound in the
context (request_id on HTTP requests) and an explicit ``source`` for
work that does not come through the API: Telegram updates, scheduled
jobs, assistant tool calls, outbound integrations.

Usage:
    from crm.backend.core.logging import get_logger, log_with_source

    logger = get_logger(__name__)
    logger.info("Invoice created", extra={"invoice_id": 12})
    log_with_source(logger, "telegram", "info", "Update received", chat_id=123)

Log file:
    logs/system.jsonl, one JSON object per line, filter on ``source``.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Any

import structlog
from structlog.typing import Processor

from crm.backend.core.config import find_project_root, get_app_config

VALID_SOURCES = frozenset({
    "web",
    "cli",
    "telegram",
    "api",
    "tasks",
    "assistant",
    "integrations",
    "internal",
})

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiogram.event", "httpx", "openai")


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ],
        ),
    ]


def setup_logging(
    level: str | None = None,
    format_type: str | None = None,
    enable_console: bool | None = None,
    enable_file_logging: bool | None = None,
) -> None:
    """
    Configure structlog and the root logger.

    Arguments override the matching logging.yaml values; ``format_type``
    is ``json`` or ``console`` and only affects the console handler, the
    file is always JSON.
    """
    config = get_app_config().logging
    level = level or config.level
    format_type = format_type or config.format
    console_enabled = config.handlers.console.enabled if enable_console is None else enable_console
    file_enabled = config.handlers.file.enabled if enable_file_logging is None else enable_file_logging

    shared = _shared_processors()
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    json_formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(ensure_ascii=False),
        foreign_pre_chain=shared,
    )

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    if console_enabled:
        console = logging.StreamHandler(sys.stdout)
        if format_type == "console":
            console.setFormatter(structlog.stdlib.ProcessorFormatter(
                processor=structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
                foreign_pre_chain=shared,
            ))
        else:
            console.setFormatter(json_formatter)
        root.addHandler(console)

    if file_enabled:
        file_config = config.handlers.file
        log_path = find_project_root() / file_config.path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=str(log_path),
            maxBytes=file_config.max_bytes,
            backupCount=file_config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(json_formatter)
        root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> Any:
    return structlog.get_logger(name)


def log_with_source(logger: Any, source: str, level: str, message: str, **kwargs: Any) -> None:
    """
    Log ``message`` with an explicit ``source`` field.

    Unknown sources are recorded as ``unknown`` rather than rejected.

    Example:
        log_with_source(logger, "tasks", "info", "Morning report sent", chat_id=42)
    """
    getattr(logger, level.lower())(
        message,
        source=source if source in VALID_SOURCES else "unknown",
        **kwargs,
    )
