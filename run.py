#!/usr/bin/env python3
"""
Application Entry Script.

All functionality of the CRM backend is reachable through --action.

Usage:
    python run.py --help
    python run.py --action server --reload --verbose
    python run.py --action worker
    python run.py --action scheduler
    python run.py --action config
    python run.py --action set-webhook
    python run.py --action morning-report --tenant 1
    python run.py --action init-db
"""

import asyncio
import subprocess
import sys
from pathlib import Path

import click
import structlog

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from crm.backend.core.logging import get_logger, setup_logging  # noqa: E402

ACTIONS = [
    "server",
    "worker",
    "scheduler",
    "config",
    "info",
    "set-webhook",
    "morning-report",
    "init-db",
]


def validate_project_root() -> Path:
    """Validate that we're running from the project root."""
    if not (PROJECT_ROOT / ".project_root").exists():
        click.echo(
            click.style("Error: .project_root not found. Run from project root.", fg="red"),
            err=True,
        )
        sys.exit(1)
    return PROJECT_ROOT


@click.command()
@click.option(
    "--action",
    type=click.Choice(ACTIONS),
    default="info",
    help="Action to perform.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output (INFO level logging).")
@click.option("--debug", "-d", is_flag=True, help="Enable debug output (DEBUG level logging).")
@click.option("--host", default=None, help="Server host (for server action).")
@click.option("--port", default=None, type=int, help="Server port (for server action).")
@click.option("--reload", is_flag=True, help="Enable auto-reload (for server action).")
@click.option("--workers", default=1, type=int, help="Worker processes (for worker action).")
@click.option("--tenant", default=None, type=int, help="Tenant id (for morning-report action).")
@click.option("--base-url", default=None, help="Public base URL (for set-webhook action).")
def main(
    action: str,
    verbose: bool,
    debug: bool,
    host: str | None,
    port: int | None,
    reload: bool,
    workers: int,
    tenant: int | None,
    base_url: str | None,
) -> None:
    """
    CRM Backend Entry Point.

    \b
    Examples:
        python run.py --action server --reload --verbose
        python run.py --action worker --workers 2
        python run.py --action scheduler
        python run.py --action set-webhook --base-url https://crm.example.com
        python run.py --action morning-report --tenant 1 --verbose
    """
    validate_project_root()

    if debug:
        log_level = "DEBUG"
    elif verbose:
        log_level = "INFO"
    else:
        log_level = "WARNING"

    setup_logging(level=log_level, format_type="console")
    structlog.contextvars.bind_contextvars(source="cli")
    logger = get_logger(__name__)
    logger.debug("CLI invoked", extra={"action": action, "log_level": log_level})

    if action == "server":
        run_server(logger, host, port, reload)
    elif action == "worker":
        run_worker(logger, workers)
    elif action == "scheduler":
        run_scheduler(logger)
    elif action == "config":
        show_config(logger)
    elif action == "set-webhook":
        asyncio.run(set_webhook(logger, base_url))
    elif action == "morning-report":
        asyncio.run(send_morning_report(logger, tenant))
    elif action == "init-db":
        asyncio.run(init_db(logger))
    else:
        show_info(logger)


def _run_subprocess(logger, cmd: list[str], name: str) -> None:
    try:
        subprocess.run(cmd, check=True)
    except KeyboardInterrupt:
        logger.info(f"{name} stopped")
    except subprocess.CalledProcessError as e:
        logger.error(f"{name} failed to start", extra={"exit_code": e.returncode})
        sys.exit(e.returncode)


def _require_redis(logger) -> None:
    try:
        from crm.backend.core.config import get_redis_url

        redis_url = get_redis_url()
        logger.debug("Redis configured", extra={"redis_url": redis_url.split("@")[-1]})
    except Exception as e:
        logger.error("Failed to load Redis configuration.", extra={"error": str(e)})
        click.echo(click.style(f"Error: Redis not configured: {e}", fg="red"), err=True)
        sys.exit(1)


def run_server(logger, host: str | None, port: int | None, reload: bool) -> None:
    """Start the FastAPI server."""
    from crm.backend.core.config import get_app_config

    try:
        server_config = get_app_config().application.server
    except Exception as e:
        logger.error("Failed to load configuration.", extra={"error": str(e)})
        click.echo(
            click.style("Error: Could not load config/settings/application.yaml.", fg="red"),
            err=True,
        )
        sys.exit(1)

    server_host = host or server_config.host
    server_port = port or server_config.port
    logger.info("Starting server", extra={"host": server_host, "port": server_port, "reload": reload})

    cmd = [
        sys.executable, "-m", "uvicorn",
        "crm.backend.main:app",
        "--host", server_host,
        "--port", str(server_port),
    ]
    if reload:
        cmd.append("--reload")

    click.echo(f"Starting server at http://{server_host}:{server_port}")
    click.echo("Press Ctrl+C to stop\n")
    _run_subprocess(logger, cmd, "Server")


def run_worker(logger, workers: int) -> None:
    """Start the Taskiq worker that runs the scheduled jobs."""
    _require_redis(logger)
    logger.info("Starting background task worker", extra={"workers": workers})

    cmd = [
        sys.executable, "-m", "taskiq",
        "worker",
        "crm.backend.tasks.broker:broker",
        "--workers", str(workers),
    ]
    click.echo(f"Starting Taskiq worker with {workers} worker(s)")
    click.echo("Press Ctrl+C to stop\n")
    _run_subprocess(logger, cmd, "Worker")


def run_scheduler(logger) -> None:
    """Start the Taskiq scheduler."""
    _require_redis(logger)
    from crm.backend.tasks.scheduled import SCHEDULED_TASKS

    click.echo("Scheduled tasks:")
    for task_name, config in SCHEDULED_TASKS.items():
        click.echo(f"  - {task_name}: {config['schedule'][0]['cron']}  {config['description']}")
    click.echo()

    cmd = [
        sys.executable, "-m", "taskiq",
        "scheduler",
        "crm.backend.tasks.scheduler:scheduler",
    ]
    click.echo("Starting Taskiq scheduler")
    click.echo("WARNING: Run only ONE scheduler instance to avoid duplicate notifications")
    click.echo("Press Ctrl+C to stop\n")
    _run_subprocess(logger, cmd, "Scheduler")


def show_config(logger) -> None:
    """Display the loaded YAML configuration. Secrets are not shown."""
    from crm.backend.core.config import get_app_config

    try:
        app_config = get_app_config()
    except Exception as e:
        logger.error("Failed to load configuration", extra={"error": str(e)})
        click.echo(click.style(f"Error loading configuration: {e}", fg="red"))
        sys.exit(1)

    sections = {
        "Application": app_config.application,
        "Database": app_config.database,
        "Logging": app_config.logging,
        "Feature Flags": app_config.features,
        "Assistant": app_config.assistant,
        "Integrations": app_config.integrations,
    }
    for title, section in sections.items():
        click.echo(f"\n{title} (from YAML):")
        click.echo("-" * 40)
        for key, value in section.model_dump().items():
            if isinstance(value, dict):
                click.echo(f"  {key}:")
                for k, v in value.items():
                    click.echo(f"    {k}: {v}")
            else:
                click.echo(f"  {key}: {value}")

    logger.info("Configuration displayed successfully")


async def set_webhook(logger, base_url: str | None) -> None:
    """Register the webhook URL and secret token with Telegram."""
    from crm.backend.core.config import get_app_config, get_settings
    from crm.telegram.bot import close_bots, get_bot, setup_webhook
    from crm.telegram.webhook import get_webhook_url

    url = get_webhook_url(base_url or get_app_config().application.telegram.public_base_url)
    try:
        await setup_webhook(get_bot(), url, get_settings().telegram_webhook_secret)
    finally:
        await close_bots()
    click.echo(f"Webhook set to {url}")


async def send_morning_report(logger, tenant_id: int | None) -> None:
    """Send the morning report now, outside the scheduler."""
    from crm.backend.core.database import dispose_engine
    from crm.backend.tasks.scheduled import morning_report
    from crm.telegram.bot import close_bots

    try:
        result = await morning_report(tenant_id=tenant_id)
    finally:
        await close_bots()
        await dispose_engine()
    click.echo(f"Morning report: {result}")


async def init_db(logger) -> None:
    """Create every table that does not exist yet."""
    from crm.backend.core.database import dispose_engine, get_engine
    from crm.backend.models import Base

    engine = get_engine()
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await dispose_engine()
    logger.info("Database tables created", extra={"tables": len(Base.metadata.tables)})
    click.echo(f"Created {len(Base.metadata.tables)} tables")


def show_info(logger) -> None:
    """Display application information."""
    from crm.backend.core.config import get_app_config

    try:
        application = get_app_config().application
    except Exception as e:
        logger.error("Failed to load application configuration", extra={"error": str(e)})
        click.echo(click.style("Error: Could not load application.yaml configuration.", fg="red"), err=True)
        sys.exit(1)

    click.echo(application.name)
    click.echo("=" * 40)
    click.echo(f"Version: {application.version}")
    click.echo(f"Description: {application.description}")
    click.echo()
    click.echo("Actions (--action):")
    click.echo("  server          FastAPI server (REST API + Telegram webhook)")
    click.echo("  worker          Taskiq worker")
    click.echo("  scheduler       Taskiq scheduler (morning report, reminders, treasury sync)")
    click.echo("  config          Display configuration")
    click.echo("  set-webhook     Register the Telegram webhook")
    click.echo("  morning-report  Send the morning report now")
    click.echo("  init-db         Create database tables")
    click.echo("  info            Show this information")
    click.echo()
    click.echo("Options:")
    click.echo("  --verbose, -v   Enable INFO level logging")
    click.echo("  --debug, -d     Enable DEBUG level logging")

    logger.debug("Info displayed")


if __name__ == "__main__":
    main()
