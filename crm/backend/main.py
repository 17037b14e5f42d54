"""
FastAPI Application Entry Point.

Dashboard REST API under the configured api_prefix, health checks, and the
Telegram webhook when the channel is enabled.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from crm.backend.api import health
from crm.backend.api.v1 import router as api_v1_router
from crm.backend.core.concurrency import shutdown_pools
from crm.backend.core.config import AppConfig, get_app_config
from crm.backend.core.database import dispose_engine
from crm.backend.core.exception_handlers import register_exception_handlers
from crm.backend.core.logging import get_logger, setup_logging
from crm.backend.core.middleware import RequestContextMiddleware

logger = get_logger(__name__)

_app: FastAPI | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    app_config = get_app_config()
    setup_logging(level=app_config.logging.level)

    logger.info(
        "Application starting",
        extra={
            "app_name": app_config.application.name,
            "env": app_config.application.environment,
            "telegram": app_config.features.channel_telegram_enabled,
        },
    )
    yield

    if app_config.features.channel_telegram_enabled:
        from crm.telegram.bot import close_bots

        await close_bots()
    await shutdown_pools()
    await dispose_engine()
    logger.info("Application shutting down")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app_config = get_app_config()
    app_settings = app_config.application

    app = FastAPI(
        title=app_settings.name,
        description=app_settings.description,
        version=app_settings.version,
        docs_url="/docs" if app_settings.docs_enabled else None,
        redoc_url="/redoc" if app_settings.docs_enabled else None,
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)

    cors_origins = app_settings.cors.origins
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_exception_handlers(app)

    app.include_router(health.router, prefix=app_settings.api_prefix, tags=["health"])
    app.include_router(api_v1_router, prefix=app_settings.api_prefix)

    _mount_telegram(app, app_config)

    return app


def _mount_telegram(app: FastAPI, app_config: AppConfig) -> None:
    """Mount the Telegram webhook route when the channel is enabled."""
    if not app_config.features.channel_telegram_enabled:
        return

    from crm.telegram.webhook import get_webhook_router

    app.include_router(get_webhook_router())
    logger.info(
        "Telegram webhook mounted",
        extra={"path": app_config.application.telegram.webhook_path},
    )


def get_app() -> FastAPI:
    """
    Get the application instance (lazy initialization).

    Use this instead of importing `app` directly to avoid import-time
    configuration errors.
    """
    global _app
    if _app is None:
        _app = create_app()
    return _app


# For uvicorn: `uvicorn crm.backend.main:app`
def __getattr__(name: str) -> FastAPI:
    """Support lazy access to `app` for uvicorn compatibility."""
    if name == "app":
        return get_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
