"""
Configuration Management.

Loads secrets from config/.env and settings from config/settings/*.yaml.
Per-tenant integration credentials (SMTP, OVH, Telegram...) are not part of
this module; they live in the tenant settings registry.

Secrets (.env):
    DB_PASSWORD, REDIS_PASSWORD, JWT_SECRET,
    TELEGRAM_BOT_TOKEN, TELEGRAM_WEBHOOK_SECRET, OPENAI_API_KEY

Settings (YAML):
    application.yaml   - App identity, server, cors, telegram, pagination
    database.yaml      - Database and Redis connection settings
    logging.yaml       - Logging configuration
    features.yaml      - Feature flags
    security.yaml      - JWT settings, rate limits, password policy
    concurrency.yaml   - Pool sizes, semaphores, shutdown timing
    assistant.yaml     - LLM models, history size, timezone
    integrations.yaml  - Settings cache, Graph, GoCardless, OVH, Cloudflare
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from crm.backend.core.config_schema import (
    ApplicationSchema,
    AssistantSchema,
    ConcurrencySchema,
    DatabaseSchema,
    FeaturesSchema,
    IntegrationsSchema,
    LoggingSchema,
    SecuritySchema,
)


def find_project_root() -> Path:
    """Find project root by looking for .project_root marker file."""
    current = Path.cwd()
    while current != current.parent:
        if (current / ".project_root").exists():
            return current
        current = current.parent
    raise RuntimeError("Project root not found. Ensure .project_root file exists.")


def load_yaml_config(filename: str) -> dict[str, Any]:
    """Load a YAML configuration file from config/settings/."""
    project_root = find_project_root()
    config_path = project_root / "config" / "settings" / filename

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


class Settings(BaseSettings):
    """Secrets loaded from config/.env. Only passwords, tokens, and keys."""

    db_password: str
    redis_password: str = ""
    jwt_secret: str
    telegram_bot_token: str = ""
    telegram_webhook_secret: str = ""
    openai_api_key: str = ""

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


_CONFIG_FILES: dict[str, type] = {
    "application": ApplicationSchema,
    "database": DatabaseSchema,
    "logging": LoggingSchema,
    "features": FeaturesSchema,
    "security": SecuritySchema,
    "concurrency": ConcurrencySchema,
    "assistant": AssistantSchema,
    "integrations": IntegrationsSchema,
}


def _load_validated(schema_cls: type, filename: str) -> Any:
    raw = load_yaml_config(filename)
    try:
        return schema_cls(**raw)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {filename}:\n{e}") from e


class AppConfig:
    """
    Typed view of config/settings/*.yaml.

    Every file is validated against its strict schema when the config is
    built, so a typo in a key fails at startup rather than at first use.
    """

    application: ApplicationSchema
    database: DatabaseSchema
    logging: LoggingSchema
    features: FeaturesSchema
    security: SecuritySchema
    concurrency: ConcurrencySchema
    assistant: AssistantSchema
    integrations: IntegrationsSchema

    def __init__(self) -> None:
        for name, schema_cls in _CONFIG_FILES.items():
            setattr(self, name, _load_validated(schema_cls, f"{name}.yaml"))


@lru_cache
def get_settings() -> Settings:
    """Secrets, read once from config/.env and the environment."""
    env_path = find_project_root() / "config" / ".env"
    return Settings(_env_file=str(env_path))


@lru_cache
def get_app_config() -> AppConfig:
    return AppConfig()


def get_database_url() -> str:
    """asyncpg URL built from database.yaml and DB_PASSWORD."""
    db = get_app_config().database
    password = get_settings().db_password
    return f"postgresql+asyncpg://{db.user}:{password}@{db.host}:{db.port}/{db.name}"


def get_redis_url() -> str:
    redis = get_app_config().database.redis
    password = get_settings().redis_password
    return f"redis://:{password}@{redis.host}:{redis.port}/{redis.db}"

