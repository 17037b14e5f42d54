"""
Configuration Schemas.

Pydantic models defining the expected structure of each YAML config file.
Used by AppConfig to validate configuration at load time. If a YAML file
has missing keys, wrong types, or unknown fields, a clear ValidationError
is raised at startup instead of a cryptic KeyError deep in application code.

Each top-level class corresponds to one file in config/settings/:
    ApplicationSchema  → application.yaml
    DatabaseSchema     → database.yaml
    LoggingSchema      → logging.yaml
    FeaturesSchema     → features.yaml
    SecuritySchema     → security.yaml
    ConcurrencySchema  → concurrency.yaml
    AssistantSchema    → assistant.yaml
    IntegrationsSchema → integrations.yaml
"""

from pydantic import BaseModel, ConfigDict


class _StrictBase(BaseModel):
    """Base with extra='forbid' so unknown YAML keys are caught immediately."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# application.yaml
# =============================================================================


class ServerSchema(_StrictBase):
    host: str
    port: int


class CorsSchema(_StrictBase):
    origins: list[str]


class PaginationSchema(_StrictBase):
    default_limit: int
    max_limit: int


class TimeoutsSchema(_StrictBase):
    database: int
    external_api: int
    background: int


class TelegramAppSchema(_StrictBase):
    webhook_path: str
    authorized_users: list[int]
    default_tenant_id: int
    public_base_url: str


class ApplicationSchema(_StrictBase):
    name: str
    version: str
    description: str
    environment: str
    debug: bool
    api_prefix: str
    app_url: str
    docs_enabled: bool
    server: ServerSchema
    cors: CorsSchema
    pagination: PaginationSchema
    timeouts: TimeoutsSchema
    telegram: TelegramAppSchema


# =============================================================================
# database.yaml
# =============================================================================


class BrokerSchema(_StrictBase):
    queue_name: str
    result_expiry_seconds: int


class RedisSchema(_StrictBase):
    host: str
    port: int
    db: int
    broker: BrokerSchema


class DatabaseSchema(_StrictBase):
    host: str
    port: int
    name: str
    user: str
    pool_size: int
    max_overflow: int
    pool_timeout: int
    pool_recycle: int
    echo: bool
    echo_pool: bool
    redis: RedisSchema


# =============================================================================
# logging.yaml
# =============================================================================


class ConsoleHandlerSchema(_StrictBase):
    enabled: bool


class FileHandlerSchema(_StrictBase):
    enabled: bool
    path: str
    max_bytes: int
    backup_count: int


class HandlersSchema(_StrictBase):
    console: ConsoleHandlerSchema
    file: FileHandlerSchema


class LoggingSchema(_StrictBase):
    level: str
    format: str
    handlers: HandlersSchema


# =============================================================================
# features.yaml
# =============================================================================


class FeaturesSchema(_StrictBase):
    api_detailed_errors: bool
    api_request_logging: bool
    channel_telegram_enabled: bool
    assistant_voice_enabled: bool
    assistant_vision_enabled: bool
    scheduler_morning_report_enabled: bool
    scheduler_calendar_reminders_enabled: bool
    scheduler_treasury_sync_enabled: bool


# =============================================================================
# security.yaml
# =============================================================================


class JwtSchema(_StrictBase):
    algorithm: str
    access_token_expire_minutes: int
    audience: str


class ApiRateLimitSchema(_StrictBase):
    requests_per_minute: int
    requests_per_hour: int


class ChannelRateLimitSchema(_StrictBase):
    messages_per_minute: int
    messages_per_hour: int


class RateLimitingSchema(_StrictBase):
    api: ApiRateLimitSchema
    telegram: ChannelRateLimitSchema


class PasswordPolicySchema(_StrictBase):
    min_length: int


class SecuritySchema(_StrictBase):
    jwt: JwtSchema
    rate_limiting: RateLimitingSchema
    passwords: PasswordPolicySchema


# =============================================================================
# concurrency.yaml
# =============================================================================


class ThreadPoolSchema(_StrictBase):
    max_workers: int


class SemaphoresSchema(_StrictBase):
    database: int
    external_api: int
    llm: int


class ShutdownSchema(_StrictBase):
    drain_seconds: int


class ConcurrencySchema(_StrictBase):
    thread_pool: ThreadPoolSchema
    semaphores: SemaphoresSchema
    shutdown: ShutdownSchema


# =============================================================================
# assistant.yaml
# =============================================================================


class ConversationCacheSchema(_StrictBase):
    maxsize: int
    ttl_seconds: int


class AssistantSchema(_StrictBase):
    model: str
    vision_model: str
    transcription_model: str
    temperature: float
    max_tokens: int
    max_history: int
    timezone: str
    default_event_duration_minutes: int
    typing_interval_seconds: float
    telegram_message_limit: int
    conversation_cache: ConversationCacheSchema


# =============================================================================
# integrations.yaml
# =============================================================================


class SettingsCacheSchema(_StrictBase):
    maxsize: int
    ttl_seconds: int


class GraphSchema(_StrictBase):
    authority_url: str
    api_url: str
    scope: str
    token_refresh_margin_seconds: int
    timezone: str
    reminder_minutes_before: int
    reminder_tolerance_minutes: int
    reminder_lookahead_minutes: int


class GoCardlessSchema(_StrictBase):
    base_url: str
    default_country: str
    sync_days: int
    requisition_validity_days: int


class CloudflareSchema(_StrictBase):
    base_url: str


class OvhSchema(_StrictBase):
    endpoints: dict[str, str]


class ResilienceSchema(_StrictBase):
    breaker_fail_max: int
    breaker_reset_seconds: int


class IntegrationsSchema(_StrictBase):
    http_timeout_seconds: float
    resilience: ResilienceSchema
    settings_cache: SettingsCacheSchema
    graph: GraphSchema
    gocardless: GoCardlessSchema
    cloudflare: CloudflareSchema
    ovh: OvhSchema
