"""
Tenant Settings Registry.

Every tenant stores its integration credentials and billing preferences in
one JSON blob (``tenants.settings``). This module parses that blob into a
typed TenantSettings model, caches the result for a short time, and applies
the section-based updates sent by the settings page.

Keys are camelCase. Older rows used snake_case names, which are read as a
fallback when the camelCase key is missing or empty. A blob that is not
valid JSON is treated as empty, so every field takes its default.
"""

import json
from functools import lru_cache
from typing import Any

from pydantic import ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.cache import TTLCache
from crm.backend.core.exceptions import ValidationError
from crm.backend.core.logging import get_logger
from crm.backend.models.tenant import Tenant
from crm.backend.repositories.tenant import TenantRepository
from crm.backend.schemas.base import CamelModel

logger = get_logger(__name__)

# Legacy snake_case key -> current camelCase key.
LEGACY_KEYS: dict[str, str] = {
    "owner_name": "ownerName",
    "postal_code": "postalCode",
    "logo_url": "logoUrl",
    "bank_name": "bankName",
    "bank_account_holder": "bankAccountHolder",
    "bank_iban": "iban",
    "bank_bic": "bic",
    "payment_terms": "paymentTerms",
    "late_fee": "lateFee",
    "invoice_prefix": "invoicePrefix",
    "quote_prefix": "quotePrefix",
    "next_invoice_number": "nextInvoiceNumber",
    "next_quote_number": "nextQuoteNumber",
    "invoice_number_format": "invoiceNumberFormat",
    "quote_number_format": "quoteNumberFormat",
    "invoice_footer_text": "invoiceFooter",
    "quote_footer_text": "quoteFooter",
    "legal_mentions": "legalMentions",
    "default_vat_rate": "defaultVatRate",
    "smtp_host": "smtpHost",
    "smtp_port": "smtpPort",
    "smtp_username": "smtpUsername",
    "smtp_password": "smtpPassword",
    "smtp_encryption": "smtpEncryption",
    "smtp_from_address": "smtpFromAddress",
    "smtp_from_name": "smtpFromName",
    "monthly_goal": "monthlyGoal",
    "monthly_goal_mode": "monthlyGoalMode",
    "ovh_app_key": "ovhAppKey",
    "ovh_app_secret": "ovhAppSecret",
    "ovh_consumer_key": "ovhConsumerKey",
    "ovh_endpoint": "ovhEndpoint",
    "cloudflare_api_token": "cloudflareApiToken",
    "slack_enabled": "slackEnabled",
    "slack_webhook_url": "slackWebhookUrl",
    "slack_bot_token": "slackBotToken",
    "slack_channel_id": "slackChannelId",
    "slack_notify_on_new": "slackNotifyOnNew",
    "slack_notify_on_reply": "slackNotifyOnReply",
    "slack_notify_on_assign": "slackNotifyOnAssign",
    "openai_enabled": "openaiEnabled",
    "openai_api_key": "openaiApiKey",
    "openai_model": "openaiModel",
    "openai_auto_suggest": "openaiAutoSuggest",
    "openai_auto_classify": "openaiAutoClassify",
    "o365_enabled": "o365Enabled",
    "o365_client_id": "o365ClientId",
    "o365_client_secret": "o365ClientSecret",
    "o365_tenant_id": "o365TenantId",
    "o365_support_email": "o365SupportEmail",
    "o365_auto_sync": "o365AutoSync",
}


# Credentials only tenant administrators may read back
SECRET_FIELDS = (
    "smtp_password",
    "ovh_app_secret",
    "ovh_consumer_key",
    "cloudflare_api_token",
    "slack_webhook_url",
    "slack_bot_token",
    "openai_api_key",
    "o365_client_secret",
    "gocardless_secret_id",
    "gocardless_secret_key",
    "docuseal_api_key",
    "docuseal_webhook_secret",
    "telegram_bot_token",
    "revolut_api_key",
    "s3_access_key",
    "s3_secret_key",
)


class TenantSettings(CamelModel):
    """Typed view of a tenant's settings blob."""

    model_config = ConfigDict(extra="ignore")

    # Company
    owner_name: str = ""
    siret: str = ""
    city: str = ""
    postal_code: str = ""
    website: str = ""
    logo_url: str = ""

    # Payment
    bank_name: str = ""
    bank_account_holder: str = ""
    iban: str = ""
    bic: str = ""
    payment_terms: int = Field(default=30, ge=0)
    late_fee: float = 10.0

    # Invoice and quote numbering
    invoice_prefix: str = "FAC"
    quote_prefix: str = "DEV"
    next_invoice_number: int = Field(default=1, ge=1)
    next_quote_number: int = Field(default=1, ge=1)
    invoice_number_format: str = "{PREFIX}-{YEAR}-{NUMBER}"
    quote_number_format: str = "{PREFIX}-{YEAR}-{NUMBER}"
    invoice_footer: str = ""
    quote_footer: str = ""
    legal_mentions: str = ""
    default_vat_rate: float = 20.0
    quote_validity_days: int = Field(default=30, ge=1)

    # SMTP
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_encryption: str = "tls"
    smtp_from_address: str = ""
    smtp_from_name: str = ""

    # Goals
    monthly_goal: float | None = None
    monthly_goal_mode: str = "auto"

    # OVH
    ovh_app_key: str = ""
    ovh_app_secret: str = ""
    ovh_consumer_key: str = ""
    ovh_endpoint: str = "ovh-eu"

    # Cloudflare
    cloudflare_api_token: str = ""

    # Slack
    slack_enabled: bool = False
    slack_webhook_url: str = ""
    slack_bot_token: str = ""
    slack_channel_id: str = ""
    slack_notify_on_new: bool = True
    slack_notify_on_reply: bool = True
    slack_notify_on_assign: bool = False

    # OpenAI
    openai_enabled: bool = False
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_auto_suggest: bool = True
    openai_auto_classify: bool = False

    # Office 365
    o365_enabled: bool = False
    o365_client_id: str = ""
    o365_client_secret: str = ""
    o365_tenant_id: str = ""
    o365_support_email: str = ""
    o365_auto_sync: bool = False
    o365_allowed_groups: str = ""

    # GoCardless Bank Account Data
    gocardless_enabled: bool = False
    gocardless_secret_id: str = ""
    gocardless_secret_key: str = ""
    gocardless_environment: str = "sandbox"

    # DocuSeal
    docuseal_enabled: bool = False
    docuseal_api_url: str = "https://api.docuseal.com"
    docuseal_api_key: str = ""
    docuseal_webhook_secret: str = ""

    # SEPA direct debit
    sepa_ics: str = ""
    sepa_creditor_name: str = ""
    sepa_creditor_iban: str = ""
    sepa_creditor_bic: str = ""

    # Telegram
    telegram_enabled: bool = False
    telegram_bot_token: str = ""
    telegram_allowed_users: str = ""
    telegram_webhook_configured: bool = False

    # Revolut
    revolut_enabled: bool = False
    revolut_client_id: str = ""
    revolut_api_key: str = ""
    revolut_environment: str = "sandbox"

    # S3 storage
    s3_endpoint: str = ""
    s3_region: str = "fr-par"
    s3_access_key: str = ""
    s3_secret_key: str = ""
    s3_bucket: str = ""
    s3_force_path_style: bool = True

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_username)

    @property
    def allowed_telegram_users(self) -> list[int]:
        """Telegram user ids from the comma separated allow-list."""
        users = []
        for token in self.telegram_allowed_users.split(","):
            token = token.strip()
            if token.lstrip("-").isdigit() and int(token) > 0:
                users.append(int(token))
        return users

    def public_dict(self, include_secrets: bool = True) -> dict[str, Any]:
        """
        camelCase mapping returned to the dashboard.

        With ``include_secrets=False`` every credential in SECRET_FIELDS is
        blanked.
        """
        source = self if include_secrets else self.model_copy(update=dict.fromkeys(SECRET_FIELDS, ""))
        return source.model_dump(mode="json", by_alias=True)


SETTINGS_ALIASES = frozenset(
    field.alias for field in TenantSettings.model_fields.values() if field.alias
)

INTEGRATION_KEYS = frozenset(
    alias for alias in SETTINGS_ALIASES
    if alias.startswith((
        "slack", "openai", "o365", "gocardless", "docuseal",
        "sepa", "telegram", "revolut", "s3",
    ))
)


def parse_settings_blob(raw: str | None) -> dict[str, Any]:
    """Decode the JSON column, falling back to an empty mapping."""
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Tenant settings are not valid JSON, using defaults")
        return {}
    if not isinstance(data, dict):
        logger.warning("Tenant settings are not a JSON object, using defaults")
        return {}
    return data


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def normalize_settings(raw: dict[str, Any]) -> dict[str, Any]:
    """
    Resolve legacy keys and drop blank values.

    A camelCase value wins; the snake_case value is used only when the
    camelCase one is missing or blank. Blank values are removed so the
    model defaults apply.
    """
    resolved: dict[str, Any] = {}
    for key, value in raw.items():
        if key in SETTINGS_ALIASES and not _is_blank(value):
            resolved[key] = value
    for legacy, current in LEGACY_KEYS.items():
        if current not in resolved and not _is_blank(raw.get(legacy)):
            resolved[current] = raw[legacy]
    return resolved


def build_settings(raw: dict[str, Any]) -> TenantSettings:
    """
    Validate a raw mapping into TenantSettings.

    Fields holding values of the wrong type are discarded (and logged)
    instead of failing the whole read.
    """
    data = normalize_settings(raw)
    try:
        return TenantSettings.model_validate(data)
    except PydanticValidationError as e:
        invalid = {str(err["loc"][0]) for err in e.errors() if err.get("loc")}
        logger.warning("Invalid tenant settings fields ignored", extra={"fields": sorted(invalid)})
        return TenantSettings.model_validate({k: v for k, v in data.items() if k not in invalid})


class SettingsRegistry:
    """
    Reads and writes tenant settings with a TTL cache in front.

    Usage:
        registry = get_settings_registry()
        settings = await registry.get(session, tenant_id)
        if settings.smtp_configured: ...
    """

    def __init__(self, cache: TTLCache[int, TenantSettings]) -> None:
        self._cache = cache

    async def _load_tenant(self, session: AsyncSession, tenant_id: int) -> Tenant:
        return await TenantRepository(session).get_by_id(tenant_id)

    async def get(self, session: AsyncSession, tenant_id: int) -> TenantSettings:
        cached = self._cache.get(tenant_id)
        if cached is not None:
            return cached
        tenant = await self._load_tenant(session, tenant_id)
        settings = build_settings(parse_settings_blob(tenant.settings))
        self._cache.set(tenant_id, settings)
        return settings

    def invalidate(self, tenant_id: int) -> None:
        self._cache.pop(tenant_id)

    async def get_tenant_payload(
        self,
        session: AsyncSession,
        tenant_id: int,
        include_secrets: bool = False,
    ) -> dict[str, Any]:
        """Tenant identity plus the resolved settings, for GET /settings."""
        tenant = await self._load_tenant(session, tenant_id)
        settings = build_settings(parse_settings_blob(tenant.settings))
        return {
            "id": tenant.id,
            "name": tenant.name,
            "slug": tenant.slug,
            "email": tenant.email,
            "phone": tenant.phone,
            "address": tenant.address,
            "settings": settings.public_dict(include_secrets=include_secrets),
        }

    async def update_section(
        self,
        session: AsyncSession,
        tenant_id: int,
        section: str,
        body: dict[str, Any],
    ) -> TenantSettings:
        """
        Apply one settings-page section to the stored blob.

        Raises:
            ValidationError: If the section is unknown
        """
        handler = _SECTION_HANDLERS.get(section)
        if handler is None:
            raise ValidationError("Section non reconnue", details={"section": section})

        tenant = await self._load_tenant(session, tenant_id)
        current = parse_settings_blob(tenant.settings)
        updated = handler(tenant, current, body)

        tenant.settings = json.dumps(updated, ensure_ascii=False, default=str)
        await session.flush()
        self.invalidate(tenant_id)

        logger.info("Tenant settings updated", extra={"tenant_id": tenant_id, "section": section})
        return build_settings(updated)


def _or(body: dict[str, Any], key: str, default: Any) -> Any:
    value = body.get(key)
    return default if _is_blank(value) or value is False else value


def _keep(body: dict[str, Any], current: dict[str, Any], key: str, default: Any = "") -> Any:
    if key in body and body[key] is not None:
        return body[key]
    return current.get(key, default)


def _update_company(tenant: Tenant, current: dict, body: dict) -> dict:
    if not _is_blank(body.get("name")):
        tenant.name = body["name"]
    if "email" in body:
        tenant.email = body.get("email") or None
    tenant.phone = body.get("phone") or None
    tenant.address = body.get("address") or None
    return {
        **current,
        "ownerName": _or(body, "ownerName", ""),
        "siret": _or(body, "siret", ""),
        "city": _or(body, "city", ""),
        "postalCode": _or(body, "postalCode", ""),
        "website": _or(body, "website", ""),
    }


def _update_goals(tenant: Tenant, current: dict, body: dict) -> dict:
    return {
        **current,
        "monthlyGoal": _or(body, "monthlyGoal", None),
        "monthlyGoalMode": _or(body, "monthlyGoalMode", "auto"),
    }


def _update_email(tenant: Tenant, current: dict, body: dict) -> dict:
    existing_password = current.get("smtpPassword") or current.get("smtp_password") or ""
    updated = {
        **current,
        "smtpHost": _or(body, "smtpHost", ""),
        "smtpPort": _or(body, "smtpPort", 587),
        "smtpUsername": _or(body, "smtpUsername", ""),
        "smtpPassword": _or(body, "smtpPassword", existing_password),
        "smtpEncryption": _or(body, "smtpEncryption", "tls"),
        "smtpFromAddress": _or(body, "smtpFromAddress", ""),
        "smtpFromName": _or(body, "smtpFromName", ""),
    }
    updated.pop("smtp_password", None)
    return updated


def _update_payment(tenant: Tenant, current: dict, body: dict) -> dict:
    return {
        **current,
        "bankName": _or(body, "bankName", ""),
        "bankAccountHolder": _or(body, "bankAccountHolder", ""),
        "iban": _or(body, "iban", ""),
        "bic": _or(body, "bic", ""),
        "paymentTerms": _or(body, "paymentTerms", 30),
        "lateFee": _or(body, "lateFee", 10),
    }


def _update_invoice(tenant: Tenant, current: dict, body: dict) -> dict:
    return {
        **current,
        "invoicePrefix": _or(body, "invoicePrefix", "FAC"),
        "quotePrefix": _or(body, "quotePrefix", "DEV"),
        "nextInvoiceNumber": _keep(body, current, "nextInvoiceNumber", 1),
        "nextQuoteNumber": _keep(body, current, "nextQuoteNumber", 1),
        "invoiceNumberFormat": _or(body, "invoiceNumberFormat", "{PREFIX}-{YEAR}-{NUMBER}"),
        "quoteNumberFormat": _or(body, "quoteNumberFormat", "{PREFIX}-{YEAR}-{NUMBER}"),
        "invoiceFooter": _or(body, "invoiceFooter", ""),
        "quoteFooter": _or(body, "quoteFooter", ""),
        "legalMentions": _or(body, "legalMentions", ""),
        "defaultVatRate": _or(body, "defaultVatRate", 20),
    }


def _update_ovh(tenant: Tenant, current: dict, body: dict) -> dict:
    return {
        **current,
        "ovhAppKey": _keep(body, current, "ovhAppKey"),
        "ovhAppSecret": _keep(body, current, "ovhAppSecret"),
        "ovhConsumerKey": _keep(body, current, "ovhConsumerKey"),
        "ovhEndpoint": _or(body, "ovhEndpoint", "ovh-eu"),
    }


def _update_cloudflare(tenant: Tenant, current: dict, body: dict) -> dict:
    return {**current, "cloudflareApiToken": _keep(body, current, "cloudflareApiToken")}


def _update_slack(tenant: Tenant, current: dict, body: dict) -> dict:
    return {
        **current,
        "slackEnabled": bool(body.get("slackEnabled", False)),
        "slackWebhookUrl": _or(body, "slackWebhookUrl", ""),
        "slackBotToken": _or(body, "slackBotToken", ""),
        "slackChannelId": _or(body, "slackChannelId", ""),
        "slackNotifyOnNew": body.get("slackNotifyOnNew", True) is not False,
        "slackNotifyOnReply": body.get("slackNotifyOnReply", True) is not False,
        "slackNotifyOnAssign": bool(body.get("slackNotifyOnAssign", False)),
    }


def _update_integrations(tenant: Tenant, current: dict, body: dict) -> dict:
    """Partial update: only the integration keys present in the body change."""
    updated = dict(current)
    for key, value in body.items():
        if key in INTEGRATION_KEYS:
            updated[key] = value
    return updated


_SECTION_HANDLERS = {
    "company": _update_company,
    "goals": _update_goals,
    "email": _update_email,
    "payment": _update_payment,
    "invoice": _update_invoice,
    "ovh": _update_ovh,
    "cloudflare": _update_cloudflare,
    "slack": _update_slack,
    "integrations": _update_integrations,
}

SETTINGS_SECTIONS = tuple(_SECTION_HANDLERS)


@lru_cache
def get_settings_registry() -> SettingsRegistry:
    """Process-wide registry sized from integrations.yaml."""
    from crm.backend.core.config import get_app_config

    cache_config = get_app_config().integrations.settings_cache
    return SettingsRegistry(TTLCache(maxsize=cache_config.maxsize, ttl=cache_config.ttl_seconds))
