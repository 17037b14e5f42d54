"""
Tenant Settings API Endpoints.

``PUT /settings`` updates one section of the settings page, chosen by the
``section`` field of the body. The credential checks never store anything:
they try the submitted values, falling back to the stored ones.
"""

from typing import Any

from fastapi import APIRouter, Body

from crm.backend.core.dependencies import AdminUser, DbSession, StaffUser, TenantConfig
from crm.backend.core.exceptions import ValidationError
from crm.backend.integrations.cloudflare import verify_token
from crm.backend.integrations.ovh import OvhClient
from crm.backend.schemas.base import ApiResponse
from crm.backend.services.mailer import EmailService
from crm.backend.services.settings import get_settings_registry

router = APIRouter()


@router.get("", response_model=ApiResponse[dict[str, Any]], summary="Tenant identity and settings")
async def get_settings(db: DbSession, user: StaffUser) -> ApiResponse[dict[str, Any]]:
    payload = await get_settings_registry().get_tenant_payload(db, user.tenant_id, include_secrets=user.is_admin)
    return ApiResponse(data=payload)


@router.put("", response_model=ApiResponse[dict[str, Any]], summary="Update one settings section")
async def update_settings(
    db: DbSession,
    user: AdminUser,
    body: dict[str, Any] = Body(...),
) -> ApiResponse[dict[str, Any]]:
    section = body.get("section")
    if not section:
        raise ValidationError("Section requise")
    settings = await get_settings_registry().update_section(db, user.tenant_id, section, body)
    return ApiResponse(data=settings.public_dict())


@router.post("/smtp/test", response_model=ApiResponse[dict[str, Any]], summary="Send a test email")
async def test_smtp(
    user: AdminUser,
    settings: TenantConfig,
    body: dict[str, Any] | None = Body(default=None),
) -> ApiResponse[dict[str, Any]]:
    body = body or {}
    to = body.get("to") or user.email
    service = EmailService(settings)
    if body.get("all"):
        count = await service.send_all_tests(to)
        return ApiResponse(data={"sent": True, "to": to, "count": count})
    await service.send_test(to)
    return ApiResponse(data={"sent": True, "to": to, "count": 1})


@router.post("/ovh/test", response_model=ApiResponse[dict[str, Any]], summary="Check OVH credentials")
async def test_ovh(
    user: AdminUser,
    settings: TenantConfig,
    body: dict[str, Any] | None = Body(default=None),
) -> ApiResponse[dict[str, Any]]:
    body = body or {}
    async with OvhClient(
        body.get("ovhAppKey") or settings.ovh_app_key,
        body.get("ovhAppSecret") or settings.ovh_app_secret,
        body.get("ovhConsumerKey") or settings.ovh_consumer_key,
        body.get("ovhEndpoint") or settings.ovh_endpoint,
    ) as client:
        account = await client.verify()
    return ApiResponse(data={"valid": True, **account})


@router.post("/cloudflare/test", response_model=ApiResponse[dict[str, Any]], summary="Check a Cloudflare token")
async def test_cloudflare(
    user: AdminUser,
    settings: TenantConfig,
    body: dict[str, Any] | None = Body(default=None),
) -> ApiResponse[dict[str, Any]]:
    body = body or {}
    token = await verify_token(body.get("cloudflareApiToken") or settings.cloudflare_api_token)
    return ApiResponse(data={"valid": True, **token})
