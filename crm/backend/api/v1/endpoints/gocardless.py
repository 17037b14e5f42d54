"""
GoCardless Bank Account Data Endpoints.

Linking flow: ``connect`` returns the bank's authorisation link, the bank
redirects the browser to ``callback`` which links the accounts and sends
the user back to the treasury page.
"""

from typing import Any

from fastapi import APIRouter, Query
from fastapi.responses import RedirectResponse

from crm.backend.core.config import get_app_config
from crm.backend.core.dependencies import AdminUser, DbSession, StaffUser, TenantConfig
from crm.backend.core.exceptions import ApplicationError
from crm.backend.core.logging import get_logger
from crm.backend.repositories.treasury import BankConnectionLookup
from crm.backend.schemas.base import ApiResponse
from crm.backend.schemas.treasury import (
    AccountSyncResponse,
    BankConnectionResponse,
    ConnectRequest,
)
from crm.backend.services.settings import get_settings_registry
from crm.backend.services.treasury import BankSyncService

logger = get_logger(__name__)

router = APIRouter()


def _public_url(path: str) -> str:
    config = get_app_config().application
    return f"{config.telegram.public_base_url.rstrip('/')}{path}"


def _app_page(path: str) -> str:
    return f"{get_app_config().application.app_url.rstrip('/')}{path}"


@router.get("/institutions", response_model=ApiResponse[list[dict[str, Any]]], summary="Banks of a country")
async def list_institutions(
    db: DbSession,
    user: StaffUser,
    settings: TenantConfig,
    country: str | None = Query(default=None, min_length=2, max_length=2),
) -> ApiResponse[list[dict[str, Any]]]:
    service = BankSyncService(db, user.tenant_id, settings)
    try:
        country = (country or get_app_config().integrations.gocardless.default_country).upper()
        institutions = await service.list_institutions(country)
    finally:
        await service.close()
    return ApiResponse(data=institutions)


@router.post("/connect", response_model=ApiResponse[BankConnectionResponse], summary="Start a bank authorisation")
async def connect(
    data: ConnectRequest,
    db: DbSession,
    user: AdminUser,
    settings: TenantConfig,
) -> ApiResponse[BankConnectionResponse]:
    config = get_app_config()
    service = BankSyncService(db, user.tenant_id, settings)
    try:
        connection = await service.connect(
            data.institution_id,
            data.institution_name,
            data.redirect_url or _public_url(f"{config.application.api_prefix}/gocardless/callback"),
            validity_days=config.integrations.gocardless.requisition_validity_days,
        )
    finally:
        await service.close()
    return ApiResponse(data=BankConnectionResponse.model_validate(connection))


@router.get("/callback", summary="Bank redirect after authorisation")
async def callback(db: DbSession, ref: str = Query(..., min_length=1)) -> RedirectResponse:
    """Link the authorised accounts, then redirect to the treasury page."""
    connection = await BankConnectionLookup(db).get_by_reference(ref)
    if connection is None:
        return RedirectResponse(_app_page("/treasury?error=unknown_connection"), status_code=303)

    settings = await get_settings_registry().get(db, connection.tenant_id)
    service = BankSyncService(db, connection.tenant_id, settings)
    try:
        accounts = await service.complete(ref)
    except ApplicationError as e:
        logger.warning("Bank connection failed", extra={"reference": ref, "error": e.message})
        return RedirectResponse(_app_page("/treasury?error=connection_failed"), status_code=303)
    finally:
        await service.close()
    return RedirectResponse(_app_page(f"/treasury?connected={len(accounts)}"), status_code=303)


@router.post("/sync", response_model=ApiResponse[list[AccountSyncResponse]], summary="Import transactions now")
async def sync(db: DbSession, user: StaffUser, settings: TenantConfig) -> ApiResponse[list[AccountSyncResponse]]:
    service = BankSyncService(db, user.tenant_id, settings)
    try:
        results = await service.sync(days=get_app_config().integrations.gocardless.sync_days)
    finally:
        await service.close()
    return ApiResponse(data=[
        AccountSyncResponse(
            account_id=r.account_id,
            account_name=r.account_name,
            balance=float(r.balance),
            new_transactions=len(r.new_transactions),
            error=r.error,
        )
        for r in results
    ])


@router.get("/connections", response_model=ApiResponse[list[BankConnectionResponse]], summary="Bank connections")
async def list_connections(
    db: DbSession,
    user: StaffUser,
    settings: TenantConfig,
) -> ApiResponse[list[BankConnectionResponse]]:
    connections = await BankSyncService(db, user.tenant_id, settings).list_connections()
    return ApiResponse(data=[BankConnectionResponse.model_validate(c) for c in connections])


@router.delete("/connections", status_code=204, summary="Revoke a bank connection")
async def delete_connection(
    db: DbSession,
    user: AdminUser,
    settings: TenantConfig,
    connection_id: int = Query(..., alias="id"),
) -> None:
    service = BankSyncService(db, user.tenant_id, settings)
    try:
        await service.delete_connection(connection_id)
    finally:
        await service.close()
