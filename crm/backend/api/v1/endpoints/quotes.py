"""
Quotes API Endpoints.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from crm.backend.core.dependencies import DbSession, RequestId, StaffUser, TenantConfig
from crm.backend.core.pagination import (
    PaginationParams,
    create_paginated_response,
    get_pagination_params,
)
from crm.backend.repositories.filters import QuoteFilter
from crm.backend.schemas.base import ApiResponse
from crm.backend.schemas.billing import InvoiceResponse, QuoteCreate, QuoteListItem, QuoteResponse
from crm.backend.services.client import ClientService
from crm.backend.services.quote import QuoteService

router = APIRouter()


@router.get("", summary="List quotes (paginated)")
async def list_quotes(
    db: DbSession,
    user: StaffUser,
    settings: TenantConfig,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
    search: str | None = Query(default=None, max_length=100),
    status: str | None = Query(default=None),
    client_id: int | None = Query(default=None, alias="clientId"),
) -> dict[str, Any]:
    quotes, total = await QuoteService(db, user.tenant_id, settings).list_quotes(
        QuoteFilter(search=search, status=status, client_id=client_id),
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return create_paginated_response(
        items=quotes,
        item_schema=QuoteListItem,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.post("", response_model=ApiResponse[QuoteResponse], status_code=201, summary="Create a quote")
async def create_quote(
    data: QuoteCreate,
    db: DbSession,
    user: StaffUser,
    settings: TenantConfig,
) -> ApiResponse[QuoteResponse]:
    client = await ClientService(db, user.tenant_id).get(data.client_id)
    quote = await QuoteService(db, user.tenant_id, settings).create(
        client=client,
        items=data.items,
        issue_date=data.issue_date,
        valid_until=data.valid_until,
        notes=data.notes,
        discount_type=data.discount_type,
        discount_value=data.discount_value,
    )
    return ApiResponse(data=QuoteResponse.model_validate(quote))


@router.get("/{quote_id}", response_model=ApiResponse[QuoteResponse], summary="Get a quote")
async def get_quote(quote_id: int, db: DbSession, user: StaffUser, settings: TenantConfig) -> ApiResponse[QuoteResponse]:
    quote = await QuoteService(db, user.tenant_id, settings).get(quote_id)
    return ApiResponse(data=QuoteResponse.model_validate(quote))


@router.post(
    "/{quote_id}/convert",
    response_model=ApiResponse[InvoiceResponse],
    status_code=201,
    summary="Convert a quote into an invoice",
    description="A quote can only be converted once; a second call returns 409.",
)
async def convert_quote(
    quote_id: int,
    db: DbSession,
    user: StaffUser,
    settings: TenantConfig,
) -> ApiResponse[InvoiceResponse]:
    service = QuoteService(db, user.tenant_id, settings)
    invoice = await service.convert_to_invoice(await service.get(quote_id))
    return ApiResponse(data=InvoiceResponse.model_validate(invoice))
