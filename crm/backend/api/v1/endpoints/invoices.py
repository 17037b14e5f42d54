"""
Invoices API Endpoints.

``PUT /invoices/{id}`` accepts either an ``action`` shortcut (markPaid,
markSent, duplicate) or a partial update of the invoice.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from crm.backend.core.dependencies import DbSession, RequestId, StaffUser, TenantConfig
from crm.backend.core.exceptions import ValidationError
from crm.backend.core.pagination import (
    PaginationParams,
    create_paginated_response,
    get_pagination_params,
)
from crm.backend.repositories.filters import InvoiceFilter
from crm.backend.schemas.base import ApiResponse
from crm.backend.schemas.billing import (
    DueDateRequest,
    InvoiceCreate,
    InvoiceListItem,
    InvoiceResponse,
    InvoiceUpdate,
    MarkPaidRequest,
    SendEmailRequest,
)
from crm.backend.schemas.treasury import TransactionResponse
from crm.backend.services.client import ClientService
from crm.backend.services.invoice import InvoiceService
from crm.backend.services.mailer import EmailService

router = APIRouter()


@router.get("", summary="List invoices (paginated)")
async def list_invoices(
    db: DbSession,
    user: StaffUser,
    settings: TenantConfig,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
    search: str | None = Query(default=None, max_length=100),
    status: str | None = Query(default=None, description="Status, 'unpaid' or 'all'"),
    client_id: int | None = Query(default=None, alias="clientId"),
) -> dict[str, Any]:
    invoices, total = await InvoiceService(db, user.tenant_id, settings).list_invoices(
        InvoiceFilter(search=search, status=status, client_id=client_id),
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return create_paginated_response(
        items=invoices,
        item_schema=InvoiceListItem,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.get("/stats", response_model=ApiResponse[dict[str, Any]], summary="Invoice counters")
async def invoice_stats(db: DbSession, user: StaffUser, settings: TenantConfig) -> ApiResponse[dict[str, Any]]:
    stats = await InvoiceService(db, user.tenant_id, settings).stats()
    return ApiResponse(data={k: float(v) if not isinstance(v, (int, dict)) else v for k, v in stats.items()})


@router.post("", response_model=ApiResponse[InvoiceResponse], status_code=201, summary="Create an invoice")
async def create_invoice(
    data: InvoiceCreate,
    db: DbSession,
    user: StaffUser,
    settings: TenantConfig,
) -> ApiResponse[InvoiceResponse]:
    client = await ClientService(db, user.tenant_id).get(data.client_id)
    invoice = await InvoiceService(db, user.tenant_id, settings).create(
        client=client,
        items=data.items,
        issue_date=data.issue_date,
        due_date=data.due_date,
        notes=data.notes,
        discount_type=data.discount_type,
        discount_value=data.discount_value,
        status=data.status,
    )
    return ApiResponse(data=InvoiceResponse.model_validate(invoice))


@router.get("/{invoice_id}", response_model=ApiResponse[InvoiceResponse], summary="Get an invoice")
async def get_invoice(
    invoice_id: int,
    db: DbSession,
    user: StaffUser,
    settings: TenantConfig,
) -> ApiResponse[InvoiceResponse]:
    invoice = await InvoiceService(db, user.tenant_id, settings).get(invoice_id)
    return ApiResponse(data=InvoiceResponse.model_validate(invoice))


@router.put("/{invoice_id}", response_model=ApiResponse[InvoiceResponse], summary="Update an invoice")
async def update_invoice(
    invoice_id: int,
    data: InvoiceUpdate,
    db: DbSession,
    user: StaffUser,
    settings: TenantConfig,
) -> ApiResponse[InvoiceResponse]:
    service = InvoiceService(db, user.tenant_id, settings)
    invoice = await service.get(invoice_id)

    if data.action == "markPaid":
        invoice = await service.mark_paid(
            invoice, data.payment_date, data.payment_method, data.payment_notes,
        )
    elif data.action == "markSent":
        invoice = await service.mark_sent(invoice)
    elif data.action == "duplicate":
        invoice = await service.duplicate(invoice)
    else:
        changes = data.model_dump(exclude_unset=True, exclude={"action"})
        if not changes:
            raise ValidationError("Aucune modification fournie")
        invoice = await service.update(invoice, changes)
    return ApiResponse(data=InvoiceResponse.model_validate(invoice))


@router.delete("/{invoice_id}", status_code=204, summary="Delete an unpaid invoice")
async def delete_invoice(invoice_id: int, db: DbSession, user: StaffUser, settings: TenantConfig) -> None:
    service = InvoiceService(db, user.tenant_id, settings)
    await service.delete(await service.get(invoice_id))


@router.post("/{invoice_id}/send-email", response_model=ApiResponse[dict[str, Any]], summary="Email an invoice")
async def send_invoice_email(
    invoice_id: int,
    data: SendEmailRequest,
    db: DbSession,
    user: StaffUser,
    settings: TenantConfig,
) -> ApiResponse[dict[str, Any]]:
    """Send the invoice, or a payment reminder, to the client."""
    service = InvoiceService(db, user.tenant_id, settings)
    invoice = await service.get(invoice_id)
    mailer = EmailService(settings)

    if data.type == "reminder":
        if invoice.status not in ("sent", "overdue"):
            raise ValidationError("Seule une facture envoyée et impayée peut être relancée")
        recipient = await mailer.send_reminder(invoice, data.to)
    else:
        recipient = await mailer.send_invoice(invoice, data.to)
        await service.mark_sent(invoice)
    return ApiResponse(data={"sent": True, "to": recipient, "status": invoice.status})


@router.put("/{invoice_id}/due-date", response_model=ApiResponse[InvoiceResponse], summary="Move the due date")
async def update_due_date(
    invoice_id: int,
    data: DueDateRequest,
    db: DbSession,
    user: StaffUser,
    settings: TenantConfig,
) -> ApiResponse[InvoiceResponse]:
    service = InvoiceService(db, user.tenant_id, settings)
    invoice = await service.update_due_date(await service.get(invoice_id), data.due_date)
    return ApiResponse(data=InvoiceResponse.model_validate(invoice))


@router.post("/{invoice_id}/mark-paid", response_model=ApiResponse[InvoiceResponse], summary="Mark as paid")
async def mark_invoice_paid(
    invoice_id: int,
    data: MarkPaidRequest,
    db: DbSession,
    user: StaffUser,
    settings: TenantConfig,
) -> ApiResponse[InvoiceResponse]:
    service = InvoiceService(db, user.tenant_id, settings)
    invoice = await service.mark_paid(
        await service.get(invoice_id), data.payment_date, data.payment_method, data.payment_notes,
    )
    return ApiResponse(data=InvoiceResponse.model_validate(invoice))


@router.get(
    "/{invoice_id}/reconcile-suggestions",
    response_model=ApiResponse[list[TransactionResponse]],
    summary="Bank credits matching the invoice total",
)
async def reconcile_suggestions(
    invoice_id: int,
    db: DbSession,
    user: StaffUser,
    settings: TenantConfig,
) -> ApiResponse[list[TransactionResponse]]:
    service = InvoiceService(db, user.tenant_id, settings)
    transactions = await service.reconcile_suggestions(await service.get(invoice_id))
    return ApiResponse(data=[TransactionResponse.model_validate(t) for t in transactions])
