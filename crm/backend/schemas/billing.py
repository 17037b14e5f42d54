"""
Invoice and Quote Schemas.

Line items are accepted as loose mappings (camelCase or snake_case keys);
the billing service validates and prices them.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import Field

from crm.backend.schemas.base import CamelModel
from crm.backend.schemas.client import ClientSummary

InvoiceAction = Literal["markPaid", "markSent", "duplicate"]


class LineItemResponse(CamelModel):
    id: int
    description: str
    quantity: float
    unit: str | None
    unit_price_ht: float
    vat_rate: float
    total_ht: float
    tax_amount: float
    total_ttc: float


class _DocumentResponse(CamelModel):
    id: int
    status: str
    client_id: int
    client: ClientSummary
    issue_date: datetime
    subtotal_ht: float
    discount_type: str | None
    discount_value: float
    discount_amount: float
    tax_amount: float
    total_ttc: float
    notes: str | None
    sent_at: datetime | None
    created_at: datetime


# =============================================================================
# Invoices
# =============================================================================


class InvoiceCreate(CamelModel):
    client_id: int
    items: list[dict[str, Any]] = Field(min_length=1)
    issue_date: datetime | None = None
    due_date: datetime | None = None
    notes: str | None = None
    discount_type: Literal["percentage", "fixed"] | None = None
    discount_value: float | None = None
    status: Literal["draft", "sent"] = "draft"


class InvoiceUpdate(CamelModel):
    """Either an ``action`` shortcut or a partial update."""

    action: InvoiceAction | None = None
    items: list[dict[str, Any]] | None = None
    issue_date: datetime | None = None
    due_date: datetime | None = None
    notes: str | None = None
    status: str | None = None
    discount_type: Literal["percentage", "fixed"] | None = None
    discount_value: float | None = None
    payment_date: datetime | None = None
    payment_method: str | None = None
    payment_notes: str | None = None


class MarkPaidRequest(CamelModel):
    payment_date: datetime | None = None
    payment_method: str | None = None
    payment_notes: str | None = None


class DueDateRequest(CamelModel):
    due_date: datetime


class SendEmailRequest(CamelModel):
    to: str | None = None
    type: Literal["invoice", "reminder"] = "invoice"


class InvoiceListItem(_DocumentResponse):
    invoice_number: str
    due_date: datetime
    payment_date: datetime | None


class InvoiceResponse(InvoiceListItem):
    payment_method: str | None
    payment_notes: str | None
    items: list[LineItemResponse]


# =============================================================================
# Quotes
# =============================================================================


class QuoteCreate(CamelModel):
    client_id: int
    items: list[dict[str, Any]] = Field(min_length=1)
    issue_date: datetime | None = None
    valid_until: datetime | None = None
    notes: str | None = None
    discount_type: Literal["percentage", "fixed"] | None = None
    discount_value: float | None = None


class QuoteListItem(_DocumentResponse):
    quote_number: str
    valid_until: datetime
    accepted_at: datetime | None
    invoice_id: int | None


class QuoteResponse(QuoteListItem):
    items: list[LineItemResponse]
