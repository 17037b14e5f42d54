"""
Quote Service.

Quotes share pricing and numbering with invoices. An accepted quote can be
converted into exactly one invoice.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.exceptions import ConflictError, NotFoundError, ValidationError
from crm.backend.core.utils import utc_now
from crm.backend.models.billing import QUOTE_STATUSES, Invoice, Quote, QuoteItem
from crm.backend.models.client import Client
from crm.backend.repositories.billing import QuoteRepository
from crm.backend.repositories.filters import QuoteFilter
from crm.backend.services.base import BaseService
from crm.backend.services.billing import (
    LineItemInput,
    apply_discount,
    build_line_rows,
    compute_line_totals,
    document_number_stem,
    items_from_rows,
    next_document_number,
    to_decimal,
)
from crm.backend.services.invoice import InvoiceService
from crm.backend.services.settings import TenantSettings


class QuoteService(BaseService):
    def __init__(
        self,
        session: AsyncSession,
        tenant_id: int,
        settings: TenantSettings | None = None,
    ) -> None:
        super().__init__(session, tenant_id)
        self.settings = settings or TenantSettings()
        self.repo = QuoteRepository(session, tenant_id)

    async def get(self, quote_id: int) -> Quote:
        return await self.repo.get_by_id(quote_id)

    async def resolve(
        self,
        quote_id: int | None = None,
        quote_number: str | None = None,
    ) -> Quote:
        if quote_id is not None:
            return await self.repo.get_by_id(quote_id)
        if quote_number:
            quote = await self.repo.get_by_number(quote_number)
            if quote is None:
                raise NotFoundError(f"Devis non trouvé: {quote_number}")
            return quote
        raise ValidationError("quoteId ou quoteNumber requis")

    async def list_quotes(
        self,
        filters: QuoteFilter | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Quote], int]:
        clauses = (filters or QuoteFilter()).clauses()
        items = await self.repo.find(
            *clauses,
            order_by=[Quote.issue_date.desc(), Quote.id.desc()],
            limit=limit,
            offset=offset,
        )
        return items, await self.repo.count(*clauses)

    async def _next_number(self, year: int) -> str:
        prefix = self.settings.quote_prefix
        number_format = self.settings.quote_number_format
        head, _ = document_number_stem(prefix, year, number_format)
        last = await self.repo.last_number(head)
        return next_document_number(
            last, prefix, year, number_format, minimum=self.settings.next_quote_number,
        )

    async def create(
        self,
        client: Client,
        items: Iterable[LineItemInput | Mapping[str, Any]],
        issue_date: datetime | None = None,
        valid_until: datetime | None = None,
        notes: str | None = None,
        discount_type: str | None = None,
        discount_value: Any = None,
    ) -> Quote:
        """Create a draft quote valid for the tenant's quote validity period."""
        totals = compute_line_totals(items, Decimal(str(self.settings.default_vat_rate)))
        if not totals.lines:
            raise ValidationError("Le devis doit contenir au moins une ligne")
        discount = to_decimal(discount_value, "remise") if discount_value not in (None, "") else None
        document = apply_discount(totals, discount_type, discount)

        issue_date = issue_date or utc_now()
        valid_until = valid_until or issue_date + timedelta(days=self.settings.quote_validity_days)
        number = await self._next_number(issue_date.year)
        quote = await self._execute_db_operation(
            "create_quote",
            self.repo.create(
                quote_number=number,
                client=client,
                status="draft",
                issue_date=issue_date,
                valid_until=valid_until,
                subtotal_ht=document.subtotal_ht,
                discount_type=discount_type if document.discount_amount else None,
                discount_value=discount or Decimal("0"),
                discount_amount=document.discount_amount,
                tax_amount=document.tax_amount,
                total_ttc=document.total_ttc,
                notes=notes,
                items=build_line_rows(totals, QuoteItem),
            ),
        )
        self._log_operation(
            "Quote created",
            quote_id=quote.id,
            number=number,
            total_ttc=str(quote.total_ttc),
        )
        return quote

    async def update_status(self, quote: Quote, status: str) -> Quote:
        if status not in QUOTE_STATUSES:
            raise ValidationError(f"Statut de devis invalide: {status}")
        quote.status = status
        if status == "sent" and quote.sent_at is None:
            quote.sent_at = utc_now()
        if status == "accepted" and quote.accepted_at is None:
            quote.accepted_at = utc_now()
        await self.session.flush()
        self._log_operation("Quote status updated", quote_id=quote.id, status=status)
        return quote

    async def convert_to_invoice(self, quote: Quote, invoices: InvoiceService | None = None) -> Invoice:
        """
        Create the invoice for a quote and link it back.

        Raises:
            ConflictError: If the quote was already converted
        """
        if quote.invoice_id is not None:
            raise ConflictError("Ce devis a déjà été converti en facture")
        if quote.status in ("rejected", "expired"):
            raise ConflictError("Un devis refusé ou expiré ne peut pas être converti")

        invoices = invoices or InvoiceService(self.session, self.tenant_id, self.settings)
        invoice = await invoices.create(
            client=quote.client,
            items=items_from_rows(quote.items),
            notes=quote.notes,
            discount_type=quote.discount_type,
            discount_value=quote.discount_value,
        )
        quote.invoice_id = invoice.id
        quote.status = "accepted"
        if quote.accepted_at is None:
            quote.accepted_at = utc_now()
        await self.session.flush()
        self._log_operation(
            "Quote converted",
            quote_id=quote.id,
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
        )
        return invoice
