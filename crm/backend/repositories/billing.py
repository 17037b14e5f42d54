"""
Billing Repositories.

Invoices, quotes and catalogue services.
"""

from sqlalchemy import func, select

from crm.backend.models.billing import Invoice, Quote, Service
from crm.backend.repositories.base import TenantScopedRepository


class InvoiceRepository(TenantScopedRepository[Invoice]):
    model = Invoice
    not_found_message = "Facture non trouvée"

    async def get_by_number(self, number: str) -> Invoice | None:
        return await self.first(func.upper(Invoice.invoice_number) == number.strip().upper())

    async def last_number(self, prefix: str) -> str | None:
        """Highest invoice number starting with ``prefix``."""
        row = await self.first(
            Invoice.invoice_number.like(f"{prefix}%"),
            order_by=Invoice.invoice_number.desc(),
        )
        return row.invoice_number if row else None

    async def count_by_status(self) -> dict[str, int]:
        result = await self.session.execute(
            select(Invoice.status, func.count())
            .where(*self._scope_clauses())
            .group_by(Invoice.status)
        )
        return {status: count for status, count in result.all()}


class QuoteRepository(TenantScopedRepository[Quote]):
    model = Quote
    not_found_message = "Devis non trouvé"

    async def get_by_number(self, number: str) -> Quote | None:
        return await self.first(func.upper(Quote.quote_number) == number.strip().upper())

    async def last_number(self, prefix: str) -> str | None:
        row = await self.first(
            Quote.quote_number.like(f"{prefix}%"),
            order_by=Quote.quote_number.desc(),
        )
        return row.quote_number if row else None


class ServiceRepository(TenantScopedRepository[Service]):
    model = Service
    not_found_message = "Service non trouvé"

    async def list_active(self) -> list[Service]:
        return await self.find(Service.is_active.is_(True), order_by=Service.name)
