"""
Invoice Service.

Invoice lifecycle: creation with numbering and pricing, updates, sending,
payment, duplication, and bank reconciliation suggestions.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.exceptions import ConflictError, NotFoundError, ValidationError
from crm.backend.core.utils import utc_now
from crm.backend.models.billing import (
    INVOICE_STATUSES,
    UNPAID_INVOICE_STATUSES,
    Invoice,
    InvoiceItem,
)
from crm.backend.models.client import Client
from crm.backend.models.treasury import BankTransaction
from crm.backend.repositories.billing import InvoiceRepository
from crm.backend.repositories.filters import InvoiceFilter
from crm.backend.repositories.treasury import BankTransactionRepository
from crm.backend.services.base import BaseService
from crm.backend.services.billing import (
    CENT,
    LineItemInput,
    apply_discount,
    build_line_rows,
    compute_line_totals,
    document_number_stem,
    items_from_rows,
    next_document_number,
    to_decimal,
)
from crm.backend.services.client import ClientService
from crm.backend.services.settings import TenantSettings

LineItems = Iterable[LineItemInput | Mapping[str, Any]]


class InvoiceService(BaseService):
    def __init__(
        self,
        session: AsyncSession,
        tenant_id: int,
        settings: TenantSettings | None = None,
    ) -> None:
        super().__init__(session, tenant_id)
        self.settings = settings or TenantSettings()
        self.repo = InvoiceRepository(session, tenant_id)

    @property
    def default_vat_rate(self) -> Decimal:
        return Decimal(str(self.settings.default_vat_rate))

    async def get(self, invoice_id: int) -> Invoice:
        return await self.repo.get_by_id(invoice_id)

    async def resolve(
        self,
        invoice_id: int | None = None,
        invoice_number: str | None = None,
    ) -> Invoice:
        if invoice_id is not None:
            return await self.repo.get_by_id(invoice_id)
        if invoice_number:
            invoice = await self.repo.get_by_number(invoice_number)
            if invoice is None:
                raise NotFoundError(f"Facture non trouvée: {invoice_number}")
            return invoice
        raise ValidationError("invoiceId ou invoiceNumber requis")

    async def list_invoices(
        self,
        filters: InvoiceFilter | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Invoice], int]:
        clauses = (filters or InvoiceFilter()).clauses()
        items = await self.repo.find(
            *clauses,
            order_by=[Invoice.issue_date.desc(), Invoice.id.desc()],
            limit=limit,
            offset=offset,
        )
        return items, await self.repo.count(*clauses)

    async def list_unpaid(self, client_id: int | None = None) -> list[Invoice]:
        """Invoices sent but not paid yet (status sent or overdue)."""
        return await self.repo.find(
            *InvoiceFilter(status="unpaid", client_id=client_id).clauses(),
            order_by=Invoice.due_date,
        )

    async def list_overdue(self, now: datetime | None = None) -> list[Invoice]:
        now = now or utc_now()
        return await self.repo.find(
            Invoice.status.in_(UNPAID_INVOICE_STATUSES),
            Invoice.due_date < now,
            order_by=Invoice.due_date,
        )

    async def stats(self, now: datetime | None = None) -> dict[str, Any]:
        """Counters shown above the invoice list."""
        now = now or utc_now()
        year_start = datetime(now.year, 1, 1)
        counts = await self.repo.count_by_status()
        unpaid = Invoice.status.in_(UNPAID_INVOICE_STATUSES)
        return {
            "total": sum(counts.values()),
            "byStatus": {status: counts.get(status, 0) for status in INVOICE_STATUSES},
            "paidThisYear": await self.repo.sum(
                Invoice.total_ttc, Invoice.status == "paid", Invoice.payment_date >= year_start,
            ),
            "pendingAmount": await self.repo.sum(Invoice.total_ttc, unpaid),
            "overdueAmount": await self.repo.sum(Invoice.total_ttc, unpaid, Invoice.due_date < now),
        }

    async def _next_number(self, year: int) -> str:
        prefix = self.settings.invoice_prefix
        number_format = self.settings.invoice_number_format
        head, _ = document_number_stem(prefix, year, number_format)
        last = await self.repo.last_number(head)
        return next_document_number(
            last, prefix, year, number_format, minimum=self.settings.next_invoice_number,
        )

    async def create(
        self,
        client: Client,
        items: LineItems,
        issue_date: datetime | None = None,
        due_date: datetime | None = None,
        notes: str | None = None,
        discount_type: str | None = None,
        discount_value: Any = None,
        status: str = "draft",
    ) -> Invoice:
        """
        Create an invoice for ``client``.

        The due date defaults to the issue date plus the tenant's payment
        terms. Invoicing a prospect promotes it to an active client.
        """
        if status not in INVOICE_STATUSES:
            raise ValidationError(f"Statut de facture invalide: {status}")
        totals = compute_line_totals(items, self.default_vat_rate)
        if not totals.lines:
            raise ValidationError("La facture doit contenir au moins une ligne")
        discount = to_decimal(discount_value, "remise") if discount_value not in (None, "") else None
        document = apply_discount(totals, discount_type, discount)

        issue_date = issue_date or utc_now()
        due_date = due_date or issue_date + timedelta(days=self.settings.payment_terms)
        if due_date < issue_date:
            raise ValidationError("La date d'échéance précède la date d'émission")

        number = await self._next_number(issue_date.year)
        invoice = await self._execute_db_operation(
            "create_invoice",
            self.repo.create(
                invoice_number=number,
                client=client,
                status=status,
                issue_date=issue_date,
                due_date=due_date,
                subtotal_ht=document.subtotal_ht,
                discount_type=discount_type if document.discount_amount else None,
                discount_value=discount or Decimal("0"),
                discount_amount=document.discount_amount,
                tax_amount=document.tax_amount,
                total_ttc=document.total_ttc,
                notes=notes,
                sent_at=utc_now() if status == "sent" else None,
                items=build_line_rows(totals, InvoiceItem),
            ),
        )
        await ClientService(self.session, self.tenant_id).activate_if_prospect(client)
        self._log_operation(
            "Invoice created",
            invoice_id=invoice.id,
            number=number,
            total_ttc=str(invoice.total_ttc),
        )
        return invoice

    async def update(self, invoice: Invoice, data: dict[str, Any]) -> Invoice:
        """
        Update header fields and, when ``items`` is given, replace the lines.

        Paid invoices are frozen.
        """
        if invoice.status == "paid" and (data.get("items") is not None or "discount_value" in data):
            raise ConflictError("Une facture payée ne peut pas être modifiée")

        for field in ("notes", "issue_date", "due_date", "payment_method", "payment_notes"):
            if field in data:
                setattr(invoice, field, data[field])
        if "status" in data and data["status"] is not None:
            if data["status"] not in INVOICE_STATUSES:
                raise ValidationError(f"Statut de facture invalide: {data['status']}")
            invoice.status = data["status"]

        items = data.get("items")
        discount_type = data.get("discount_type", invoice.discount_type)
        raw_discount = data.get("discount_value", invoice.discount_value)
        if items is not None or "discount_value" in data or "discount_type" in data:
            source = items if items is not None else items_from_rows(invoice.items)
            totals = compute_line_totals(source, self.default_vat_rate)
            if not totals.lines:
                raise ValidationError("La facture doit contenir au moins une ligne")
            discount = to_decimal(raw_discount, "remise") if raw_discount not in (None, "") else Decimal("0")
            document = apply_discount(totals, discount_type, discount)
            if items is not None:
                invoice.items = build_line_rows(totals, InvoiceItem)
            invoice.subtotal_ht = document.subtotal_ht
            invoice.discount_type = discount_type if document.discount_amount else None
            invoice.discount_value = discount
            invoice.discount_amount = document.discount_amount
            invoice.tax_amount = document.tax_amount
            invoice.total_ttc = document.total_ttc

        await self._execute_db_operation("update_invoice", self.session.flush())
        await self.session.refresh(invoice)
        self._log_operation("Invoice updated", invoice_id=invoice.id, fields=sorted(data))
        return invoice

    async def mark_paid(
        self,
        invoice: Invoice,
        payment_date: datetime | None = None,
        payment_method: str | None = None,
        payment_notes: str | None = None,
    ) -> Invoice:
        if invoice.status == "cancelled":
            raise ConflictError("Une facture annulée ne peut pas être payée")
        if invoice.status == "paid":
            raise ConflictError(
                "Facture déjà payée",
                details={"paymentDate": invoice.payment_date.isoformat() if invoice.payment_date else None},
            )
        invoice.status = "paid"
        invoice.payment_date = payment_date or utc_now()
        if payment_method:
            invoice.payment_method = payment_method
        if payment_notes:
            invoice.payment_notes = payment_notes
        await self.session.flush()
        self._log_operation("Invoice marked paid", invoice_id=invoice.id, method=payment_method)
        return invoice

    async def mark_sent(self, invoice: Invoice) -> Invoice:
        if invoice.status in ("draft", "sent", "overdue"):
            if invoice.status == "draft":
                invoice.status = "sent"
            invoice.sent_at = utc_now()
            await self.session.flush()
            self._log_operation("Invoice marked sent", invoice_id=invoice.id)
        return invoice

    async def update_due_date(self, invoice: Invoice, due_date: datetime) -> Invoice:
        """Move the due date; an overdue invoice due in the future is sent again."""
        if due_date < invoice.issue_date:
            raise ValidationError("La date d'échéance précède la date d'émission")
        invoice.due_date = due_date
        if invoice.status == "overdue" and due_date > utc_now():
            invoice.status = "sent"
        await self.session.flush()
        self._log_operation("Invoice due date updated", invoice_id=invoice.id)
        return invoice

    async def duplicate(self, invoice: Invoice) -> Invoice:
        """Copy an invoice as a new draft dated today."""
        copy = await self.create(
            client=invoice.client,
            items=items_from_rows(invoice.items),
            notes=invoice.notes,
            discount_type=invoice.discount_type,
            discount_value=invoice.discount_value,
        )
        self._log_operation("Invoice duplicated", source_id=invoice.id, invoice_id=copy.id)
        return copy

    async def delete(self, invoice: Invoice) -> None:
        if invoice.status == "paid":
            raise ConflictError("Une facture payée ne peut pas être supprimée")
        await self._execute_db_operation("delete_invoice", self.repo.delete(invoice.id))
        self._log_operation("Invoice deleted", invoice_id=invoice.id)

    async def reconcile_suggestions(self, invoice: Invoice, limit: int = 5) -> list[BankTransaction]:
        """
        Unreconciled credits whose amount matches the invoice total.

        Transactions mentioning the invoice number come first.
        """
        transactions = await BankTransactionRepository(self.session, self.tenant_id).find(
            BankTransaction.is_reconciled.is_(False),
            BankTransaction.amount > 0,
            BankTransaction.amount >= invoice.total_ttc - CENT,
            BankTransaction.amount <= invoice.total_ttc + CENT,
            order_by=BankTransaction.transaction_date.desc(),
        )
        number = invoice.invoice_number.lower()
        transactions.sort(key=lambda t: number not in (t.label or "").lower())
        return transactions[:limit]
