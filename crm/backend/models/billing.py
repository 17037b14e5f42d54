"""
Billing Models.

Catalogue services, invoices and quotes with their line items. Amounts are
stored exclusive of tax (``_ht``) and inclusive of tax (``_ttc``).
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.backend.models.base import (
    ZERO,
    Base,
    BigId,
    IdMixin,
    Money,
    Quantity,
    TenantMixin,
    TimestampMixin,
)
from crm.backend.models.client import Client

INVOICE_STATUSES = ("draft", "sent", "paid", "overdue", "cancelled")
QUOTE_STATUSES = ("draft", "sent", "accepted", "rejected", "expired")
UNPAID_INVOICE_STATUSES = ("sent", "overdue")


class Service(IdMixin, TenantMixin, TimestampMixin, Base):
    """Catalogue item that can be copied onto a document line."""

    __tablename__ = "services"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    unit_price_ht: Mapped[Decimal] = mapped_column(Money, default=ZERO, nullable=False)
    vat_rate: Mapped[Decimal] = mapped_column(Money, default=Decimal("20"), nullable=False)
    unit: Mapped[str] = mapped_column(String(30), default="unité", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class _LineItemColumns:
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Quantity, default=Decimal("1"), nullable=False)
    unit: Mapped[str | None] = mapped_column(String(30))
    unit_price_ht: Mapped[Decimal] = mapped_column(Money, default=ZERO, nullable=False)
    vat_rate: Mapped[Decimal] = mapped_column(Money, default=Decimal("20"), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Money, default=ZERO, nullable=False)
    total_ht: Mapped[Decimal] = mapped_column(Money, default=ZERO, nullable=False)
    total_ttc: Mapped[Decimal] = mapped_column(Money, default=ZERO, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    service_id: Mapped[int | None] = mapped_column(
        BigId, ForeignKey("services.id", ondelete="SET NULL"),
    )


class _DocumentColumns:
    status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False, index=True)
    issue_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    subtotal_ht: Mapped[Decimal] = mapped_column(Money, default=ZERO, nullable=False)
    discount_type: Mapped[str | None] = mapped_column(String(20))
    discount_value: Mapped[Decimal] = mapped_column(Money, default=ZERO, nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Money, default=ZERO, nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Money, default=ZERO, nullable=False)
    total_ttc: Mapped[Decimal] = mapped_column(Money, default=ZERO, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime)
    client_id: Mapped[int] = mapped_column(
        BigId, ForeignKey("clients.id", ondelete="RESTRICT"), index=True, nullable=False,
    )


class Invoice(IdMixin, TenantMixin, TimestampMixin, _DocumentColumns, Base):
    """Invoice database model."""

    __tablename__ = "invoices"
    __table_args__ = (UniqueConstraint("tenant_id", "invoice_number"),)

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    due_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    payment_date: Mapped[datetime | None] = mapped_column(DateTime)
    payment_method: Mapped[str | None] = mapped_column(String(50))
    payment_notes: Mapped[str | None] = mapped_column(Text)

    client: Mapped[Client] = relationship(lazy="selectin")
    items: Mapped[list["InvoiceItem"]] = relationship(
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.sort_order",
    )

    def __repr__(self) -> str:
        return f"<Invoice(id={self.id}, number={self.invoice_number!r}, status={self.status!r})>"


class InvoiceItem(IdMixin, _LineItemColumns, Base):
    """Invoice line."""

    __tablename__ = "invoice_items"

    invoice_id: Mapped[int] = mapped_column(
        BigId, ForeignKey("invoices.id", ondelete="CASCADE"), index=True, nullable=False,
    )


class Quote(IdMixin, TenantMixin, TimestampMixin, _DocumentColumns, Base):
    """
    Quote database model.

    ``invoice_id`` references the single invoice produced by conversion.
    """

    __tablename__ = "quotes"
    __table_args__ = (UniqueConstraint("tenant_id", "quote_number"),)

    quote_number: Mapped[str] = mapped_column(String(50), nullable=False)
    valid_until: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime)
    invoice_id: Mapped[int | None] = mapped_column(
        BigId, ForeignKey("invoices.id", ondelete="SET NULL"),
    )

    client: Mapped[Client] = relationship(lazy="selectin")
    items: Mapped[list["QuoteItem"]] = relationship(
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="QuoteItem.sort_order",
    )

    def __repr__(self) -> str:
        return f"<Quote(id={self.id}, number={self.quote_number!r}, status={self.status!r})>"


class QuoteItem(IdMixin, _LineItemColumns, Base):
    """Quote line."""

    __tablename__ = "quote_items"

    quote_id: Mapped[int] = mapped_column(
        BigId, ForeignKey("quotes.id", ondelete="CASCADE"), index=True, nullable=False,
    )
