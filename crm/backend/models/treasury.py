"""
Treasury Models.

Bank accounts are either entered by hand (``provider='manual'``) or linked
through a GoCardless requisition (BankConnection) and synchronised.
Transaction amounts are signed: credits positive, debits negative.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.backend.models.base import ZERO, Base, BigId, IdMixin, Money, TenantMixin, TimestampMixin


class BankConnection(IdMixin, TenantMixin, TimestampMixin, Base):
    """GoCardless requisition linking one institution."""

    __tablename__ = "bank_connections"

    requisition_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    institution_id: Mapped[str] = mapped_column(String(100), nullable=False)
    institution_name: Mapped[str | None] = mapped_column(String(255))
    reference: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    link: Mapped[str | None] = mapped_column(Text)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime)


class BankAccount(IdMixin, TenantMixin, TimestampMixin, Base):
    """Bank account database model."""

    __tablename__ = "bank_accounts"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    bank_name: Mapped[str | None] = mapped_column(String(255))
    iban: Mapped[str | None] = mapped_column(String(50))
    currency: Mapped[str] = mapped_column(String(3), default="EUR", nullable=False)
    balance: Mapped[Decimal] = mapped_column(Money, default=ZERO, nullable=False)
    provider: Mapped[str] = mapped_column(String(20), default="manual", nullable=False)
    external_id: Mapped[str | None] = mapped_column(String(100), index=True)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime)
    connection_id: Mapped[int | None] = mapped_column(
        BigId, ForeignKey("bank_connections.id", ondelete="SET NULL"),
    )


class BankTransaction(IdMixin, TenantMixin, TimestampMixin, Base):
    """Bank transaction database model."""

    __tablename__ = "bank_transactions"
    __table_args__ = (UniqueConstraint("account_id", "external_id"),)

    account_id: Mapped[int] = mapped_column(
        BigId, ForeignKey("bank_accounts.id", ondelete="CASCADE"), index=True, nullable=False,
    )
    external_id: Mapped[str | None] = mapped_column(String(100))
    transaction_date: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    label: Mapped[str] = mapped_column(Text, nullable=False)
    counterparty: Mapped[str | None] = mapped_column(String(255))
    category: Mapped[str | None] = mapped_column(String(100))
    is_reconciled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    invoice_id: Mapped[int | None] = mapped_column(
        BigId, ForeignKey("invoices.id", ondelete="SET NULL"), index=True,
    )

    account: Mapped[BankAccount] = relationship(lazy="selectin")
