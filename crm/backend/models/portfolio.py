"""
Client Portfolio Models.

Recurring subscriptions, managed domain names and contracts.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.backend.models.base import ZERO, Base, BigId, IdMixin, Money, TenantMixin, TimestampMixin
from crm.backend.models.client import Client

BILLING_CYCLES = ("monthly", "quarterly", "yearly")


class Subscription(IdMixin, TenantMixin, TimestampMixin, Base):
    """Recurring billed service."""

    __tablename__ = "subscriptions"

    client_id: Mapped[int] = mapped_column(
        BigId, ForeignKey("clients.id", ondelete="CASCADE"), index=True, nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    amount_ht: Mapped[Decimal] = mapped_column(Money, default=ZERO, nullable=False)
    billing_cycle: Mapped[str] = mapped_column(String(20), default="monthly", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    next_billing_date: Mapped[datetime | None] = mapped_column(DateTime)

    client: Mapped[Client] = relationship(lazy="selectin")

    @property
    def monthly_amount(self) -> Decimal:
        """Amount normalised to one month."""
        divisor = {"monthly": 1, "quarterly": 3, "yearly": 12}.get(self.billing_cycle, 1)
        return self.amount_ht / divisor


class Domain(IdMixin, TenantMixin, TimestampMixin, Base):
    """Domain name managed for a client."""

    __tablename__ = "domains"

    client_id: Mapped[int | None] = mapped_column(
        BigId, ForeignKey("clients.id", ondelete="SET NULL"), index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    registrar: Mapped[str | None] = mapped_column(String(100))
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, index=True)
    auto_renew: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)

    client: Mapped[Client | None] = relationship(lazy="selectin")


class Contract(IdMixin, TenantMixin, TimestampMixin, Base):
    """Contract signed (or to be signed) by a client."""

    __tablename__ = "contracts"

    client_id: Mapped[int] = mapped_column(
        BigId, ForeignKey("clients.id", ondelete="CASCADE"), index=True, nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False)
    amount: Mapped[Decimal | None] = mapped_column(Money)
    start_date: Mapped[datetime | None] = mapped_column(DateTime)
    end_date: Mapped[datetime | None] = mapped_column(DateTime)
    signed_at: Mapped[datetime | None] = mapped_column(DateTime)

    client: Mapped[Client] = relationship(lazy="selectin")
