"""
Support Ticket Models.
"""

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.backend.models.base import Base, BigId, IdMixin, TenantMixin, TimestampMixin
from crm.backend.models.client import Client

TICKET_STATUSES = ("open", "pending", "resolved", "closed")
TICKET_PRIORITIES = ("low", "medium", "high", "urgent")


class Ticket(IdMixin, TenantMixin, TimestampMixin, Base):
    """Ticket database model."""

    __tablename__ = "tickets"
    __table_args__ = (UniqueConstraint("tenant_id", "ticket_number"),)

    ticket_number: Mapped[str] = mapped_column(String(30), nullable=False)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="open", nullable=False, index=True)
    priority: Mapped[str] = mapped_column(String(10), default="medium", nullable=False)
    client_id: Mapped[int | None] = mapped_column(
        BigId, ForeignKey("clients.id", ondelete="SET NULL"),
    )

    client: Mapped[Client | None] = relationship(lazy="selectin")
    messages: Mapped[list["TicketMessage"]] = relationship(
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="TicketMessage.id",
    )


class TicketMessage(IdMixin, TimestampMixin, Base):
    """Message posted on a ticket."""

    __tablename__ = "ticket_messages"

    ticket_id: Mapped[int] = mapped_column(
        BigId, ForeignKey("tickets.id", ondelete="CASCADE"), index=True, nullable=False,
    )
    author_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(default=False, nullable=False)
