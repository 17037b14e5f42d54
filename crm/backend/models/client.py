"""
Client Model.
"""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from crm.backend.models.base import Base, IdMixin, TenantMixin, TimestampMixin

CLIENT_STATUSES = ("prospect", "active", "inactive")


class Client(IdMixin, TenantMixin, TimestampMixin, Base):
    """
    Client database model.

    ``status`` moves from prospect to active when the first invoice is
    issued; inactive is set by hand.
    """

    __tablename__ = "clients"

    company_name: Mapped[str | None] = mapped_column(String(255), index=True)
    first_name: Mapped[str | None] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100), index=True)
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(50))
    address: Mapped[str | None] = mapped_column(Text)
    postal_code: Mapped[str | None] = mapped_column(String(20))
    city: Mapped[str | None] = mapped_column(String(100))
    country: Mapped[str] = mapped_column(String(100), default="France", nullable=False)
    siret: Mapped[str | None] = mapped_column(String(20))
    vat_number: Mapped[str | None] = mapped_column(String(30))
    status: Mapped[str] = mapped_column(String(20), default="prospect", nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    @property
    def display_name(self) -> str:
        """Company name, else the contact's full name."""
        if self.company_name:
            return self.company_name
        full = " ".join(p for p in (self.first_name, self.last_name) if p)
        return full or f"Client #{self.id}"

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name={self.display_name!r})>"
