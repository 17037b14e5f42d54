"""
Note Models.

Notes are free text (``type='note'``) or to-dos (``type='todo'``) with an
optional reminder. A note is attached to at most one entity through
NoteEntityLink.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.backend.models.base import Base, BigId, IdMixin, TenantMixin, TimestampMixin

NOTE_TYPES = ("note", "todo")


class Note(IdMixin, TenantMixin, TimestampMixin, Base):
    """Note database model."""

    __tablename__ = "notes"

    content: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(10), default="note", nullable=False)
    reminder_at: Mapped[datetime | None] = mapped_column(DateTime, index=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    user_id: Mapped[int | None] = mapped_column(
        BigId, ForeignKey("users.id", ondelete="SET NULL"),
    )

    links: Mapped[list["NoteEntityLink"]] = relationship(
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, type={self.type!r})>"


class NoteEntityLink(IdMixin, Base):
    """Polymorphic link from a note to a client, invoice, project..."""

    __tablename__ = "note_entity_links"

    note_id: Mapped[int] = mapped_column(
        BigId, ForeignKey("notes.id", ondelete="CASCADE"), index=True, nullable=False,
    )
    entity_type: Mapped[str] = mapped_column(String(30), nullable=False)
    entity_id: Mapped[int] = mapped_column(BigId, nullable=False, index=True)
