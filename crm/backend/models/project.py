"""
Project Models.

Kanban boards: a project has ordered columns, columns hold cards. The
assistant's "tasks" are cards.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.backend.models.base import Base, BigId, IdMixin, TenantMixin, TimestampMixin
from crm.backend.models.client import Client

CARD_PRIORITIES = ("low", "medium", "high", "urgent")
DEFAULT_COLUMNS = ("À faire", "En cours", "Terminé")


class Project(IdMixin, TenantMixin, TimestampMixin, Base):
    """Project database model."""

    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    client_id: Mapped[int | None] = mapped_column(
        BigId, ForeignKey("clients.id", ondelete="SET NULL"),
    )

    client: Mapped[Client | None] = relationship(lazy="selectin")
    columns: Mapped[list["ProjectColumn"]] = relationship(
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="ProjectColumn.position",
    )


class ProjectColumn(IdMixin, TimestampMixin, Base):
    """Project column."""

    __tablename__ = "project_columns"

    project_id: Mapped[int] = mapped_column(
        BigId, ForeignKey("projects.id", ondelete="CASCADE"), index=True, nullable=False,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class ProjectCard(IdMixin, TimestampMixin, Base):
    """Project card, shown as a task by the assistant."""

    __tablename__ = "project_cards"

    project_id: Mapped[int] = mapped_column(
        BigId, ForeignKey("projects.id", ondelete="CASCADE"), index=True, nullable=False,
    )
    column_id: Mapped[int] = mapped_column(
        BigId, ForeignKey("project_columns.id", ondelete="CASCADE"), index=True, nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    priority: Mapped[str] = mapped_column(String(10), default="medium", nullable=False)
    due_date: Mapped[datetime | None] = mapped_column(DateTime)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    client_id: Mapped[int | None] = mapped_column(
        BigId, ForeignKey("clients.id", ondelete="SET NULL"),
    )

    project: Mapped[Project] = relationship(lazy="selectin")
    client: Mapped[Client | None] = relationship(lazy="selectin")
