"""
Tenant and User Models.

A tenant is one company using the CRM. Its integration credentials
(SMTP, OVH, Telegram...) live in the JSON ``settings`` column and are read
through the settings registry.
"""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from crm.backend.models.base import Base, BigId, IdMixin, TenantMixin, TimestampMixin

ROLE_SUPER_ADMIN = "super_admin"
ROLE_TENANT_OWNER = "tenant_owner"
ROLE_TENANT_ADMIN = "tenant_admin"
ROLE_TENANT_USER = "tenant_user"
ROLE_CLIENT = "client"

ROLES = frozenset({
    ROLE_SUPER_ADMIN,
    ROLE_TENANT_OWNER,
    ROLE_TENANT_ADMIN,
    ROLE_TENANT_USER,
    ROLE_CLIENT,
})
ADMIN_ROLES = frozenset({ROLE_SUPER_ADMIN, ROLE_TENANT_OWNER, ROLE_TENANT_ADMIN})


class Tenant(IdMixin, TimestampMixin, Base):
    """Tenant database model."""

    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(50))
    address: Mapped[str | None] = mapped_column(Text)
    settings: Mapped[str] = mapped_column(Text, default="{}", nullable=False)

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, slug={self.slug!r})>"


class User(IdMixin, TenantMixin, TimestampMixin, Base):
    """
    User database model.

    Staff members carry one of the tenant roles; client-portal users have
    role ``client`` and point at their client record.
    """

    __tablename__ = "users"

    name: Mapped[str | None] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(50), default=ROLE_TENANT_USER, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    client_id: Mapped[int | None] = mapped_column(
        BigId, ForeignKey("clients.id", ondelete="SET NULL"),
    )
    is_primary_user: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime)

    slack_user_id: Mapped[str | None] = mapped_column(String(50))
    telegram_chat_id: Mapped[int | None] = mapped_column(BigInteger)

    o365_access_token: Mapped[str | None] = mapped_column(Text)
    o365_refresh_token: Mapped[str | None] = mapped_column(Text)
    o365_token_expires_at: Mapped[datetime | None] = mapped_column(DateTime)

    @property
    def user_type(self) -> str:
        return "client" if self.role == ROLE_CLIENT else "user"

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, role={self.role!r})>"
