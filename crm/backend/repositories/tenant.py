"""
Tenant and User Repositories.
"""

from sqlalchemy import func

from crm.backend.models.tenant import Tenant, User
from crm.backend.repositories.base import BaseRepository, TenantScopedRepository


class TenantRepository(BaseRepository[Tenant]):
    """Tenants are the root of every scope, so this repository is unscoped."""

    model = Tenant
    not_found_message = "Organisation non trouvée"

    async def get_by_slug(self, slug: str) -> Tenant | None:
        return await self.first(Tenant.slug == slug)


class UserRepository(TenantScopedRepository[User]):
    model = User
    not_found_message = "Utilisateur non trouvé"

    async def get_by_email(self, email: str) -> User | None:
        return await self.first(func.lower(User.email) == email.strip().lower())

    async def get_by_telegram_chat(self, chat_id: int) -> User | None:
        return await self.first(User.telegram_chat_id == chat_id)

    async def list_with_calendar(self) -> list[User]:
        """Users that linked an Office 365 account."""
        return await self.find(User.o365_refresh_token.is_not(None), User.is_active.is_(True))


class UserAccountRepository(BaseRepository[User]):
    """
    Cross-tenant user lookups.

    Only used before a tenant is known: login and token-based impersonation.
    """

    model = User
    not_found_message = "Utilisateur non trouvé"

    async def get_by_email(self, email: str) -> User | None:
        return await self.first(func.lower(User.email) == email.strip().lower())
