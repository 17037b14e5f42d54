"""
User Service.

Staff accounts of a tenant. New accounts get a temporary password when
none is given.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.exceptions import ConflictError, ValidationError
from crm.backend.core.security import generate_temporary_password, hash_password
from crm.backend.models.tenant import ROLE_CLIENT, ROLE_SUPER_ADMIN, ROLE_TENANT_USER, ROLES, User
from crm.backend.repositories.filters import UserFilter
from crm.backend.repositories.tenant import UserAccountRepository, UserRepository
from crm.backend.services.base import BaseService


class UserService(BaseService):
    def __init__(self, session: AsyncSession, tenant_id: int) -> None:
        super().__init__(session, tenant_id)
        self.repo = UserRepository(session, tenant_id)

    async def list_users(
        self,
        filters: UserFilter | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[User], int]:
        clauses = (filters or UserFilter()).clauses()
        items = await self.repo.find(*clauses, order_by=User.name, limit=limit, offset=offset)
        return items, await self.repo.count(*clauses)

    async def create(self, data: dict[str, Any], min_password_length: int = 8) -> tuple[User, str | None]:
        """
        Create a staff user.

        Returns the user and the generated temporary password, if any.
        """
        self._validate_required(data, ["name", "email"])
        role = data.get("role") or ROLE_TENANT_USER
        if role not in ROLES or role in (ROLE_CLIENT, ROLE_SUPER_ADMIN):
            raise ValidationError(f"Rôle invalide: {role}")

        email = data["email"].strip().lower()
        if await UserAccountRepository(self.session).get_by_email(email) is not None:
            raise ConflictError("Cet email est déjà utilisé")

        password = data.get("password")
        temporary = None
        if password:
            if len(password) < min_password_length:
                raise ValidationError(
                    f"Le mot de passe doit contenir au moins {min_password_length} caractères"
                )
        else:
            temporary = password = generate_temporary_password()

        user = await self._execute_db_operation(
            "create_user",
            self.repo.create(
                name=data["name"].strip(),
                email=email,
                password=hash_password(password),
                role=role,
                is_active=data.get("is_active", True),
            ),
        )
        self._log_operation("User created", user_id=user.id, role=role)
        return user, temporary
