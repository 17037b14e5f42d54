"""
Authentication Service.

Password login, access tokens and impersonation. An impersonation token
carries the target user's identity plus ``original_user_id`` so the
administrator can switch back.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.dependencies import CurrentUser
from crm.backend.core.exceptions import AuthenticationError, AuthorizationError, ValidationError
from crm.backend.core.logging import get_logger
from crm.backend.core.security import create_access_token, verify_password
from crm.backend.core.utils import utc_now
from crm.backend.models.tenant import ROLE_SUPER_ADMIN, User
from crm.backend.repositories.tenant import UserAccountRepository

logger = get_logger(__name__)


def build_claims(user: User, original_user_id: int | None = None) -> dict[str, Any]:
    claims: dict[str, Any] = {
        "sub": str(user.id),
        "tenant_id": user.tenant_id,
        "role": user.role,
        "email": user.email,
        "name": user.name,
        "user_type": user.user_type,
        "client_id": user.client_id,
    }
    if original_user_id is not None:
        claims["original_user_id"] = original_user_id
    return claims


class AuthService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.users = UserAccountRepository(session)

    async def login(self, email: str, password: str) -> tuple[str, User]:
        """
        Check credentials and issue an access token.

        Raises:
            AuthenticationError: Unknown email, wrong password or disabled account
        """
        if not email or not password:
            raise ValidationError("Email et mot de passe requis")
        user = await self.users.get_by_email(email)
        if user is None or not verify_password(password, user.password):
            logger.warning("Login failed", extra={"email": email})
            raise AuthenticationError("Email ou mot de passe incorrect")
        if not user.is_active:
            logger.warning("Login refused for disabled account", extra={"user_id": user.id})
            raise AuthenticationError("Compte désactivé")

        user.last_login_at = utc_now()
        await self.session.flush()
        logger.info("User logged in", extra={"user_id": user.id, "tenant_id": user.tenant_id})
        return create_access_token(build_claims(user)), user

    async def impersonate(self, current: CurrentUser, target_user_id: int) -> tuple[str, User]:
        """
        Act as another user of the tenant.

        Raises:
            AuthorizationError: If the caller is not an administrator or the
                target belongs to another tenant
        """
        if not current.is_admin and not current.is_impersonating:
            raise AuthorizationError("Seuls les administrateurs peuvent se connecter en tant qu'un autre utilisateur")
        original_id = current.original_user_id or current.id
        if target_user_id == original_id:
            raise ValidationError("Impossible de se connecter en tant que soi-même")

        target = await self.users.get_by_id(target_user_id)
        if target.tenant_id != current.tenant_id and current.role != ROLE_SUPER_ADMIN:
            raise AuthorizationError("Utilisateur d'une autre organisation")
        if not target.is_active:
            raise ValidationError("Ce compte est désactivé")

        logger.info(
            "Impersonation started",
            extra={"original_user_id": original_id, "target_user_id": target.id},
        )
        return create_access_token(build_claims(target, original_user_id=original_id)), target

    async def end_impersonation(self, current: CurrentUser) -> tuple[str, User]:
        if not current.is_impersonating:
            raise ValidationError("Aucune session d'emprunt d'identité en cours")
        original = await self.users.get_by_id(current.original_user_id)
        logger.info(
            "Impersonation ended",
            extra={"original_user_id": original.id, "target_user_id": current.id},
        )
        return create_access_token(build_claims(original)), original
