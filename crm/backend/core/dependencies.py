"""
FastAPI Dependencies.

Shared dependencies for request handling: database session, request id,
and the authenticated user decoded from the Bearer token.
"""

import uuid
from dataclasses import dataclass
from typing import Annotated, Any

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.database import get_db_session
from crm.backend.core.exceptions import AuthenticationError, AuthorizationError
from crm.backend.core.logging import get_logger
from crm.backend.core.security import decode_token
from crm.backend.models.tenant import ADMIN_ROLES, ROLE_CLIENT

logger = get_logger(__name__)

DbSession = Annotated[AsyncSession, Depends(get_db_session)]


async def get_request_id(x_request_id: str | None = Header(None)) -> str:
    """Extract or generate request ID from headers."""
    return x_request_id or str(uuid.uuid4())


RequestId = Annotated[str, Depends(get_request_id)]


@dataclass(frozen=True)
class CurrentUser:
    """Identity carried by the access token."""

    id: int
    tenant_id: int
    role: str
    email: str
    name: str | None = None
    user_type: str = "user"
    client_id: int | None = None
    original_user_id: int | None = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_client(self) -> bool:
        return self.role == ROLE_CLIENT or self.user_type == "client"

    @property
    def is_impersonating(self) -> bool:
        return self.original_user_id is not None

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "CurrentUser":
        try:
            return cls(
                id=int(claims["sub"]),
                tenant_id=int(claims["tenant_id"]),
                role=claims["role"],
                email=claims.get("email", ""),
                name=claims.get("name"),
                user_type=claims.get("user_type", "user"),
                client_id=claims.get("client_id"),
                original_user_id=claims.get("original_user_id"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise AuthenticationError("Jeton invalide") from e


async def get_current_user(authorization: str | None = Header(None)) -> CurrentUser:
    """Decode the Bearer token of the request."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationError()
    token = authorization.split(" ", 1)[1].strip()
    return CurrentUser.from_claims(decode_token(token))


AuthUser = Annotated[CurrentUser, Depends(get_current_user)]


async def require_admin(user: AuthUser) -> CurrentUser:
    """Restrict an endpoint to tenant administrators."""
    if not user.is_admin:
        logger.warning("Admin access denied", extra={"user_id": user.id, "role": user.role})
        raise AuthorizationError()
    return user


AdminUser = Annotated[CurrentUser, Depends(require_admin)]


async def require_staff(user: AuthUser) -> CurrentUser:
    """Reject client portal accounts: they never see tenant-wide data."""
    if user.is_client:
        logger.warning("Staff access denied", extra={"user_id": user.id, "role": user.role})
        raise AuthorizationError()
    return user


StaffUser = Annotated[CurrentUser, Depends(require_staff)]


async def get_tenant_settings(db: DbSession, user: StaffUser) -> Any:
    """Resolved settings of the caller's tenant (cached by the registry)."""
    from crm.backend.services.settings import get_settings_registry

    return await get_settings_registry().get(db, user.tenant_id)


TenantConfig = Annotated[Any, Depends(get_tenant_settings)]
