"""
Authentication and User Schemas.
"""

from datetime import datetime

from pydantic import Field

from crm.backend.schemas.base import CamelModel


class LoginRequest(CamelModel):
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1)


class ImpersonateRequest(CamelModel):
    user_id: int


class UserResponse(CamelModel):
    id: int
    tenant_id: int
    name: str | None
    email: str
    role: str
    is_active: bool
    last_login_at: datetime | None
    created_at: datetime


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
    impersonating: bool = False


class MeResponse(CamelModel):
    id: int
    tenant_id: int
    role: str
    email: str
    name: str | None
    user_type: str
    client_id: int | None
    is_admin: bool
    is_impersonating: bool
    original_user_id: int | None


class UserCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)
    password: str | None = None
    role: str | None = None
    is_active: bool = True


class UserCreated(CamelModel):
    user: UserResponse
    temporary_password: str | None = None
