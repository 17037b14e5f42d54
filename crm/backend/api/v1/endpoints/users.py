"""
Users API Endpoints.

Staff accounts of the caller's tenant. Administrators only.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from crm.backend.core.config import get_app_config
from crm.backend.core.dependencies import AdminUser, DbSession, RequestId
from crm.backend.core.pagination import (
    PaginationParams,
    create_paginated_response,
    get_pagination_params,
)
from crm.backend.repositories.filters import UserFilter
from crm.backend.schemas.auth import UserCreate, UserCreated, UserResponse
from crm.backend.schemas.base import ApiResponse
from crm.backend.services.user import UserService

router = APIRouter()


@router.get("", summary="List staff users (paginated)")
async def list_users(
    db: DbSession,
    user: AdminUser,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
    search: str | None = Query(default=None, max_length=100),
    role: str | None = Query(default=None),
    status: str | None = Query(default=None, pattern="^(active|inactive|all)$"),
) -> dict[str, Any]:
    users, total = await UserService(db, user.tenant_id).list_users(
        UserFilter(search=search, role=role, status=status),
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return create_paginated_response(
        items=users,
        item_schema=UserResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.post("", response_model=ApiResponse[UserCreated], status_code=201, summary="Create a staff user")
async def create_user(data: UserCreate, db: DbSession, user: AdminUser) -> ApiResponse[UserCreated]:
    """The generated temporary password is returned once, when none was given."""
    created, temporary = await UserService(db, user.tenant_id).create(
        data.model_dump(),
        min_password_length=get_app_config().security.passwords.min_length,
    )
    return ApiResponse(data=UserCreated(
        user=UserResponse.model_validate(created),
        temporary_password=temporary,
    ))
