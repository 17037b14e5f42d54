"""
Clients API Endpoints.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from crm.backend.core.dependencies import DbSession, RequestId, StaffUser
from crm.backend.core.pagination import (
    PaginationParams,
    create_paginated_response,
    get_pagination_params,
)
from crm.backend.repositories.filters import ClientFilter
from crm.backend.schemas.base import ApiResponse
from crm.backend.schemas.client import ClientCreate, ClientResponse, ClientUpdate
from crm.backend.services.client import ClientService

router = APIRouter()


@router.get("", summary="List clients (paginated)")
async def list_clients(
    db: DbSession,
    user: StaffUser,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
    search: str | None = Query(default=None, max_length=100),
    status: str | None = Query(default=None, description="prospect, active, inactive or all"),
) -> dict[str, Any]:
    clients, total = await ClientService(db, user.tenant_id).list_clients(
        ClientFilter(search=search, status=status),
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return create_paginated_response(
        items=clients,
        item_schema=ClientResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.post("", response_model=ApiResponse[ClientResponse], status_code=201, summary="Create a client")
async def create_client(data: ClientCreate, db: DbSession, user: StaffUser) -> ApiResponse[ClientResponse]:
    client = await ClientService(db, user.tenant_id).create(data.model_dump(exclude_unset=True))
    return ApiResponse(data=ClientResponse.model_validate(client))


@router.get("/{client_id}", response_model=ApiResponse[ClientResponse], summary="Get a client")
async def get_client(client_id: int, db: DbSession, user: StaffUser) -> ApiResponse[ClientResponse]:
    client = await ClientService(db, user.tenant_id).get(client_id)
    return ApiResponse(data=ClientResponse.model_validate(client))


@router.put("/{client_id}", response_model=ApiResponse[ClientResponse], summary="Update a client")
async def update_client(
    client_id: int,
    data: ClientUpdate,
    db: DbSession,
    user: StaffUser,
) -> ApiResponse[ClientResponse]:
    client = await ClientService(db, user.tenant_id).update(client_id, data.model_dump(exclude_unset=True))
    return ApiResponse(data=ClientResponse.model_validate(client))


@router.delete("/{client_id}", status_code=204, summary="Delete a client without invoices")
async def delete_client(client_id: int, db: DbSession, user: StaffUser) -> None:
    await ClientService(db, user.tenant_id).delete(client_id)
