"""
Treasury API Endpoints.

Manual bank accounts and the transaction ledger. Accounts linked through
GoCardless are managed by the gocardless endpoints.
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query

from crm.backend.core.dependencies import DbSession, RequestId, StaffUser, TenantConfig
from crm.backend.core.pagination import (
    PaginationParams,
    create_paginated_response,
    get_pagination_params,
)
from crm.backend.repositories.filters import TransactionFilter
from crm.backend.schemas.base import ApiResponse
from crm.backend.schemas.treasury import (
    BankAccountCreate,
    BankAccountResponse,
    TransactionResponse,
    TransactionUpdate,
)
from crm.backend.services.treasury import TreasuryService

router = APIRouter()


@router.get("/accounts", response_model=ApiResponse[dict[str, Any]], summary="Bank accounts and total balance")
async def list_accounts(db: DbSession, user: StaffUser, settings: TenantConfig) -> ApiResponse[dict[str, Any]]:
    service = TreasuryService(db, user.tenant_id, settings)
    accounts = await service.list_accounts()
    return ApiResponse(data={
        "accounts": [BankAccountResponse.model_validate(a).model_dump(mode="json", by_alias=True) for a in accounts],
        "totalBalance": float(await service.total_balance()),
    })


@router.post("/accounts", response_model=ApiResponse[BankAccountResponse], status_code=201, summary="Add a manual account")
async def create_account(
    data: BankAccountCreate,
    db: DbSession,
    user: StaffUser,
    settings: TenantConfig,
) -> ApiResponse[BankAccountResponse]:
    account = await TreasuryService(db, user.tenant_id, settings).create_account(data.model_dump())
    return ApiResponse(data=BankAccountResponse.model_validate(account))


@router.delete("/accounts/{account_id}", status_code=204, summary="Delete an account")
async def delete_account(
    account_id: int,
    db: DbSession,
    user: StaffUser,
    settings: TenantConfig,
    force: bool = Query(default=False, description="Also delete its transactions"),
) -> None:
    await TreasuryService(db, user.tenant_id, settings).delete_account(account_id, force=force)


@router.get("/transactions", summary="List transactions (paginated)")
async def list_transactions(
    db: DbSession,
    user: StaffUser,
    settings: TenantConfig,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
    account_id: int | None = Query(default=None, alias="accountId"),
    reconciled: bool | None = Query(default=None),
    direction: str | None = Query(default=None, pattern="^(credit|debit)$"),
    search: str | None = Query(default=None, max_length=100),
    date_from: datetime | None = Query(default=None, alias="dateFrom"),
    date_to: datetime | None = Query(default=None, alias="dateTo"),
) -> dict[str, Any]:
    transactions, total = await TreasuryService(db, user.tenant_id, settings).list_transactions(
        TransactionFilter(
            account_id=account_id,
            reconciled=reconciled,
            direction=direction,
            search=search,
            date_from=date_from,
            date_to=date_to,
        ),
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return create_paginated_response(
        items=transactions,
        item_schema=TransactionResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.patch(
    "/transactions/{transaction_id}",
    response_model=ApiResponse[TransactionResponse],
    summary="Categorise or reconcile a transaction",
)
async def update_transaction(
    transaction_id: int,
    data: TransactionUpdate,
    db: DbSession,
    user: StaffUser,
    settings: TenantConfig,
) -> ApiResponse[TransactionResponse]:
    transaction = await TreasuryService(db, user.tenant_id, settings).update_transaction(
        transaction_id, data.model_dump(exclude_unset=True),
    )
    return ApiResponse(data=TransactionResponse.model_validate(transaction))
