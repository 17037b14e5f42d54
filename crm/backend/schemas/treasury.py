"""
Treasury Schemas.

Bank accounts, transactions and GoCardless connections.
"""

from datetime import datetime

from pydantic import Field

from crm.backend.schemas.base import CamelModel


class BankAccountCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    bank_name: str | None = None
    iban: str | None = None
    currency: str | None = Field(default=None, max_length=3)
    balance: float | None = None


class BankAccountResponse(CamelModel):
    id: int
    name: str
    bank_name: str | None
    iban: str | None
    currency: str
    balance: float
    provider: str
    status: str
    last_sync_at: datetime | None


class TransactionResponse(CamelModel):
    id: int
    account_id: int
    transaction_date: datetime
    amount: float
    label: str
    counterparty: str | None
    category: str | None
    is_reconciled: bool
    invoice_id: int | None


class TransactionUpdate(CamelModel):
    """``invoiceId`` reconciles the transaction; ``isReconciled=false`` detaches it."""

    category: str | None = None
    label: str | None = None
    counterparty: str | None = None
    invoice_id: int | None = None
    is_reconciled: bool | None = None
    mark_paid: bool = True


class ConnectRequest(CamelModel):
    institution_id: str
    institution_name: str | None = None
    redirect_url: str | None = None


class BankConnectionResponse(CamelModel):
    id: int
    institution_id: str
    institution_name: str | None
    reference: str
    status: str
    link: str | None
    expires_at: datetime | None
    created_at: datetime


class AccountSyncResponse(CamelModel):
    account_id: int
    account_name: str
    balance: float
    new_transactions: int
    error: str | None = None
