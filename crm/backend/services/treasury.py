"""
Treasury Services.

Bank accounts, transactions and invoice reconciliation, plus the
GoCardless flow that links bank accounts and imports their transactions.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.exceptions import ConflictError, ExternalServiceError, ValidationError
from crm.backend.core.utils import utc_now
from crm.backend.integrations.gocardless import GoCardlessClient
from crm.backend.models.billing import Invoice
from crm.backend.models.treasury import BankAccount, BankConnection, BankTransaction
from crm.backend.repositories.filters import TransactionFilter
from crm.backend.repositories.treasury import (
    BankAccountRepository,
    BankConnectionRepository,
    BankTransactionRepository,
)
from crm.backend.services.base import BaseService
from crm.backend.services.billing import round_money, to_decimal
from crm.backend.services.invoice import InvoiceService
from crm.backend.services.settings import TenantSettings

TRANSACTION_FIELDS = ("category", "label", "counterparty")


class TreasuryService(BaseService):
    def __init__(
        self,
        session: AsyncSession,
        tenant_id: int,
        settings: TenantSettings | None = None,
    ) -> None:
        super().__init__(session, tenant_id)
        self.settings = settings or TenantSettings()
        self.accounts = BankAccountRepository(session, tenant_id)
        self.transactions = BankTransactionRepository(session, tenant_id)

    async def list_accounts(self) -> list[BankAccount]:
        return await self.accounts.find(order_by=BankAccount.name)

    async def total_balance(self) -> Decimal:
        return await self.accounts.sum(BankAccount.balance, BankAccount.status == "active")

    async def create_account(self, data: dict[str, Any]) -> BankAccount:
        self._validate_required(data, ["name"])
        account = await self._execute_db_operation(
            "create_bank_account",
            self.accounts.create(
                name=data["name"].strip(),
                bank_name=data.get("bank_name"),
                iban=(data.get("iban") or "").replace(" ", "").upper() or None,
                currency=(data.get("currency") or "EUR").upper(),
                balance=to_decimal(data.get("balance") or 0, "solde"),
                provider="manual",
            ),
        )
        self._log_operation("Bank account created", account_id=account.id)
        return account

    async def delete_account(self, account_id: int, force: bool = False) -> None:
        """
        Delete an account.

        Raises:
            ConflictError: If it still has transactions and ``force`` is false
        """
        account = await self.accounts.get_by_id(account_id)
        count = await self.transactions.count(BankTransaction.account_id == account.id)
        if count and not force:
            raise ConflictError(
                f"Ce compte contient {count} transaction(s), suppression forcée requise"
            )
        if count:
            await self.session.execute(
                delete(BankTransaction).where(
                    BankTransaction.tenant_id == self.tenant_id,
                    BankTransaction.account_id == account.id,
                )
            )
        await self._execute_db_operation("delete_bank_account", self.accounts.delete(account.id))
        self._log_operation("Bank account deleted", account_id=account_id, transactions=count)

    async def list_transactions(
        self,
        filters: TransactionFilter | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[BankTransaction], int]:
        clauses = (filters or TransactionFilter()).clauses()
        items = await self.transactions.find(
            *clauses,
            order_by=[BankTransaction.transaction_date.desc(), BankTransaction.id.desc()],
            limit=limit,
            offset=offset,
        )
        return items, await self.transactions.count(*clauses)

    async def cash_flow(self, start: datetime, end: datetime) -> dict[str, Decimal]:
        """Credits and debits booked in [start, end)."""
        window = (BankTransaction.transaction_date >= start, BankTransaction.transaction_date < end)
        credits = await self.transactions.sum(BankTransaction.amount, BankTransaction.amount > 0, *window)
        debits = await self.transactions.sum(BankTransaction.amount, BankTransaction.amount < 0, *window)
        return {"credits": credits, "debits": -debits, "net": credits + debits}

    async def update_transaction(self, transaction_id: int, data: dict[str, Any]) -> BankTransaction:
        """
        Patch a transaction.

        Setting ``invoice_id`` reconciles it with that invoice; setting
        ``is_reconciled`` to false detaches any invoice.
        """
        transaction = await self.transactions.get_by_id(transaction_id)
        for name in TRANSACTION_FIELDS:
            if name in data:
                setattr(transaction, name, data[name])

        if data.get("invoice_id") is not None:
            invoices = InvoiceService(self.session, self.tenant_id, self.settings)
            invoice = await invoices.get(int(data["invoice_id"]))
            return await self.reconcile(transaction, invoice, mark_paid=data.get("mark_paid", True))
        if data.get("is_reconciled") is False:
            transaction.is_reconciled = False
            transaction.invoice_id = None
        elif data.get("is_reconciled") is True:
            transaction.is_reconciled = True

        await self.session.flush()
        self._log_operation("Transaction updated", transaction_id=transaction.id, fields=sorted(data))
        return transaction

    async def reconcile(
        self,
        transaction: BankTransaction,
        invoice: Invoice,
        mark_paid: bool = True,
    ) -> BankTransaction:
        if transaction.amount <= 0:
            raise ValidationError("Seul un crédit peut être rapproché d'une facture")
        if transaction.is_reconciled and transaction.invoice_id not in (None, invoice.id):
            raise ConflictError(
                "Transaction déjà rapprochée d'une autre facture",
                details={"invoiceId": transaction.invoice_id},
            )
        transaction.is_reconciled = True
        transaction.invoice_id = invoice.id
        if mark_paid and invoice.status != "paid":
            await InvoiceService(self.session, self.tenant_id, self.settings).mark_paid(
                invoice,
                payment_date=transaction.transaction_date,
                payment_method="virement",
                payment_notes=f"Rapproché: {transaction.label}",
            )
        await self.session.flush()
        self._log_operation(
            "Transaction reconciled",
            transaction_id=transaction.id,
            invoice_id=invoice.id,
        )
        return transaction


@dataclass
class AccountSyncResult:
    account_id: int
    account_name: str
    balance: Decimal
    new_transactions: list[BankTransaction] = field(default_factory=list)
    error: str | None = None


class BankSyncService(BaseService):
    """GoCardless account linking and transaction import."""

    def __init__(
        self,
        session: AsyncSession,
        tenant_id: int,
        settings: TenantSettings,
        client: GoCardlessClient | None = None,
    ) -> None:
        super().__init__(session, tenant_id)
        self.settings = settings
        self._client = client
        self.connections = BankConnectionRepository(session, tenant_id)
        self.accounts = BankAccountRepository(session, tenant_id)
        self.transactions = BankTransactionRepository(session, tenant_id)

    @property
    def client(self) -> GoCardlessClient:
        if self._client is None:
            if not self.settings.gocardless_enabled:
                raise ExternalServiceError("GoCardless non activé")
            self._client = GoCardlessClient(
                self.settings.gocardless_secret_id, self.settings.gocardless_secret_key,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.api.close()

    async def list_institutions(self, country: str) -> list[dict[str, Any]]:
        institutions = await self.client.list_institutions(country)
        return [
            {"id": i.get("id"), "name": i.get("name"), "logo": i.get("logo"), "bic": i.get("bic")}
            for i in institutions
        ]

    async def list_connections(self) -> list[BankConnection]:
        return await self.connections.find(order_by=BankConnection.created_at.desc())

    async def connect(
        self,
        institution_id: str,
        institution_name: str | None,
        redirect_url: str,
        validity_days: int = 90,
    ) -> BankConnection:
        """Start a bank authorisation and store the pending connection."""
        if not institution_id:
            raise ValidationError("institutionId requis")
        reference = f"CRM-{uuid.uuid4().hex[:12]}"
        separator = "&" if "?" in redirect_url else "?"
        requisition = await self.client.create_requisition(
            institution_id, f"{redirect_url}{separator}ref={reference}", reference,
        )
        connection = await self._execute_db_operation(
            "create_bank_connection",
            self.connections.create(
                requisition_id=requisition["id"],
                institution_id=institution_id,
                institution_name=institution_name,
                reference=reference,
                status="pending",
                link=requisition.get("link"),
                expires_at=utc_now() + timedelta(days=validity_days),
            ),
        )
        self._log_operation("Bank connection started", connection_id=connection.id, institution=institution_id)
        return connection

    async def complete(self, reference: str) -> list[BankAccount]:
        """
        Finish the authorisation after the bank redirect.

        Creates or updates one BankAccount per linked GoCardless account.
        """
        connection = (
            await self.connections.get_by_reference(reference)
            or await self.connections.get_by_requisition(reference)
        )
        if connection is None:
            raise ValidationError("Connexion bancaire introuvable")

        requisition = await self.client.get_requisition(connection.requisition_id)
        account_ids = requisition.get("accounts") or []
        if requisition.get("status") != "LN" or not account_ids:
            connection.status = "failed"
            await self.session.flush()
            raise ExternalServiceError("La banque n'a pas autorisé l'accès aux comptes")

        linked = []
        for external_id in account_ids:
            details = await self.client.get_account_details(external_id)
            balance = await self.client.get_balance(external_id)
            account = await self.accounts.get_by_external_id(external_id)
            if account is None:
                account = await self.accounts.create(
                    name=details.get("name") or details.get("ownerName") or "Compte bancaire",
                    bank_name=connection.institution_name,
                    iban=details.get("iban"),
                    currency=details.get("currency") or "EUR",
                    balance=balance or Decimal("0"),
                    provider="gocardless",
                    external_id=external_id,
                    connection_id=connection.id,
                )
            else:
                account.status = "active"
                account.connection_id = connection.id
                if balance is not None:
                    account.balance = balance
            linked.append(account)

        connection.status = "linked"
        await self.session.flush()
        self._log_operation("Bank connection linked", connection_id=connection.id, accounts=len(linked))
        return linked

    async def delete_connection(self, connection_id: int) -> None:
        connection = await self.connections.get_by_id(connection_id)
        try:
            await self.client.delete_requisition(connection.requisition_id)
        except ExternalServiceError:
            self._logger.warning(
                "Requisition already gone on GoCardless side",
                extra={"connection_id": connection.id},
            )
        for account in await self.accounts.find(BankAccount.connection_id == connection.id):
            account.status = "disconnected"
            account.connection_id = None
        await self.connections.delete(connection.id)
        self._log_operation("Bank connection deleted", connection_id=connection_id)

    async def sync(self, days: int = 7, now: datetime | None = None) -> list[AccountSyncResult]:
        """
        Refresh balances and import new transactions of every linked account.

        A failing account is reported in its result and does not stop the
        others.
        """
        now = now or utc_now()
        date_from = (now - timedelta(days=days)).date()
        results = []
        for account in await self.accounts.list_synced():
            result = AccountSyncResult(account.id, account.name, account.balance)
            try:
                balance = await self.client.get_balance(account.external_id)
                if balance is not None:
                    account.balance = balance
                    result.balance = balance
                for tx in await self.client.get_transactions(account.external_id, date_from, now.date()):
                    if await self.transactions.get_by_external_id(account.id, tx.external_id):
                        continue
                    result.new_transactions.append(await self.transactions.create(
                        account=account,
                        external_id=tx.external_id,
                        transaction_date=datetime.combine(tx.booking_date, datetime.min.time()),
                        amount=round_money(tx.amount),
                        label=tx.label,
                        counterparty=tx.counterparty,
                    ))
                account.last_sync_at = now
            except ExternalServiceError as e:
                result.error = e.message
                self._logger.warning(
                    "Bank account sync failed",
                    extra={"account_id": account.id, "error": e.message},
                )
            results.append(result)
        await self.session.flush()
        self._log_operation(
            "Bank sync finished",
            accounts=len(results),
            new_transactions=sum(len(r.new_transactions) for r in results),
        )
        return results
