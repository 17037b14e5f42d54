"""
Treasury Repositories.
"""

from crm.backend.models.treasury import BankAccount, BankConnection, BankTransaction
from crm.backend.repositories.base import BaseRepository, TenantScopedRepository


class BankConnectionRepository(TenantScopedRepository[BankConnection]):
    model = BankConnection
    not_found_message = "Connexion bancaire non trouvée"

    async def get_by_reference(self, reference: str) -> BankConnection | None:
        return await self.first(BankConnection.reference == reference)

    async def get_by_requisition(self, requisition_id: str) -> BankConnection | None:
        return await self.first(BankConnection.requisition_id == requisition_id)


class BankConnectionLookup(BaseRepository[BankConnection]):
    """
    Cross-tenant lookup of a pending connection.

    Only used by the bank redirect, which arrives without a user token.
    """

    model = BankConnection
    not_found_message = "Connexion bancaire non trouvée"

    async def get_by_reference(self, reference: str) -> BankConnection | None:
        return await self.first(BankConnection.reference == reference)


class BankAccountRepository(TenantScopedRepository[BankAccount]):
    model = BankAccount
    not_found_message = "Compte bancaire non trouvé"

    async def list_active(self) -> list[BankAccount]:
        return await self.find(BankAccount.status == "active", order_by=BankAccount.name)

    async def get_by_external_id(self, external_id: str) -> BankAccount | None:
        return await self.first(BankAccount.external_id == external_id)

    async def list_synced(self) -> list[BankAccount]:
        return await self.find(
            BankAccount.provider == "gocardless",
            BankAccount.status == "active",
            BankAccount.external_id.is_not(None),
        )


class BankTransactionRepository(TenantScopedRepository[BankTransaction]):
    model = BankTransaction
    not_found_message = "Transaction non trouvée"

    async def get_by_external_id(self, account_id: int, external_id: str) -> BankTransaction | None:
        return await self.first(
            BankTransaction.account_id == account_id,
            BankTransaction.external_id == external_id,
        )
