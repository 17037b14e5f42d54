"""
Client Service.

Client lookup, CRUD and lifecycle (prospect -> active).
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.exceptions import ConflictError, NotFoundError, ValidationError
from crm.backend.models.billing import Invoice
from crm.backend.models.client import CLIENT_STATUSES, Client
from crm.backend.repositories.billing import InvoiceRepository
from crm.backend.repositories.client import ClientRepository
from crm.backend.repositories.filters import ClientFilter
from crm.backend.services.base import BaseService

CLIENT_FIELDS = (
    "company_name",
    "first_name",
    "last_name",
    "email",
    "phone",
    "address",
    "postal_code",
    "city",
    "country",
    "siret",
    "vat_number",
    "status",
    "notes",
)


class ClientService(BaseService):
    def __init__(self, session: AsyncSession, tenant_id: int) -> None:
        super().__init__(session, tenant_id)
        self.repo = ClientRepository(session, tenant_id)

    async def get(self, client_id: int) -> Client:
        return await self.repo.get_by_id(client_id)

    async def resolve(
        self,
        client_id: int | None = None,
        client_name: str | None = None,
    ) -> Client:
        """
        Find a client by id or by name.

        Raises:
            ValidationError: If neither is given
            NotFoundError: If nothing matches
        """
        if client_id is not None:
            return await self.repo.get_by_id(client_id)
        if client_name and client_name.strip():
            client = await self.repo.find_by_name(client_name)
            if client is None:
                raise NotFoundError(f"Client non trouvé: {client_name}")
            return client
        raise ValidationError("clientId ou clientName requis")

    async def search(self, term: str, limit: int = 10) -> list[Client]:
        return await self.repo.search(term, limit=limit)

    async def list_clients(
        self,
        filters: ClientFilter | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Client], int]:
        clauses = (filters or ClientFilter()).clauses()
        items = await self.repo.find(
            *clauses,
            order_by=[Client.company_name, Client.last_name],
            limit=limit,
            offset=offset,
        )
        return items, await self.repo.count(*clauses)

    def _clean(self, data: dict[str, Any]) -> dict[str, Any]:
        values = {k: v for k, v in data.items() if k in CLIENT_FIELDS}
        status = values.get("status")
        if status is not None and status not in CLIENT_STATUSES:
            raise ValidationError(f"Statut client invalide: {status}")
        return values

    async def create(self, data: dict[str, Any]) -> Client:
        values = self._clean(data)
        if not (values.get("company_name") or values.get("last_name")):
            raise ValidationError("Nom de société ou nom du contact requis")
        values = {k: v for k, v in values.items() if v is not None}
        client = await self._execute_db_operation("create_client", self.repo.create(**values))
        self._log_operation("Client created", client_id=client.id)
        return client

    async def update(self, client_id: int, data: dict[str, Any]) -> Client:
        client = await self.repo.get_by_id(client_id)
        values = self._clean(data)
        client = await self._execute_db_operation(
            "update_client", self.repo.update_instance(client, **values),
        )
        self._log_operation("Client updated", client_id=client.id, fields=sorted(values))
        return client

    async def delete(self, client_id: int) -> None:
        client = await self.repo.get_by_id(client_id)
        invoice_count = await InvoiceRepository(self.session, self.tenant_id).count(
            Invoice.client_id == client.id,
        )
        if invoice_count:
            raise ConflictError("Impossible de supprimer un client qui a des factures")
        await self._execute_db_operation("delete_client", self.repo.delete(client.id))
        self._log_operation("Client deleted", client_id=client_id)

    async def activate_if_prospect(self, client: Client) -> bool:
        """Promote a prospect to an active client. Returns True on change."""
        if client.status != "prospect":
            return False
        client.status = "active"
        await self.session.flush()
        self._log_operation("Client promoted to active", client_id=client.id)
        return True
