"""
Client Repository.
"""

from sqlalchemy import func, or_

from crm.backend.models.client import Client
from crm.backend.repositories.base import TenantScopedRepository
from crm.backend.repositories.filters import client_search_clause


class ClientRepository(TenantScopedRepository[Client]):
    model = Client
    not_found_message = "Client non trouvé"

    async def search(self, term: str, limit: int = 10) -> list[Client]:
        return await self.find(
            client_search_clause(term),
            order_by=Client.company_name,
            limit=limit,
        )

    async def find_by_name(self, name: str) -> Client | None:
        """
        Best match for a free-text client name.

        An exact (case-insensitive) company or last name wins over a
        partial match.
        """
        needle = name.strip().lower()
        exact = await self.first(or_(
            func.lower(Client.company_name) == needle,
            func.lower(Client.last_name) == needle,
        ))
        if exact is not None:
            return exact
        matches = await self.search(name, limit=1)
        return matches[0] if matches else None
