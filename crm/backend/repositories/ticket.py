"""
Ticket Repository.
"""

from crm.backend.models.ticket import Ticket
from crm.backend.repositories.base import TenantScopedRepository


class TicketRepository(TenantScopedRepository[Ticket]):
    model = Ticket
    not_found_message = "Ticket non trouvé"

    async def last_number(self, prefix: str) -> str | None:
        row = await self.first(
            Ticket.ticket_number.like(f"{prefix}%"),
            order_by=Ticket.ticket_number.desc(),
        )
        return row.ticket_number if row else None
