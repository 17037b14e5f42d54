"""
Ticket Service.

Support tickets numbered TK-YYYY-NNNNN with a message thread.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.exceptions import NotFoundError, ValidationError
from crm.backend.core.utils import utc_now
from crm.backend.models.client import Client
from crm.backend.models.ticket import TICKET_PRIORITIES, TICKET_STATUSES, Ticket, TicketMessage
from crm.backend.repositories.filters import TicketFilter
from crm.backend.repositories.ticket import TicketRepository
from crm.backend.services.base import BaseService
from crm.backend.services.billing import next_document_number

TICKET_PREFIX = "TK"


class TicketService(BaseService):
    def __init__(self, session: AsyncSession, tenant_id: int) -> None:
        super().__init__(session, tenant_id)
        self.repo = TicketRepository(session, tenant_id)

    async def get(self, ticket_id: int) -> Ticket:
        return await self.repo.get_by_id(ticket_id)

    async def resolve(
        self,
        ticket_id: int | None = None,
        ticket_number: str | None = None,
    ) -> Ticket:
        if ticket_id is not None:
            return await self.repo.get_by_id(ticket_id)
        if ticket_number:
            ticket = await self.repo.first(Ticket.ticket_number == ticket_number.strip().upper())
            if ticket is None:
                raise NotFoundError(f"Ticket non trouvé: {ticket_number}")
            return ticket
        raise ValidationError("ticketId ou ticketNumber requis")

    async def list_tickets(
        self,
        filters: TicketFilter | None = None,
        limit: int = 20,
    ) -> list[Ticket]:
        return await self.repo.find(
            *(filters or TicketFilter(status="active")).clauses(),
            order_by=Ticket.created_at.desc(),
            limit=limit,
        )

    async def create(
        self,
        subject: str,
        message: str,
        author_name: str,
        client: Client | None = None,
        priority: str = "medium",
    ) -> Ticket:
        """Open a ticket with its first message."""
        if not subject or not subject.strip():
            raise ValidationError("Le sujet du ticket est requis")
        if priority not in TICKET_PRIORITIES:
            raise ValidationError(f"Priorité invalide: {priority}")

        year = utc_now().year
        last = await self.repo.last_number(f"{TICKET_PREFIX}-{year}-")
        number = next_document_number(last, TICKET_PREFIX, year)
        ticket = await self._execute_db_operation(
            "create_ticket",
            self.repo.create(
                ticket_number=number,
                subject=subject.strip(),
                priority=priority,
                client=client,
                messages=[TicketMessage(author_name=author_name, content=message or subject)],
            ),
        )
        self._log_operation("Ticket created", ticket_id=ticket.id, number=number)
        return ticket

    async def reply(
        self,
        ticket: Ticket,
        content: str,
        author_name: str,
        internal: bool = False,
    ) -> TicketMessage:
        if not content or not content.strip():
            raise ValidationError("Le message est vide")
        message = TicketMessage(
            ticket_id=ticket.id,
            author_name=author_name,
            content=content.strip(),
            is_internal=internal,
        )
        self.session.add(message)
        if ticket.status == "open" and not internal:
            ticket.status = "pending"
        await self.session.flush()
        await self.session.refresh(ticket, ["messages"])
        self._log_operation("Ticket reply added", ticket_id=ticket.id, internal=internal)
        return message

    async def update_status(self, ticket: Ticket, status: str) -> Ticket:
        if status not in TICKET_STATUSES:
            raise ValidationError(f"Statut de ticket invalide: {status}")
        ticket.status = status
        await self.session.flush()
        self._log_operation("Ticket status updated", ticket_id=ticket.id, status=status)
        return ticket
