"""Support ticket tools."""

from crm.backend.agents.assistant.tools.base import CLIENT_REF, ToolCall, boolean, enum, integer, string, tool
from crm.backend.agents.assistant.tools.views import ticket_view
from crm.backend.models.ticket import TICKET_PRIORITIES, TICKET_STATUSES
from crm.backend.repositories.filters import TicketFilter
from crm.backend.services.ticket import TicketService

TICKET_REF = {
    "ticketId": integer("Identifiant du ticket"),
    "ticketNumber": string("Numéro du ticket, ex. TK-2026-00004"),
}


async def _ticket(call: ToolCall):
    return await TicketService(call.session, call.tenant_id).resolve(
        call.int_arg("ticketId"), call.get("ticketNumber"),
    )


@tool(
    "list_tickets",
    "Tickets de support, ouverts et en attente par défaut",
    {
        "status": enum((*TICKET_STATUSES, "active", "all"), "Statut, 'active' par défaut"),
        **CLIENT_REF,
        "limit": integer("Maximum"),
    },
)
async def list_tickets(call: ToolCall):
    client = await call.client(required=False)
    tickets = await TicketService(call.session, call.tenant_id).list_tickets(
        TicketFilter(status=call.get("status", "active"), client_id=client.id if client else None),
        limit=call.int_arg("limit") or 20,
    )
    return [ticket_view(call, t) for t in tickets]


@tool(
    "create_ticket",
    "Ouvrir un ticket de support",
    {
        "subject": string("Sujet"),
        "message": string("Description du problème"),
        "priority": enum(TICKET_PRIORITIES, "Priorité, medium par défaut"),
        **CLIENT_REF,
    },
    required=("subject",),
)
async def create_ticket(call: ToolCall):
    ticket = await TicketService(call.session, call.tenant_id).create(
        call.require("subject"),
        call.get("message"),
        author_name=call.ctx.author_name,
        client=await call.client(required=False),
        priority=call.get("priority", "medium"),
    )
    return {"created": True, **ticket_view(call, ticket)}


@tool(
    "reply_ticket",
    "Répondre à un ticket ou y ajouter une note interne",
    {**TICKET_REF, "message": string("Réponse"), "internal": boolean("Note interne non visible du client")},
    required=("message",),
)
async def reply_ticket(call: ToolCall):
    ticket = await _ticket(call)
    await TicketService(call.session, call.tenant_id).reply(
        ticket, call.require("message"), call.ctx.author_name, internal=bool(call.get("internal", False)),
    )
    return {"replied": True, **ticket_view(call, ticket)}


@tool(
    "update_ticket_status",
    "Changer le statut d'un ticket",
    {**TICKET_REF, "status": enum(TICKET_STATUSES, "Nouveau statut")},
    required=("status",),
)
async def update_ticket_status(call: ToolCall):
    ticket = await TicketService(call.session, call.tenant_id).update_status(
        await _ticket(call), call.require("status"),
    )
    return {"updated": True, **ticket_view(call, ticket)}
