"""Office 365 calendar tools."""

from datetime import timedelta

from crm.backend.agents.assistant.tools.base import ToolCall, integer, string, tool
from crm.backend.core.exceptions import ExternalServiceError, ValidationError
from crm.backend.integrations.graph import CalendarEvent, GraphCalendarClient
from crm.backend.models.tenant import User
from crm.backend.repositories.tenant import UserRepository


async def calendar_user(call: ToolCall) -> User:
    """The user whose calendar the assistant manages."""
    users = UserRepository(call.session, call.tenant_id)
    if call.ctx.user_id is not None:
        return await users.get_by_id(call.ctx.user_id)
    linked = await users.list_with_calendar()
    if not linked:
        raise ExternalServiceError("Compte Office 365 non connecté")
    return linked[0]


def event_view(event: CalendarEvent) -> dict:
    return {
        "subject": event.subject,
        "start": event.start.strftime("%d/%m/%Y %H:%M"),
        "end": event.end.strftime("%d/%m/%Y %H:%M"),
        "location": event.location,
        "allDay": event.is_all_day,
    }


@tool(
    "create_calendar_event",
    "Créer un rendez-vous dans l'agenda Office 365",
    {
        "subject": string("Objet du rendez-vous"),
        "start": string("Début, ex. 'demain 14h30' ou '12/03 10:00'"),
        "durationMinutes": integer("Durée en minutes"),
        "location": string("Lieu"),
        "description": string("Détails"),
    },
    required=("subject", "start"),
)
async def create_calendar_event(call: ToolCall):
    start = call.local_datetime("start", required=True)
    duration = call.int_arg("durationMinutes") or call.ctx.default_event_duration_minutes
    if duration <= 0:
        raise ValidationError("La durée doit être positive")
    async with GraphCalendarClient(await calendar_user(call), call.ctx.settings) as graph:
        event = await graph.create_event(
            call.require("subject"),
            start,
            start + timedelta(minutes=duration),
            location=call.get("location"),
            body=call.get("description"),
        )
    return {"created": True, **event_view(event)}


@tool(
    "list_calendar_events",
    "Rendez-vous de l'agenda sur les prochains jours",
    {"days": integer("Nombre de jours à partir d'aujourd'hui, 1 par défaut")},
)
async def list_calendar_events(call: ToolCall):
    start = call.ctx.now().replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=call.int_arg("days") or 1)
    async with GraphCalendarClient(await calendar_user(call), call.ctx.settings) as graph:
        events = await graph.list_events(start, end)
    return [event_view(e) for e in events]
