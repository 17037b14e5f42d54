"""Note and reminder tools."""

from crm.backend.agents.assistant.tools.base import CLIENT_REF, ToolCall, integer, string, tool
from crm.backend.agents.assistant.tools.views import note_view
from crm.backend.services.note import NoteService


@tool(
    "create_note",
    "Enregistrer une note, éventuellement rattachée à un client",
    {"content": string("Texte de la note"), **CLIENT_REF},
    required=("content",),
)
async def create_note(call: ToolCall):
    client = await call.client(required=False)
    note = await NoteService(call.session, call.tenant_id).create(
        call.require("content"),
        entity_type="client" if client else None,
        entity_id=client.id if client else None,
        user_id=call.ctx.user_id,
    )
    return {"created": True, **note_view(call, note), "client": client.display_name if client else None}


@tool(
    "list_notes",
    "Dernières notes, ou celles d'un client si clientId/clientName est donné",
    {**CLIENT_REF, "limit": integer("Nombre maximum de notes")},
)
async def list_notes(call: ToolCall):
    notes = NoteService(call.session, call.tenant_id)
    limit = call.int_arg("limit") or 10
    client = await call.client(required=False)
    if client is not None:
        rows = await notes.list_for_entity("client", client.id, limit=limit)
    else:
        rows = await notes.list_recent(limit=limit)
    return [note_view(call, n) for n in rows]


@tool(
    "create_reminder",
    "Programmer un rappel. La date accepte « demain 15h », « vendredi à 9h », « 12/03 14:00 »...",
    {
        "content": string("Objet du rappel"),
        "date": string("Date et heure du rappel"),
        **CLIENT_REF,
    },
    required=("content", "date"),
)
async def create_reminder(call: ToolCall):
    reminder_at = call.datetime_arg("date", required=True)
    client = await call.client(required=False)
    note = await NoteService(call.session, call.tenant_id).create(
        call.require("content"),
        note_type="todo",
        reminder_at=reminder_at,
        entity_type="client" if client else None,
        entity_id=client.id if client else None,
        user_id=call.ctx.user_id,
    )
    return {"created": True, **note_view(call, note)}


@tool(
    "list_reminders",
    "Rappels à venir",
    {"days": integer("Horizon en jours, 7 par défaut")},
)
async def list_reminders(call: ToolCall):
    now = call.now_utc()
    notes = await NoteService(call.session, call.tenant_id).list_reminders(
        days=call.int_arg("days") or 7, now=now,
    )
    return [note_view(call, n) for n in notes]


@tool(
    "complete_reminder",
    "Marquer un rappel ou une note à faire comme terminé",
    {"noteId": integer("Identifiant du rappel")},
    required=("noteId",),
)
async def complete_reminder(call: ToolCall):
    notes = NoteService(call.session, call.tenant_id)
    note = await notes.complete(await notes.get(call.int_arg("noteId")))
    return {"completed": True, **note_view(call, note)}
