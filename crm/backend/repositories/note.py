"""
Note Repository.
"""

from datetime import datetime

from sqlalchemy import select

from crm.backend.models.note import Note, NoteEntityLink
from crm.backend.repositories.base import TenantScopedRepository


class NoteRepository(TenantScopedRepository[Note]):
    model = Note
    not_found_message = "Note non trouvée"

    async def list_for_entity(self, entity_type: str, entity_id: int, limit: int = 20) -> list[Note]:
        linked = select(NoteEntityLink.note_id).where(
            NoteEntityLink.entity_type == entity_type,
            NoteEntityLink.entity_id == entity_id,
        )
        return await self.find(
            Note.id.in_(linked),
            Note.is_archived.is_(False),
            order_by=Note.created_at.desc(),
            limit=limit,
        )

    async def list_reminders(self, start: datetime, end: datetime | None = None) -> list[Note]:
        """Open reminders due at or after ``start`` (and before ``end``)."""
        clauses = [
            Note.reminder_at.is_not(None),
            Note.reminder_at >= start,
            Note.is_completed.is_(False),
            Note.is_archived.is_(False),
        ]
        if end is not None:
            clauses.append(Note.reminder_at < end)
        return await self.find(*clauses, order_by=Note.reminder_at)

    async def list_active(self, note_type: str | None = None, limit: int = 20) -> list[Note]:
        clauses = [Note.is_archived.is_(False)]
        if note_type:
            clauses.append(Note.type == note_type)
        return await self.find(*clauses, order_by=Note.created_at.desc(), limit=limit)
