"""
Note Service.

Notes, todos and reminders, optionally attached to one business entity.
"""

from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.exceptions import ValidationError
from crm.backend.core.utils import utc_now
from crm.backend.models.note import NOTE_TYPES, Note, NoteEntityLink
from crm.backend.repositories.note import NoteRepository
from crm.backend.services.base import BaseService

ENTITY_TYPES = ("client", "invoice", "quote", "project", "ticket", "contract")


class NoteService(BaseService):
    def __init__(self, session: AsyncSession, tenant_id: int) -> None:
        super().__init__(session, tenant_id)
        self.repo = NoteRepository(session, tenant_id)

    async def get(self, note_id: int) -> Note:
        return await self.repo.get_by_id(note_id)

    async def create(
        self,
        content: str,
        note_type: str = "note",
        reminder_at: datetime | None = None,
        entity_type: str | None = None,
        entity_id: int | None = None,
        user_id: int | None = None,
    ) -> Note:
        if not content or not content.strip():
            raise ValidationError("Le contenu de la note est requis")
        if note_type not in NOTE_TYPES:
            raise ValidationError(f"Type de note invalide: {note_type}")
        links = []
        if entity_type is not None:
            if entity_type not in ENTITY_TYPES or entity_id is None:
                raise ValidationError(f"Entité invalide: {entity_type}")
            links.append(NoteEntityLink(entity_type=entity_type, entity_id=entity_id))

        note = await self._execute_db_operation(
            "create_note",
            self.repo.create(
                content=content.strip(),
                type=note_type,
                reminder_at=reminder_at,
                user_id=user_id,
                links=links,
            ),
        )
        self._log_operation("Note created", note_id=note.id, type=note_type, entity_type=entity_type)
        return note

    async def list_for_entity(self, entity_type: str, entity_id: int, limit: int = 20) -> list[Note]:
        return await self.repo.list_for_entity(entity_type, entity_id, limit=limit)

    async def list_recent(self, note_type: str | None = None, limit: int = 20) -> list[Note]:
        return await self.repo.list_active(note_type, limit=limit)

    async def list_reminders(
        self,
        days: int = 7,
        now: datetime | None = None,
    ) -> list[Note]:
        """Open reminders between ``now`` and ``days`` days ahead."""
        now = now or utc_now()
        return await self.repo.list_reminders(now, now + timedelta(days=days))

    async def complete(self, note: Note) -> Note:
        note.is_completed = True
        await self.session.flush()
        self._log_operation("Note completed", note_id=note.id)
        return note

    async def archive(self, note: Note) -> Note:
        note.is_archived = True
        await self.session.flush()
        self._log_operation("Note archived", note_id=note.id)
        return note
