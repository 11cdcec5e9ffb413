"""
Notes context: note storage, keyword search and note messaging.
"""

from typing import Protocol
from uuid import uuid4

import structlog

from ..messaging.mediator import ContextMediator
from ..messaging.messages import ContextId, DataRequestType, ErrorCode, NotificationMessage, NotificationType
from ..messaging.schemas import NoteByIdParams, NotePayload, NotesSearchParams
from ..models import Note, NoteSearchResult
from ..utils import ContextDataNotFound, split_terms, utcnow
from .base import ContextMessageHandler, ContextNotifier, RequestRoute

logger = structlog.get_logger(__name__)

SNIPPET_BEFORE = 50
SNIPPET_AFTER = 150
TITLE_MATCH_SCORE = 10


def _snippet(content: str, terms: list[str]) -> str:
    content_lower = content.lower()
    for term in terms:
        idx = content_lower.find(term)
        if idx >= 0:
            start = max(0, idx - SNIPPET_BEFORE)
            end = min(len(content), idx + SNIPPET_AFTER)
            return "..." + content[start:end].replace("\n", " ") + "..."
    return content[:200].replace("\n", " ") + "..."


class NoteRepository(Protocol):
    """Storage the notes context needs: CRUD plus keyword search."""

    async def insert(self, note: Note) -> Note: ...

    async def update(self, note: Note) -> Note: ...

    async def get(self, note_id: str) -> Note | None: ...

    async def get_by_source_id(self, source_id: str) -> Note | None: ...

    async def delete(self, note_id: str) -> bool: ...

    async def all_notes(self) -> list[Note]: ...

    async def search(self, query: str, limit: int = 10, tags: list[str] | None = None) -> list[NoteSearchResult]: ...


class InMemoryNoteRepository:
    """Dict-backed note store."""

    def __init__(self):
        self._notes: dict[str, Note] = {}

    async def insert(self, note: Note) -> Note:
        self._notes[note.id] = note
        return note

    async def update(self, note: Note) -> Note:
        self._notes[note.id] = note
        return note

    async def get(self, note_id: str) -> Note | None:
        return self._notes.get(note_id)

    async def get_by_source_id(self, source_id: str) -> Note | None:
        for note in self._notes.values():
            if note.source_id == source_id:
                return note
        return None

    async def delete(self, note_id: str) -> bool:
        return self._notes.pop(note_id, None) is not None

    async def all_notes(self) -> list[Note]:
        return list(self._notes.values())

    async def search(self, query: str, limit: int = 10, tags: list[str] | None = None) -> list[NoteSearchResult]:
        """Keyword search: every term must appear in the title or content (AND logic)."""
        terms = split_terms(query)
        if not terms:
            return []
        wanted_tags = {t.lower() for t in tags or []}

        results = []
        for note in self._notes.values():
            if wanted_tags and not wanted_tags.issubset({t.lower() for t in note.tags}):
                continue

            title_lower = note.title.lower()
            content_lower = note.content.lower()
            if not all(term in title_lower or term in content_lower for term in terms):
                continue

            # Title hits outrank body hits
            score = 0
            for term in terms:
                if term in title_lower:
                    score += TITLE_MATCH_SCORE
                score += content_lower.count(term)

            results.append(NoteSearchResult(
                id=note.id,
                title=note.title,
                score=score,
                snippet=_snippet(note.content, terms),
                tags=note.tags,
            ))

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]


class NoteContext:
    """Notes domain operations over a NoteRepository."""

    def __init__(self, repository: NoteRepository | None = None):
        self.repository = repository if repository is not None else InMemoryNoteRepository()

    async def create_note(
        self,
        title: str,
        content: str,
        tags: list[str] | None = None,
        source_id: str | None = None,
    ) -> Note:
        if not title or not title.strip():
            raise ValueError("Note title cannot be empty")
        note = Note(id=str(uuid4()), title=title.strip(), content=content, tags=tags or [], source_id=source_id)
        await self.repository.insert(note)
        logger.info("note_created", note_id=note.id, title=note.title)
        return note

    async def get_note(self, note_id: str) -> Note:
        note = await self.repository.get(note_id)
        if note is None:
            raise ContextDataNotFound(ErrorCode.NOTE_NOT_FOUND, f"Note not found: {note_id}")
        return note

    async def find_by_source_id(self, source_id: str) -> Note | None:
        return await self.repository.get_by_source_id(source_id)

    async def update_note(
        self,
        note_id: str,
        title: str | None = None,
        content: str | None = None,
        tags: list[str] | None = None,
    ) -> Note:
        note = await self.get_note(note_id)
        changes = {
            key: value for key, value in (("title", title), ("content", content), ("tags", tags))
            if value is not None
        }
        updated = note.model_copy(update={**changes, "updated_at": utcnow()})
        await self.repository.update(updated)
        logger.info("note_updated", note_id=note_id, fields=sorted(changes))
        return updated

    async def delete_note(self, note_id: str) -> bool:
        deleted = await self.repository.delete(note_id)
        if deleted:
            logger.info("note_deleted", note_id=note_id)
        return deleted

    async def search_notes(self, query: str, limit: int = 10, tags: list[str] | None = None) -> list[NoteSearchResult]:
        return await self.repository.search(query, limit=limit, tags=tags)

    async def list_notes(self, limit: int | None = None) -> list[Note]:
        """Most recently updated first."""
        notes = sorted(await self.repository.all_notes(), key=lambda n: n.updated_at, reverse=True)
        return notes[:limit] if limit else notes

    async def count(self) -> int:
        return len(await self.repository.all_notes())


# ============== Messaging ==============

class NoteMessageHandler(ContextMessageHandler):
    context_id = ContextId.NOTES

    def __init__(self, context: NoteContext):
        self.context = context
        super().__init__()

    def request_routes(self) -> dict[DataRequestType, RequestRoute]:
        return {
            DataRequestType.NOTES_SEARCH: RequestRoute(NotesSearchParams, self._search, ErrorCode.SEARCH_ERROR),
            DataRequestType.NOTE_BY_ID: RequestRoute(NoteByIdParams, self._note_by_id, ErrorCode.READ_ERROR),
        }

    def notification_routes(self):
        return {
            NotificationType.PROFILE_UPDATED: self._on_profile_updated,
            NotificationType.CONVERSATION_STARTED: self._on_conversation_started,
        }

    async def _search(self, params: NotesSearchParams) -> dict:
        results = await self.context.search_notes(params.query, limit=params.limit, tags=params.tags)
        return {"notes": [r.model_dump(mode="json") for r in results], "count": len(results)}

    async def _note_by_id(self, params: NoteByIdParams) -> dict:
        note = await self.context.get_note(params.id)
        return {"note": note.model_dump(mode="json")}

    async def _on_profile_updated(self, notification: NotificationMessage) -> None:
        logger.info("notes_saw_profile_update", changed=notification.payload.get("changed_fields"))

    async def _on_conversation_started(self, notification: NotificationMessage) -> None:
        logger.debug("notes_saw_conversation_start", conversation_id=notification.payload.get("conversation_id"))


class NoteNotifier(ContextNotifier):
    context_id = ContextId.NOTES

    async def notify_note_created(self, note: Note) -> list[str]:
        return await self._broadcast(
            NotificationType.NOTE_CREATED, NotePayload(note_id=note.id, title=note.title, tags=note.tags)
        )

    async def notify_note_updated(self, note: Note) -> list[str]:
        return await self._broadcast(
            NotificationType.NOTE_UPDATED, NotePayload(note_id=note.id, title=note.title, tags=note.tags)
        )

    async def notify_note_deleted(self, note_id: str, title: str) -> list[str]:
        return await self._broadcast(NotificationType.NOTE_DELETED, NotePayload(note_id=note_id, title=title))


class NoteMessaging:
    """Notes context wired to the mediator. Mutations go through here so notifications fire."""

    def __init__(self, context: NoteContext, mediator: ContextMediator):
        self.context = context
        self.mediator = mediator
        self.notifier = NoteNotifier(mediator)
        self.handler = NoteMessageHandler(context)
        mediator.register_handler(ContextId.NOTES, self.handler)

    async def create_note(self, title: str, content: str, tags: list[str] | None = None,
                          source_id: str | None = None) -> Note:
        note = await self.context.create_note(title, content, tags=tags, source_id=source_id)
        await self.notifier.notify_note_created(note)
        return note

    async def update_note(self, note_id: str, title: str | None = None, content: str | None = None,
                          tags: list[str] | None = None) -> Note:
        note = await self.context.update_note(note_id, title=title, content=content, tags=tags)
        await self.notifier.notify_note_updated(note)
        return note

    async def delete_note(self, note_id: str) -> bool:
        note = await self.context.repository.get(note_id)
        if note is None or not await self.context.delete_note(note_id):
            return False
        await self.notifier.notify_note_deleted(note.id, note.title)
        return True

    async def upsert_note(self, source_id: str, title: str, content: str, tags: list[str] | None = None) -> tuple[Note, bool]:
        """Create or update the note imported from ``source_id``. Returns (note, created)."""
        existing = await self.context.find_by_source_id(source_id)
        if existing is None:
            return await self.create_note(title, content, tags=tags, source_id=source_id), True
        return await self.update_note(existing.id, title=title, content=content, tags=tags), False
