"""Durable queue for media captured while offline."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from fieldreport.db.models import PendingMedia, PendingNote
from fieldreport.db.session import session_scope

from .exceptions import OfflineQueueError
from .models import MediaKind, PendingMediaItem, PendingNoteItem


class OfflineQueue:
    """Write-durable FIFO of pending media and notes.

    Every write commits before returning; storage failures are raised as
    ``OfflineQueueError`` so the caller can tell the user nothing was saved.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def enqueue(self, item: PendingMediaItem) -> None:
        self.enqueue_many([item])

    def enqueue_note(self, note: PendingNoteItem) -> None:
        self.enqueue_many([], [note])

    def enqueue_many(
        self,
        items: Iterable[PendingMediaItem],
        notes: Iterable[PendingNoteItem] = (),
    ) -> int:
        """Persist all items and notes in one transaction; return the media count."""
        rows = [_media_row(item) for item in items]
        note_rows = [_note_row(note) for note in notes]
        try:
            with session_scope(self._session_factory) as db:
                db.add_all(rows)
                db.add_all(note_rows)
        except SQLAlchemyError as exc:
            raise OfflineQueueError(f"Failed to save offline: {exc}") from exc
        return len(rows)

    def pending_media(self) -> list[PendingMediaItem]:
        with session_scope(self._session_factory) as db:
            rows = db.execute(
                select(PendingMedia).order_by(PendingMedia.created_at, PendingMedia.queued_at)
            ).scalars().all()
            return [_media_item(row) for row in rows]

    def pending_notes(self) -> list[PendingNoteItem]:
        with session_scope(self._session_factory) as db:
            rows = db.execute(select(PendingNote).order_by(PendingNote.created_at)).scalars().all()
            return [_note_item(row) for row in rows]

    def remove_media(self, item_id: str) -> None:
        with session_scope(self._session_factory) as db:
            db.execute(delete(PendingMedia).where(PendingMedia.id == item_id))

    def remove_note(self, note_id: str) -> None:
        with session_scope(self._session_factory) as db:
            db.execute(delete(PendingNote).where(PendingNote.id == note_id))

    def counts(self) -> dict[str, int]:
        with session_scope(self._session_factory) as db:
            media = db.execute(select(func.count(PendingMedia.id))).scalar_one()
            notes = db.execute(select(func.count(PendingNote.id))).scalar_one()
        return {"media": int(media), "notes": int(notes)}


def _media_row(item: PendingMediaItem) -> PendingMedia:
    return PendingMedia(
        id=item.id,
        report_id=item.report_id,
        user_id=item.user_id,
        file_data=item.file_data,
        file_name=item.file_name,
        mime_type=item.mime_type,
        file_type=item.file_type.value,
        file_size=item.file_size,
        caption=item.caption,
        voice_note=item.voice_note,
        latitude=item.latitude,
        longitude=item.longitude,
        location_name=item.location_name,
        captured_at=item.captured_at,
        created_at=item.created_at,
    )


def _media_item(row: PendingMedia) -> PendingMediaItem:
    return PendingMediaItem(
        id=row.id,
        report_id=row.report_id,
        user_id=row.user_id,
        file_data=row.file_data,
        file_name=row.file_name,
        mime_type=row.mime_type,
        file_type=MediaKind(row.file_type),
        file_size=row.file_size,
        created_at=row.created_at,
        caption=row.caption,
        voice_note=row.voice_note,
        latitude=row.latitude,
        longitude=row.longitude,
        location_name=row.location_name,
        captured_at=row.captured_at,
    )


def _note_row(note: PendingNoteItem) -> PendingNote:
    return PendingNote(
        id=note.id,
        report_id=note.report_id,
        user_id=note.user_id,
        note_text=note.note_text,
        created_at=note.created_at,
    )


def _note_item(row: PendingNote) -> PendingNoteItem:
    return PendingNoteItem(
        id=row.id,
        user_id=row.user_id,
        note_text=row.note_text,
        created_at=row.created_at,
        report_id=row.report_id,
    )
