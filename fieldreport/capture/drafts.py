"""Local draft persistence for unsubmitted capture sessions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable
import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from fieldreport.db.models import Draft, DraftItem
from fieldreport.db.session import session_scope

from .models import CapturedItem, DraftSession, Location, MediaKind, UploadState


DRAFT_KEY = "current-draft"
LOGGER = logging.getLogger("fieldreport.capture.drafts")

SnapshotFn = Callable[[], DraftSession]


class DraftStore:
    """Full-snapshot draft storage with a debounced, cancellable save task."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        debounce_seconds: float = 2.0,
        key: str = DRAFT_KEY,
    ) -> None:
        self._session_factory = session_factory
        self._debounce_seconds = debounce_seconds
        self._key = key
        self._pending: asyncio.Task[None] | None = None
        self._pending_snapshot: SnapshotFn | None = None

    @property
    def has_pending_save(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def save(self, draft: DraftSession) -> None:
        """Overwrite the stored snapshot with ``draft``."""
        with session_scope(self._session_factory) as db:
            existing = db.get(Draft, self._key)
            if existing is not None:
                db.delete(existing)
                db.flush()
            db.add(
                Draft(
                    key=self._key,
                    notes=draft.notes,
                    linked_report_id=draft.linked_report_id,
                    saved_at=datetime.now(timezone.utc),
                    items=[_to_row(position, item) for position, item in enumerate(draft.items)],
                )
            )

    def load(self) -> DraftSession | None:
        """Return the stored snapshot or None."""
        with session_scope(self._session_factory) as db:
            row = db.get(Draft, self._key)
            if row is None:
                return None
            return DraftSession(
                items=[_from_row(item_row) for item_row in row.items],
                notes=row.notes,
                linked_report_id=row.linked_report_id,
                saved_at=row.saved_at,
            )

    def clear(self) -> None:
        """Drop any pending save and remove the stored snapshot."""
        self._cancel_pending()
        self._delete()

    def schedule_save(self, snapshot: SnapshotFn) -> None:
        """(Re)start the quiet-period timer; ``snapshot`` is read when it fires."""
        self._cancel_pending()
        self._pending_snapshot = snapshot
        self._pending = asyncio.get_running_loop().create_task(self._save_later())

    async def flush(self) -> None:
        """Run a pending save immediately."""
        snapshot = self._pending_snapshot
        if not self.has_pending_save or snapshot is None:
            return
        self._cancel_pending()
        self._persist(snapshot())

    async def aclose(self) -> None:
        task = self._pending
        self._cancel_pending()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _save_later(self) -> None:
        await asyncio.sleep(self._debounce_seconds)
        snapshot = self._pending_snapshot
        self._pending = None
        self._pending_snapshot = None
        if snapshot is not None:
            self._persist(snapshot())

    def _persist(self, draft: DraftSession) -> None:
        try:
            if draft.is_empty:
                self._delete()
            else:
                self.save(draft)
        except SQLAlchemyError:
            LOGGER.exception("Failed to save draft")

    def _delete(self) -> None:
        with session_scope(self._session_factory) as db:
            existing = db.get(Draft, self._key)
            if existing is not None:
                db.delete(existing)

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        self._pending_snapshot = None


def _to_row(position: int, item: CapturedItem) -> DraftItem:
    location = item.location
    return DraftItem(
        position=position,
        item_id=item.id,
        kind=item.kind.value,
        mime_type=item.mime_type,
        file_name=item.file_name,
        binary=item.binary,
        original_binary=item.original_binary,
        caption=item.caption,
        caption_edited=item.caption_edited,
        voice_note=item.voice_note,
        latitude=location.latitude if location else None,
        longitude=location.longitude if location else None,
        location_name=location.name if location else None,
        captured_at=item.captured_at,
        remote_thumbnail_path=item.remote_thumbnail_path,
        deleted=item.deleted,
    )


def _from_row(row: DraftItem) -> CapturedItem:
    kind = MediaKind(row.kind)
    location = None
    if row.latitude is not None and row.longitude is not None:
        location = Location(latitude=row.latitude, longitude=row.longitude, name=row.location_name)

    upload_state = None
    if kind is MediaKind.PHOTO:
        upload_state = UploadState.UPLOADED if row.remote_thumbnail_path else UploadState.FAILED

    return CapturedItem(
        id=row.item_id,
        binary=row.binary,
        kind=kind,
        mime_type=row.mime_type,
        file_name=row.file_name,
        original_binary=row.original_binary,
        caption=row.caption,
        caption_edited=row.caption_edited,
        voice_note=row.voice_note,
        location=location,
        captured_at=row.captured_at,
        remote_thumbnail_path=row.remote_thumbnail_path,
        upload_state=upload_state,
        deleted=row.deleted,
    )
