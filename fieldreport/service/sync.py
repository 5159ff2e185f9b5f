"""Drain the offline queue into the hosted backend."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable
import logging
import time

from fieldreport.backend import BackendClient, BackendError
from fieldreport.capture.models import PendingMediaItem, PendingNoteItem
from fieldreport.capture.offline_queue import OfflineQueue


LOGGER = logging.getLogger("fieldreport.service.sync")


@dataclass(frozen=True, slots=True)
class SyncProgress:
    total: int
    completed: int
    failed: int
    in_progress: bool


SyncListener = Callable[[SyncProgress], None]


def media_upload_path(item: PendingMediaItem, timestamp_ms: int | None = None) -> str:
    stamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return f"{item.user_id}/{item.report_id}/{stamp}-{item.file_name}"


class OfflineSyncer:
    """Upload queued media and notes; failed items stay queued for the next pass."""

    def __init__(self, queue: OfflineQueue, backend: BackendClient) -> None:
        self._queue = queue
        self._backend = backend
        self._running = False
        self._listeners: list[SyncListener] = []

    @property
    def running(self) -> bool:
        return self._running

    def on_progress(self, listener: SyncListener) -> Callable[[], None]:
        """Register ``listener``; call the returned function to unregister it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def sync(self) -> SyncProgress:
        """Run one pass over the queue."""
        if self._running:
            return SyncProgress(total=0, completed=0, failed=0, in_progress=True)

        self._running = True
        try:
            pending_media = self._queue.pending_media()
            pending_notes = self._queue.pending_notes()
            total = len(pending_media) + len(pending_notes)
            if total == 0:
                return SyncProgress(total=0, completed=0, failed=0, in_progress=False)

            completed = 0
            failed = 0
            self._notify(SyncProgress(total, completed, failed, True))

            for item in pending_media:
                if await self._upload_media(item):
                    self._queue.remove_media(item.id)
                    completed += 1
                else:
                    failed += 1
                self._notify(SyncProgress(total, completed, failed, True))

            for note in pending_notes:
                if await self._upload_note(note):
                    self._queue.remove_note(note.id)
                    completed += 1
                else:
                    failed += 1
                self._notify(SyncProgress(total, completed, failed, True))

            final = SyncProgress(total, completed, failed, False)
            self._notify(final)
            return final
        finally:
            self._running = False

    async def _upload_media(self, item: PendingMediaItem) -> bool:
        path = media_upload_path(item)
        try:
            await self._backend.upload(path, item.file_data, item.mime_type)
            await self._backend.insert(
                "media",
                {
                    "user_id": item.user_id,
                    "report_id": item.report_id,
                    "file_path": path,
                    "file_type": item.file_type.value,
                    "mime_type": item.mime_type,
                    "file_size": item.file_size,
                    "latitude": item.latitude,
                    "longitude": item.longitude,
                    "captured_at": _isoformat(item.captured_at or datetime.now(timezone.utc)),
                    "location_name": item.location_name,
                },
            )
        except BackendError as exc:
            LOGGER.warning("Offline sync failed for media id=%s: %s", item.id, exc)
            return False
        return True

    async def _upload_note(self, note: PendingNoteItem) -> bool:
        try:
            await self._backend.insert(
                "notes",
                {
                    "user_id": note.user_id,
                    "report_id": note.report_id,
                    "note_text": note.note_text,
                },
            )
        except BackendError as exc:
            LOGGER.warning("Offline sync failed for note id=%s: %s", note.id, exc)
            return False
        return True

    def _notify(self, progress: SyncProgress) -> None:
        for listener in list(self._listeners):
            listener(progress)


def _isoformat(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()
