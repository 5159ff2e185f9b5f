"""Capture session orchestration: items, notes, background work and submit."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Coroutine, Iterable, Sequence
import asyncio
import logging
import uuid

from fieldreport.backend import BackendClient
from fieldreport.config import AppSettings
from fieldreport.media import Box, Line, draw_markup

from .drafts import DraftStore
from .exceptions import CaptureError, EmptySessionError, ItemNotFoundError, UnauthenticatedError
from .labeling import PhotoLabeler, VoiceTranscriber
from .models import (
    CaptureMetadata,
    CapturedItem,
    DraftSession,
    IncomingFile,
    MediaKind,
    PendingMediaItem,
    PendingNoteItem,
    ReportType,
    SubmitResult,
    UploadState,
    default_file_name,
    new_item_id,
)
from .offline_queue import OfflineQueue
from .report import ReportGenerationClient
from .thumbnails import ThumbnailUploader


LOGGER = logging.getLogger("fieldreport.capture.session")
PERSISTED_FIELDS = frozenset(
    {
        "binary",
        "original_binary",
        "mime_type",
        "caption",
        "caption_edited",
        "voice_note",
        "remote_thumbnail_path",
        "deleted",
    }
)


def ai_cap_warning(limit: int) -> str:
    return f"AI summary will use the first {limit} photos"


class CaptureSessionManager:
    """Owns the item list and notes of one capture session.

    All asynchronous completions (labels, thumbnails) write back through
    ``_patch``, which updates only the named fields of the item with the given
    id, so concurrent completions never replace each other's work.
    """

    def __init__(
        self,
        settings: AppSettings,
        backend: BackendClient,
        drafts: DraftStore,
        queue: OfflineQueue,
        reports: ReportGenerationClient | None = None,
        labeler: PhotoLabeler | None = None,
        transcriber: VoiceTranscriber | None = None,
        thumbnails: ThumbnailUploader | None = None,
        is_offline: Callable[[], bool] | None = None,
        on_warning: Callable[[str], None] | None = None,
    ) -> None:
        self._settings = settings
        self._backend = backend
        self._drafts = drafts
        self._queue = queue
        self._reports = reports or ReportGenerationClient(backend, settings)
        self._labeler = labeler or PhotoLabeler(backend, settings.thumbnail_max_dimension)
        self._transcriber = transcriber or VoiceTranscriber(backend)
        self._thumbnails = thumbnails or ThumbnailUploader(backend, settings.thumbnail_max_dimension)
        self._is_offline = is_offline or (lambda: settings.work_offline)
        self._on_warning = on_warning

        self._items: list[CapturedItem] = []
        self._notes = ""
        self._linked_report_id: str | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._draft_checked = False
        self._draft_offer: DraftSession | None = None
        self._submitting = False
        self.warnings: list[str] = []

    # -- views ---------------------------------------------------------------

    @property
    def items(self) -> list[CapturedItem]:
        """Every item in capture order, soft-deleted ones included."""
        return [item.copy() for item in self._items]

    @property
    def active_items(self) -> list[CapturedItem]:
        return [item.copy() for item in self._items if not item.deleted]

    @property
    def notes(self) -> str:
        return self._notes

    @property
    def linked_report_id(self) -> str | None:
        return self._linked_report_id

    @property
    def is_offline(self) -> bool:
        return self._is_offline()

    def get_item(self, item_id: str) -> CapturedItem:
        return self._require(item_id).copy()

    def snapshot(self) -> DraftSession:
        return DraftSession(
            items=self.items,
            notes=self._notes,
            linked_report_id=self._linked_report_id,
        )

    def items_by_id(self, item_ids: Sequence[str]) -> list[CapturedItem]:
        wanted = set(item_ids)
        return [item.copy() for item in self._items if item.id in wanted]

    # -- drafts ----------------------------------------------------------------

    def load_draft(self) -> DraftSession | None:
        """Read the stored draft once per session and offer it for restoration."""
        if not self._draft_checked:
            self._draft_checked = True
            self._draft_offer = self._drafts.load()
        return self._draft_offer

    def restore_draft(self, draft: DraftSession) -> None:
        """Replace the session state with ``draft`` and resume thumbnail uploads."""
        self._cancel_background()
        self._items = [item.copy() for item in draft.items]
        self._notes = draft.notes
        self._linked_report_id = draft.linked_report_id
        self._draft_offer = None
        for item in self._items:
            if item.is_photo and not item.deleted and not item.remote_thumbnail_path:
                self._start_thumbnail(item.id)
        LOGGER.info("Restored draft with %s items", len(self._items))

    # -- mutations -------------------------------------------------------------

    def add_items(
        self,
        files: Iterable[IncomingFile],
        metadata: CaptureMetadata | None = None,
    ) -> list[CapturedItem]:
        """Append newly captured files and start best-effort background work."""
        limit = self._settings.ai_photo_limit
        photos_before = self._active_photo_count()
        stamping = self._settings.location_stamping
        added: list[CapturedItem] = []

        for incoming in files:
            item_id = new_item_id()
            kind = incoming.kind
            item = CapturedItem(
                id=item_id,
                binary=incoming.data,
                kind=kind,
                mime_type=incoming.mime_type,
                file_name=incoming.file_name or default_file_name(item_id, kind, incoming.mime_type),
                location=metadata.location if stamping and metadata else None,
                captured_at=_capture_time(metadata) if stamping else None,
                upload_state=UploadState.UPLOADING if kind is MediaKind.PHOTO else None,
            )
            self._items.append(item)
            added.append(item)

        if not added:
            return []

        if photos_before <= limit < self._active_photo_count():
            self._warn(ai_cap_warning(limit))

        for item in added:
            if item.is_photo:
                self._start_label(item.id)
                self._start_thumbnail(item.id)
        self._schedule_draft_save()
        LOGGER.info("Added %s items (active=%s)", len(added), len(self.active_items))
        return [item.copy() for item in added]

    def delete_item(self, item_id: str) -> None:
        self._require(item_id)
        self._patch(item_id, deleted=True)

    def restore_item(self, item_id: str) -> None:
        self._require(item_id)
        self._patch(item_id, deleted=False)

    def edit_caption(self, item_id: str, text: str) -> None:
        """Set a user caption; AI labels never overwrite it afterwards."""
        self._require(item_id)
        self._patch(item_id, caption=text.strip() or None, caption_edited=True)

    def annotate(self, item_id: str, new_binary: bytes, mime_type: str | None = None) -> None:
        """Swap in an annotated photo, keeping the pre-annotation bytes once."""
        item = self._require(item_id)
        if not item.is_photo:
            raise CaptureError("Only photos can be annotated")
        original = item.original_binary if item.original_binary is not None else item.binary
        changes: dict[str, Any] = {"binary": new_binary, "original_binary": original}
        if mime_type:
            changes["mime_type"] = mime_type
        self._patch(item_id, **changes)
        self._start_thumbnail(item_id)

    async def annotate_markup(
        self,
        item_id: str,
        boxes: list[Box] | None = None,
        lines: list[Line] | None = None,
    ) -> None:
        """Draw markup on top of the current photo and annotate with the result."""
        item = self._require(item_id)
        if not item.is_photo:
            raise CaptureError("Only photos can be annotated")
        rendered = await asyncio.to_thread(draw_markup, item.binary, boxes, lines)
        self.annotate(item_id, rendered, "image/jpeg")

    def attach_voice_note(self, item_id: str, transcript: str) -> None:
        """Attach a transcript; photos get a fresh label using it as context."""
        item = self._require(item_id)
        self._patch(item_id, voice_note=transcript.strip() or None)
        if item.is_photo:
            self._start_label(item_id)

    async def record_voice_note(self, item_id: str, audio: bytes, mime_type: str) -> str | None:
        """Transcribe a per-item recording and attach it; None when transcription fails."""
        self._require(item_id)
        transcript = await self._transcriber.transcribe(audio, mime_type)
        if transcript is None or self._get(item_id) is None:
            return None
        self.attach_voice_note(item_id, transcript)
        return transcript

    async def dictate_notes(self, audio: bytes, mime_type: str) -> str | None:
        """Transcribe audio and append it to the free-text notes."""
        transcript = await self._transcriber.transcribe(audio, mime_type)
        if transcript is None:
            return None
        self.set_notes(f"{self._notes.rstrip()} {transcript}".strip())
        return transcript

    def set_notes(self, text: str) -> None:
        self._notes = text
        self._schedule_draft_save()

    def link_report(self, report_id: str | None) -> None:
        self._linked_report_id = report_id
        self._schedule_draft_save()

    def discard_all(self) -> None:
        """Drop every item, the notes and the stored draft."""
        self._cancel_background()
        self._reset()
        LOGGER.info("Capture session discarded")

    # -- submit ----------------------------------------------------------------

    async def submit(self, report_type: ReportType = ReportType.DAILY) -> SubmitResult:
        """Queue the session offline or generate a report online.

        Failures leave the items and the draft in place for a retry.
        """
        if self._submitting:
            raise CaptureError("A submit is already in progress")
        active = self.active_items
        if not active and not self._notes.strip():
            raise EmptySessionError("Please add some content first")

        user_id = self._backend.current_user_id()
        if user_id is None:
            await self._drafts.flush()
            raise UnauthenticatedError("Sign in to submit this report")

        consumed_ids = {item.id for item in self._items}
        submitted_notes = self._notes
        self._submitting = True
        try:
            if self._is_offline():
                result = self._submit_offline(user_id, active)
                self._finish_submit(consumed_ids, submitted_notes)
                return result
            report = await self._reports.generate(
                active,
                submitted_notes,
                report_type,
                refresh=self.items_by_id,
            )
            self._finish_submit(consumed_ids, submitted_notes)
            return SubmitResult(offline=False, report=report, items=active)
        finally:
            self._submitting = False

    def _submit_offline(self, user_id: str, active: list[CapturedItem]) -> SubmitResult:
        report_id = self._linked_report_id or str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        pending = [
            PendingMediaItem(
                id=item.id,
                report_id=report_id,
                user_id=user_id,
                file_data=item.binary,
                file_name=item.file_name,
                mime_type=item.mime_type,
                file_type=item.kind,
                file_size=len(item.binary),
                created_at=now,
                caption=item.caption,
                voice_note=item.voice_note,
                latitude=item.location.latitude if item.location else None,
                longitude=item.location.longitude if item.location else None,
                location_name=item.location.name if item.location else None,
                captured_at=item.captured_at,
            )
            for item in active
        ]
        notes: list[PendingNoteItem] = []
        if self._notes.strip():
            notes.append(
                PendingNoteItem(
                    id=new_item_id(),
                    user_id=user_id,
                    note_text=self._notes.strip(),
                    created_at=now,
                    report_id=report_id,
                )
            )
        queued = self._queue.enqueue_many(pending, notes)
        LOGGER.info("Queued %s items offline for report=%s", queued, report_id)
        return SubmitResult(offline=True, queued_count=queued, items=active)

    def _finish_submit(self, consumed_ids: set[str], submitted_notes: str) -> None:
        """Drop what was submitted; keep anything captured while the submit ran."""
        self._items = [item for item in self._items if item.id not in consumed_ids]
        if self._notes == submitted_notes:
            self._notes = ""
        if not self._items and not self._notes.strip():
            self._cancel_background()
            self._reset()
            return
        LOGGER.info("Keeping %s items captured during submit", len(self._items))
        self._schedule_draft_save()

    # -- background work -------------------------------------------------------

    async def wait_background(self) -> None:
        """Wait until every in-flight label and thumbnail task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        self._cancel_background()
        await self._drafts.aclose()

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _start_label(self, item_id: str) -> None:
        item = self._get(item_id)
        if item is None or self._is_offline():
            return
        seq = item.label_seq + 1
        self._patch(item_id, label_seq=seq, labeling=True)
        self._spawn(self._run_label(item_id, seq, item.binary, item.voice_note))

    async def _run_label(
        self,
        item_id: str,
        seq: int,
        binary: bytes,
        context: str | None,
    ) -> None:
        label: str | None = None
        try:
            label = await asyncio.wait_for(
                self._labeler.label(binary, context),
                timeout=self._settings.label_timeout_seconds,
            )
        except asyncio.TimeoutError:
            LOGGER.warning("Labeling timed out for item=%s", item_id)
        except Exception as exc:
            LOGGER.warning("Labeling failed for item=%s: %s", item_id, exc)

        item = self._get(item_id)
        if item is None or item.label_seq != seq:
            LOGGER.debug("Discarding superseded label for item=%s", item_id)
            return
        changes: dict[str, Any] = {"labeling": False}
        if label and not item.caption_edited:
            changes["caption"] = label
        self._patch(item_id, **changes)

    def _start_thumbnail(self, item_id: str) -> None:
        item = self._get(item_id)
        if item is None:
            return
        seq = item.upload_seq + 1
        if self._is_offline():
            self._patch(
                item_id,
                upload_seq=seq,
                upload_state=UploadState.FAILED,
                remote_thumbnail_path=None,
            )
            return
        updated = self._patch(
            item_id,
            upload_seq=seq,
            upload_state=UploadState.UPLOADING,
            remote_thumbnail_path=None,
        )
        if updated is not None:
            self._spawn(self._run_thumbnail(item_id, seq, updated.copy()))

    async def _run_thumbnail(self, item_id: str, seq: int, item: CapturedItem) -> None:
        path: str | None = None
        try:
            path = await self._thumbnails.upload(item)
        except Exception as exc:
            LOGGER.warning("Thumbnail upload failed for item=%s: %s", item_id, exc)

        current = self._get(item_id)
        if current is None or current.upload_seq != seq:
            return
        if path:
            self._patch(item_id, remote_thumbnail_path=path, upload_state=UploadState.UPLOADED)
        else:
            self._patch(item_id, upload_state=UploadState.FAILED)

    def _cancel_background(self) -> None:
        for task in list(self._tasks):
            task.cancel()

    # -- internals -------------------------------------------------------------

    def _get(self, item_id: str) -> CapturedItem | None:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def _require(self, item_id: str) -> CapturedItem:
        item = self._get(item_id)
        if item is None:
            raise ItemNotFoundError(f"Unknown item: {item_id}")
        return item

    def _patch(self, item_id: str, **changes: Any) -> CapturedItem | None:
        """Single mutation entry point: update only ``changes`` on one item."""
        item = self._get(item_id)
        if item is None:
            return None
        for name, value in changes.items():
            setattr(item, name, value)
        if PERSISTED_FIELDS.intersection(changes):
            self._schedule_draft_save()
        return item

    def _active_photo_count(self) -> int:
        return sum(1 for item in self._items if item.is_photo and not item.deleted)

    def _schedule_draft_save(self) -> None:
        self._drafts.schedule_save(self.snapshot)

    def _reset(self) -> None:
        self._items = []
        self._notes = ""
        self._linked_report_id = None
        self._drafts.clear()

    def _warn(self, message: str) -> None:
        LOGGER.warning(message)
        self.warnings.append(message)
        if self._on_warning is not None:
            self._on_warning(message)


def _capture_time(metadata: CaptureMetadata | None) -> datetime:
    if metadata is not None and metadata.captured_at is not None:
        return metadata.captured_at
    return datetime.now(timezone.utc)
