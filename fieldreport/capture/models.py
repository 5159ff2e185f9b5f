"""Value types for a capture session."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
import uuid


class MediaKind(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"


class UploadState(str, Enum):
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    FAILED = "failed"


class ReportType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    FIELD = "field"
    SITE_SURVEY = "site_survey"


@dataclass(frozen=True, slots=True)
class Location:
    latitude: float
    longitude: float
    name: str | None = None


@dataclass(frozen=True, slots=True)
class IncomingFile:
    """A freshly captured or picked file handed to the session."""

    data: bytes
    mime_type: str
    file_name: str | None = None

    @property
    def kind(self) -> MediaKind:
        return MediaKind.VIDEO if self.mime_type.startswith("video/") else MediaKind.PHOTO


@dataclass(frozen=True, slots=True)
class CaptureMetadata:
    """Where and when a batch of files was captured."""

    location: Location | None = None
    captured_at: datetime | None = None


@dataclass(slots=True)
class CapturedItem:
    """One photo or video in the current session.

    ``original_binary`` is only set once the item has been annotated and then
    always holds the bytes from before the first annotation.
    """

    id: str
    binary: bytes
    kind: MediaKind
    mime_type: str
    file_name: str
    original_binary: bytes | None = None
    caption: str | None = None
    caption_edited: bool = False
    voice_note: str | None = None
    location: Location | None = None
    captured_at: datetime | None = None
    remote_thumbnail_path: str | None = None
    upload_state: UploadState | None = None
    deleted: bool = False
    labeling: bool = False
    label_seq: int = 0
    upload_seq: int = 0

    @property
    def is_photo(self) -> bool:
        return self.kind is MediaKind.PHOTO

    def copy(self) -> "CapturedItem":
        return replace(self)


@dataclass(slots=True)
class DraftSession:
    """Persisted snapshot of an unsubmitted session."""

    items: list[CapturedItem]
    notes: str = ""
    linked_report_id: str | None = None
    saved_at: datetime | None = None

    @property
    def active_items(self) -> list[CapturedItem]:
        return [item for item in self.items if not item.deleted]

    @property
    def is_empty(self) -> bool:
        return not self.active_items and not self.notes.strip()


@dataclass(frozen=True, slots=True)
class PendingMediaItem:
    """A media file queued for upload once connectivity returns."""

    id: str
    report_id: str
    user_id: str
    file_data: bytes
    file_name: str
    mime_type: str
    file_type: MediaKind
    file_size: int
    created_at: datetime
    caption: str | None = None
    voice_note: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    location_name: str | None = None
    captured_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class PendingNoteItem:
    """Free-text notes queued for upload once connectivity returns."""

    id: str
    user_id: str
    note_text: str
    created_at: datetime
    report_id: str | None = None


@dataclass(frozen=True, slots=True)
class DisplayItem:
    """Full-resolution rendition of an item for the review stage."""

    id: str
    kind: MediaKind
    data_url: str
    caption: str | None
    voice_note: str | None
    location: Location | None
    captured_at: datetime | None


@dataclass(frozen=True, slots=True)
class ReportResult:
    summary: str
    display_items: list[DisplayItem]
    image_count: int
    fast_path_count: int


@dataclass(frozen=True, slots=True)
class SubmitResult:
    """Outcome of a successful submit on either path."""

    offline: bool
    queued_count: int = 0
    report: ReportResult | None = None
    items: list[CapturedItem] = field(default_factory=list)


def new_item_id() -> str:
    return uuid.uuid4().hex


def default_file_name(item_id: str, kind: MediaKind, mime_type: str) -> str:
    extension = mime_type.split("/", 1)[-1].split(";", 1)[0] or "bin"
    if extension == "jpeg":
        extension = "jpg"
    prefix = "photo" if kind is MediaKind.PHOTO else "video"
    return f"{prefix}-{item_id[:8]}.{extension}"
