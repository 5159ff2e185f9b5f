"""Capture-and-submit pipeline."""

from .drafts import DraftStore
from .exceptions import (
    CaptureError,
    EmptySessionError,
    EmptySummaryError,
    ItemNotFoundError,
    OfflineQueueError,
    ReportGenerationError,
    SummaryServiceError,
    SummaryTimeoutError,
    UnauthenticatedError,
)
from .labeling import PhotoLabeler, VoiceTranscriber
from .models import (
    CaptureMetadata,
    CapturedItem,
    DisplayItem,
    DraftSession,
    IncomingFile,
    Location,
    MediaKind,
    PendingMediaItem,
    PendingNoteItem,
    ReportResult,
    ReportType,
    SubmitResult,
    UploadState,
)
from .offline_queue import OfflineQueue
from .report import ReportGenerationClient, build_video_context
from .session import CaptureSessionManager, ai_cap_warning
from .thumbnails import ThumbnailUploader

__all__ = [
    "CaptureError",
    "CaptureMetadata",
    "CaptureSessionManager",
    "CapturedItem",
    "DisplayItem",
    "DraftSession",
    "DraftStore",
    "EmptySessionError",
    "EmptySummaryError",
    "IncomingFile",
    "ItemNotFoundError",
    "Location",
    "MediaKind",
    "OfflineQueue",
    "OfflineQueueError",
    "PendingMediaItem",
    "PendingNoteItem",
    "PhotoLabeler",
    "ReportGenerationClient",
    "ReportGenerationError",
    "ReportResult",
    "ReportType",
    "SubmitResult",
    "SummaryServiceError",
    "SummaryTimeoutError",
    "ThumbnailUploader",
    "UnauthenticatedError",
    "UploadState",
    "VoiceTranscriber",
    "ai_cap_warning",
    "build_video_context",
]
