"""Custom exceptions for the capture-and-submit pipeline."""


class CaptureError(Exception):
    """Base exception for capture session failures."""


class UnauthenticatedError(CaptureError):
    """Raised when submit is attempted without a signed-in user."""


class EmptySessionError(CaptureError):
    """Raised when submit is attempted with no items and no notes."""


class ItemNotFoundError(CaptureError, KeyError):
    """Raised when an operation targets an unknown item id."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class OfflineQueueError(CaptureError):
    """Raised when pending media cannot be written to the local store."""


class ReportGenerationError(Exception):
    """Base exception for AI report generation failures.

    Every subclass leaves the captured items untouched so the user can retry.
    """


class SummaryTimeoutError(ReportGenerationError):
    """Raised when the summary request exceeds its deadline."""


class SummaryServiceError(ReportGenerationError):
    """Raised when the summary service responds with an error."""


class EmptySummaryError(ReportGenerationError):
    """Raised when the summary service succeeds but produces no text."""
