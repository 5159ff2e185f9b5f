"""Custom exceptions for backend service calls."""

from __future__ import annotations


class BackendError(Exception):
    """Base exception for backend-related failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StorageError(BackendError):
    """Raised when object storage rejects an upload or signing request."""


class FunctionError(BackendError):
    """Raised when a hosted function returns an error or cannot be reached."""


class TableError(BackendError):
    """Raised when a table insert fails."""
