"""Hosted backend integrations (auth, object storage, hosted functions)."""

from .auth import AuthSession
from .client import BackendClient
from .exceptions import BackendError, FunctionError, StorageError, TableError

__all__ = [
    "AuthSession",
    "BackendClient",
    "BackendError",
    "FunctionError",
    "StorageError",
    "TableError",
]
