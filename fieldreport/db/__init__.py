"""Local durable storage package."""

from .base import Base
from .models import Draft, DraftItem, PendingMedia, PendingNote
from .session import (
    build_engine,
    create_session_factory,
    ensure_schema,
    get_database_url,
    get_engine,
    get_session,
    session_scope,
)

__all__ = [
    "Base",
    "Draft",
    "DraftItem",
    "PendingMedia",
    "PendingNote",
    "build_engine",
    "create_session_factory",
    "ensure_schema",
    "get_database_url",
    "get_engine",
    "get_session",
    "session_scope",
]
