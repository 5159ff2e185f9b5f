"""SQLAlchemy base models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for the local store's declarative models."""
