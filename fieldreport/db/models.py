"""Local durable storage models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class Draft(Base):
    """Snapshot of the in-progress capture session."""

    __tablename__ = "drafts"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    linked_report_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    saved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    items: Mapped[list["DraftItem"]] = relationship(
        back_populates="draft",
        cascade="all, delete-orphan",
        order_by="DraftItem.position",
    )


class DraftItem(Base):
    """One captured item stored inside a draft snapshot."""

    __tablename__ = "draft_items"

    row_id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    draft_key: Mapped[str] = mapped_column(
        ForeignKey("drafts.key", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    item_id: Mapped[str] = mapped_column(String(100), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    binary: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    original_binary: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    caption: Mapped[str | None] = mapped_column(Text, nullable=True)
    caption_edited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    voice_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    captured_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    remote_thumbnail_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    draft: Mapped[Draft] = relationship(back_populates="items")


class PendingMedia(Base):
    """Media captured while offline, waiting for the sync worker."""

    __tablename__ = "pending_media"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    report_id: Mapped[str] = mapped_column(String(100), nullable=False)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    file_data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_type: Mapped[str] = mapped_column(String(20), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    caption: Mapped[str | None] = mapped_column(Text, nullable=True)
    voice_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    captured_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    queued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_pending_media_created_at", "created_at"),
    )


class PendingNote(Base):
    """Free-text field notes captured while offline."""

    __tablename__ = "pending_notes"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    report_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    note_text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
