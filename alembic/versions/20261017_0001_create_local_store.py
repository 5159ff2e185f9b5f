"""create local draft and offline queue tables

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "drafts",
        sa.Column("key", sa.String(length=100), primary_key=True, nullable=False),
        sa.Column("notes", sa.Text(), nullable=False),
        sa.Column("linked_report_id", sa.String(length=100), nullable=True),
        sa.Column("saved_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "draft_items",
        sa.Column("row_id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column(
            "draft_key",
            sa.String(length=100),
            sa.ForeignKey("drafts.key", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.String(length=100), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("mime_type", sa.String(length=100), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("binary", sa.LargeBinary(), nullable=False),
        sa.Column("original_binary", sa.LargeBinary(), nullable=True),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("caption_edited", sa.Boolean(), nullable=False),
        sa.Column("voice_note", sa.Text(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("location_name", sa.String(length=255), nullable=True),
        sa.Column("captured_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("remote_thumbnail_path", sa.String(length=500), nullable=True),
        sa.Column("deleted", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_draft_items_draft_key", "draft_items", ["draft_key"])

    op.create_table(
        "pending_media",
        sa.Column("id", sa.String(length=100), primary_key=True, nullable=False),
        sa.Column("report_id", sa.String(length=100), nullable=False),
        sa.Column("user_id", sa.String(length=100), nullable=False),
        sa.Column("file_data", sa.LargeBinary(), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("mime_type", sa.String(length=100), nullable=False),
        sa.Column("file_type", sa.String(length=20), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("voice_note", sa.Text(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("location_name", sa.String(length=255), nullable=True),
        sa.Column("captured_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("queued_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_pending_media_created_at", "pending_media", ["created_at"])

    op.create_table(
        "pending_notes",
        sa.Column("id", sa.String(length=100), primary_key=True, nullable=False),
        sa.Column("report_id", sa.String(length=100), nullable=True),
        sa.Column("user_id", sa.String(length=100), nullable=False),
        sa.Column("note_text", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_pending_notes_created_at", "pending_notes", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_pending_notes_created_at", table_name="pending_notes")
    op.drop_table("pending_notes")
    op.drop_index("ix_pending_media_created_at", table_name="pending_media")
    op.drop_table("pending_media")
    op.drop_index("ix_draft_items_draft_key", table_name="draft_items")
    op.drop_table("draft_items")
    op.drop_table("drafts")
