"""Service-layer background jobs."""

from .sync import OfflineSyncer, SyncProgress, media_upload_path

__all__ = ["OfflineSyncer", "SyncProgress", "media_upload_path"]
