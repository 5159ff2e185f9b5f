"""Background upload of small AI-ready photo copies."""

from __future__ import annotations

import asyncio
import logging

from fieldreport.backend import BackendClient
from fieldreport.media import compress_image

from .models import CapturedItem


LOGGER = logging.getLogger("fieldreport.capture.thumbnails")
THUMBNAIL_MIME_TYPE = "image/jpeg"


def thumbnail_path(user_id: str, item_id: str, version: int = 1) -> str:
    suffix = "" if version <= 1 else f"-v{version}"
    return f"{user_id}/thumbnails/{item_id}{suffix}.jpg"


class ThumbnailUploader:
    """Compress and upload one photo; never raises."""

    def __init__(self, backend: BackendClient, max_dimension: int = 512) -> None:
        self._backend = backend
        self._max_dimension = max_dimension

    async def upload(self, item: CapturedItem) -> str | None:
        """Return the storage key of the uploaded thumbnail, or None on any failure."""
        user_id = self._backend.current_user_id()
        if user_id is None:
            LOGGER.info("Skipping thumbnail for item=%s: no signed-in user", item.id)
            return None
        try:
            thumbnail = await asyncio.to_thread(compress_image, item.binary, self._max_dimension)
            return await self._backend.upload(
                thumbnail_path(user_id, item.id, item.upload_seq),
                thumbnail,
                THUMBNAIL_MIME_TYPE,
            )
        except Exception as exc:
            LOGGER.warning("Thumbnail upload failed for item=%s: %s", item.id, exc)
            return None
