"""Build and send the AI summary request for a capture session."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence
import asyncio
import logging
import time

import httpx

from fieldreport.backend import BackendClient, BackendError
from fieldreport.config import AppSettings
from fieldreport.media import ImageProcessingError, compress_image, to_data_url

from .exceptions import EmptySummaryError, SummaryServiceError, SummaryTimeoutError
from .models import CapturedItem, DisplayItem, ReportResult, ReportType, UploadState


LOGGER = logging.getLogger("fieldreport.capture.report")
SUMMARY_FUNCTION = "generate-report-summary"
TIMEOUT_MESSAGE = (
    "AI summary timed out. Try reducing the number of photos or waiting for uploads to finish."
)
EMPTY_SUMMARY_MESSAGE = "The AI service did not produce a summary. Please try again."
NO_VIDEO_NOTE = "Video clip (no voice note recorded)"

ItemsRefresher = Callable[[Sequence[str]], list[CapturedItem]]


@dataclass(frozen=True, slots=True)
class ResolvedImage:
    item_id: str
    url: str
    fast_path: bool


def build_video_context(videos: Sequence[CapturedItem]) -> list[str]:
    """One line per video: its voice note, else its caption, else a placeholder."""
    lines: list[str] = []
    for video in videos:
        text = (video.voice_note or "").strip() or (video.caption or "").strip()
        lines.append(text or NO_VIDEO_NOTE)
    return lines


class ReportGenerationClient:
    """Turns active items into a summary request under size and latency bounds."""

    def __init__(self, backend: BackendClient, settings: AppSettings) -> None:
        self._backend = backend
        self._photo_limit = settings.ai_photo_limit
        self._max_dimension = settings.thumbnail_max_dimension
        self._signed_url_ttl = settings.signed_url_ttl_seconds
        self._summary_timeout = settings.summary_timeout_seconds
        self._settle_seconds = settings.upload_settle_seconds
        self._poll_seconds = settings.upload_poll_seconds

    async def generate(
        self,
        items: Sequence[CapturedItem],
        notes: str,
        report_type: ReportType = ReportType.DAILY,
        refresh: ItemsRefresher | None = None,
    ) -> ReportResult:
        """Generate a summary for ``items``.

        ``refresh`` returns current copies of the given item ids; it lets the
        client observe thumbnail uploads that finish while it is waiting.
        """
        active = [item for item in items if not item.deleted]
        photos = [item for item in active if item.is_photo]
        videos = [item for item in active if not item.is_photo]
        capped = photos[: self._photo_limit]

        resolved = await self.resolve_image_urls(capped)
        video_context = build_video_context(videos)

        if refresh is not None and _any_uploading(capped):
            capped_ids = [photo.id for photo in capped]
            await self.wait_for_uploads(capped_ids, refresh)
            capped = _merge_fresh(capped, refresh(capped_ids))
            resolved = await self._re_resolve(capped, resolved)

        captions = {photo.id: (photo.caption or "") for photo in capped}
        body = {
            "description": notes,
            "imageDataUrls": [image.url for image in resolved],
            "photoCaptions": [captions[image.item_id] for image in resolved],
            "videoContext": video_context,
            "reportType": report_type.value,
        }
        fast_path_count = sum(1 for image in resolved if image.fast_path)
        LOGGER.info(
            "Requesting %s summary images=%s fast_path=%s videos=%s",
            report_type.value,
            len(resolved),
            fast_path_count,
            len(videos),
        )

        summary_task = asyncio.create_task(self._request_summary(body))
        display_task = asyncio.create_task(self.encode_display(active))
        try:
            summary = await summary_task
        except BaseException:
            display_task.cancel()
            raise
        display_items = await display_task

        return ReportResult(
            summary=summary,
            display_items=display_items,
            image_count=len(resolved),
            fast_path_count=fast_path_count,
        )

    async def resolve_image_urls(self, photos: Sequence[CapturedItem]) -> list[ResolvedImage]:
        """Resolve every photo concurrently; undecodable photos are dropped."""
        results = await asyncio.gather(*(self._resolve_one(photo) for photo in photos))
        return [result for result in results if result is not None]

    async def wait_for_uploads(self, item_ids: Sequence[str], refresh: ItemsRefresher) -> bool:
        """Poll until no listed photo is uploading; give up after the settle window."""
        started = time.monotonic()

        async def settled() -> None:
            while _any_uploading(refresh(item_ids)):
                await asyncio.sleep(self._poll_seconds)

        try:
            await asyncio.wait_for(settled(), timeout=self._settle_seconds)
        except asyncio.TimeoutError:
            LOGGER.info("Proceeding with uploads still in flight after %.1fs", self._settle_seconds)
            return False
        LOGGER.info("Uploads settled after %.1fs", time.monotonic() - started)
        return True

    async def encode_display(self, items: Sequence[CapturedItem]) -> list[DisplayItem]:
        """Full-resolution data URLs for the review stage."""

        def encode() -> list[DisplayItem]:
            return [
                DisplayItem(
                    id=item.id,
                    kind=item.kind,
                    data_url=to_data_url(item.binary, item.mime_type),
                    caption=item.caption,
                    voice_note=item.voice_note,
                    location=item.location,
                    captured_at=item.captured_at,
                )
                for item in items
            ]

        return await asyncio.to_thread(encode)

    async def _re_resolve(
        self,
        photos: Sequence[CapturedItem],
        previous: Sequence[ResolvedImage],
    ) -> list[ResolvedImage]:
        by_id = {image.item_id: image for image in previous}

        async def pick(photo: CapturedItem) -> ResolvedImage | None:
            earlier = by_id.get(photo.id)
            if earlier is not None and (earlier.fast_path or not photo.remote_thumbnail_path):
                return earlier
            return await self._resolve_one(photo)

        results = await asyncio.gather(*(pick(photo) for photo in photos))
        return [result for result in results if result is not None]

    async def _resolve_one(self, photo: CapturedItem) -> ResolvedImage | None:
        if photo.remote_thumbnail_path:
            try:
                url = await self._backend.create_signed_url(
                    photo.remote_thumbnail_path, self._signed_url_ttl
                )
                return ResolvedImage(item_id=photo.id, url=url, fast_path=True)
            except (BackendError, httpx.HTTPError) as exc:
                LOGGER.warning("Signing failed for item=%s, using inline image: %s", photo.id, exc)
        try:
            compressed = await asyncio.to_thread(compress_image, photo.binary, self._max_dimension)
        except ImageProcessingError as exc:
            LOGGER.warning("Skipping undecodable photo item=%s: %s", photo.id, exc)
            return None
        return ResolvedImage(item_id=photo.id, url=to_data_url(compressed), fast_path=False)

    async def _request_summary(self, body: dict[str, object]) -> str:
        try:
            payload = await asyncio.wait_for(
                self._backend.invoke_function(
                    SUMMARY_FUNCTION,
                    body,
                    timeout_sec=self._summary_timeout + 5.0,
                ),
                timeout=self._summary_timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise SummaryTimeoutError(TIMEOUT_MESSAGE) from exc
        except BackendError as exc:
            raise SummaryServiceError(str(exc)) from exc

        summary = payload.get("summary")
        if not isinstance(summary, str) or not summary.strip():
            raise EmptySummaryError(EMPTY_SUMMARY_MESSAGE)
        return summary.strip()


def _any_uploading(items: Sequence[CapturedItem]) -> bool:
    return any(item.upload_state is UploadState.UPLOADING for item in items)


def _merge_fresh(
    photos: Sequence[CapturedItem],
    fresh: Sequence[CapturedItem],
) -> list[CapturedItem]:
    by_id = {item.id: item for item in fresh}
    return [by_id.get(photo.id, photo) for photo in photos]
