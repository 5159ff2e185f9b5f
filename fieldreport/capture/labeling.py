"""Clients for the photo labeling and audio transcription functions."""

from __future__ import annotations

from base64 import b64encode
import asyncio
import logging

from fieldreport.backend import BackendClient
from fieldreport.media import compress_image, to_data_url


LOGGER = logging.getLogger("fieldreport.capture.labeling")
LABEL_FUNCTION = "label-photo"
TRANSCRIBE_FUNCTION = "transcribe-audio"
MIN_AUDIO_BYTES = 100


class PhotoLabeler:
    """Ask the labeling function for a short caption; failures yield None."""

    def __init__(self, backend: BackendClient, max_dimension: int = 512) -> None:
        self._backend = backend
        self._max_dimension = max_dimension

    async def label(self, image: bytes, context: str | None = None) -> str | None:
        try:
            compressed = await asyncio.to_thread(compress_image, image, self._max_dimension)
            body: dict[str, str] = {"imageBase64": to_data_url(compressed)}
            if context:
                body["context"] = context
            payload = await self._backend.invoke_function(LABEL_FUNCTION, body)
        except Exception as exc:
            LOGGER.warning("Label generation failed: %s", exc)
            return None
        label = str(payload.get("label") or "").strip()
        return label or None


class VoiceTranscriber:
    """Send recorded audio to the transcription function."""

    def __init__(self, backend: BackendClient) -> None:
        self._backend = backend

    async def transcribe(self, audio: bytes, mime_type: str) -> str | None:
        if len(audio) < MIN_AUDIO_BYTES:
            LOGGER.info("Recording too short to transcribe (%s bytes)", len(audio))
            return None
        body = {"audio": b64encode(audio).decode("ascii"), "mimeType": mime_type}
        try:
            payload = await self._backend.invoke_function(TRANSCRIBE_FUNCTION, body)
        except Exception as exc:
            LOGGER.warning("Transcription failed: %s", exc)
            return None
        text = str(payload.get("text") or "").strip()
        return text or None
