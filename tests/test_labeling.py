from __future__ import annotations

from base64 import b64decode
import unittest

from fieldreport.capture import PhotoLabeler, VoiceTranscriber
from fieldreport.media import from_data_url, image_dimensions
from tests.support import FakeBackend, make_jpeg


class PhotoLabelerTests(unittest.IsolatedAsyncioTestCase):
    async def test_sends_compressed_photo_and_context(self) -> None:
        backend = FakeBackend()
        backend.functions["label-photo"] = lambda body: {"label": "  Water damage on ceiling  "}

        label = await PhotoLabeler(backend, max_dimension=256).label(
            make_jpeg(1024, 512), context="stain above sink"
        )

        self.assertEqual(label, "Water damage on ceiling")
        body = backend.calls_to("label-photo")[0]
        self.assertEqual(body["context"], "stain above sink")
        data, mime_type = from_data_url(body["imageBase64"])
        self.assertEqual(mime_type, "image/jpeg")
        self.assertEqual(image_dimensions(data), (256, 128))

    async def test_context_is_omitted_when_absent(self) -> None:
        backend = FakeBackend()
        backend.functions["label-photo"] = lambda body: {"label": "Door"}

        await PhotoLabeler(backend).label(make_jpeg())

        self.assertNotIn("context", backend.calls_to("label-photo")[0])

    async def test_failures_and_blank_labels_yield_none(self) -> None:
        backend = FakeBackend()
        labeler = PhotoLabeler(backend)

        with self.assertLogs("fieldreport.capture.labeling", level="WARNING"):
            self.assertIsNone(await labeler.label(make_jpeg()))

        backend.functions["label-photo"] = lambda body: {"label": "   "}
        self.assertIsNone(await labeler.label(make_jpeg()))

        with self.assertLogs("fieldreport.capture.labeling", level="WARNING"):
            self.assertIsNone(await labeler.label(b"not an image"))


class VoiceTranscriberTests(unittest.IsolatedAsyncioTestCase):
    async def test_sends_base64_audio(self) -> None:
        backend = FakeBackend()
        backend.functions["transcribe-audio"] = lambda body: {"text": " Leak under the sink. "}
        audio = b"\x1aE\xdf\xa3" * 64

        text = await VoiceTranscriber(backend).transcribe(audio, "audio/webm")

        self.assertEqual(text, "Leak under the sink.")
        body = backend.calls_to("transcribe-audio")[0]
        self.assertEqual(b64decode(body["audio"]), audio)
        self.assertEqual(body["mimeType"], "audio/webm")

    async def test_short_recording_is_not_sent(self) -> None:
        backend = FakeBackend()

        self.assertIsNone(await VoiceTranscriber(backend).transcribe(b"tiny", "audio/webm"))
        self.assertEqual(backend.calls, [])

    async def test_failure_yields_none(self) -> None:
        backend = FakeBackend()

        with self.assertLogs("fieldreport.capture.labeling", level="WARNING"):
            self.assertIsNone(await VoiceTranscriber(backend).transcribe(b"x" * 500, "audio/mp4"))


if __name__ == "__main__":
    unittest.main()
