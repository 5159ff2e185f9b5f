from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, patch
import asyncio
import tempfile
import unittest

from fastapi.testclient import TestClient

from fieldreport.backend import AuthSession
from fieldreport.capture import DraftStore, OfflineQueue, SubmitResult
from fieldreport.runtime import Runtime
from fieldreport.web.app import create_app
from tests.support import FakeBackend, make_jpeg, make_settings, make_store, make_token


class WebAppTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmpdir.cleanup)
        engine, session_factory = make_store(self._tmpdir.name)
        self.addCleanup(engine.dispose)

        self.backend = FakeBackend()
        self.backend.functions["label-photo"] = lambda body: {"label": "Meter box"}
        self.backend.functions["generate-report-summary"] = lambda body: {"summary": "Everything checked."}
        self.runtime = Runtime(
            settings=make_settings(summary_timeout_seconds=0.2),
            session_factory=session_factory,
            auth=AuthSession(make_token()),
            backend=self.backend,
            drafts=DraftStore(session_factory, debounce_seconds=0.05),
            queue=OfflineQueue(session_factory),
        )
        self.client = TestClient(create_app(self.runtime))
        self.client.__enter__()
        self.addCleanup(self.client.__exit__, None, None, None)

    def _add_photo(self, **form: Any) -> dict[str, Any]:
        response = self.client.post(
            "/api/session/items",
            files=[("files", ("site.jpg", make_jpeg(), "image/jpeg"))],
            data=form,
        )
        self.assertEqual(response.status_code, 200)
        return response.json()["items"][0]

    def test_healthz(self) -> None:
        response = self.client.get("/healthz")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_add_items_with_location(self) -> None:
        response = self.client.post(
            "/api/session/items",
            files=[
                ("files", ("site.jpg", make_jpeg(), "image/jpeg")),
                ("files", ("walk.mp4", b"\x00\x00\x00\x18ftypmp42", "video/mp4")),
            ],
            data={"latitude": "59.37", "longitude": "28.19", "location_name": "Dock 4"},
        )

        self.assertEqual(response.status_code, 200)
        photo, video = response.json()["items"]
        self.assertEqual(photo["kind"], "photo")
        self.assertEqual(photo["upload_state"], "uploading")
        self.assertEqual(photo["location"], {"latitude": 59.37, "longitude": 28.19, "name": "Dock 4"})
        self.assertEqual(video["kind"], "video")
        self.assertEqual(video["file_name"], "walk.mp4")

        session = self.client.get("/api/session").json()
        self.assertEqual(session["active_count"], 2)

    def test_item_editing_endpoints(self) -> None:
        item = self._add_photo()
        item_id = item["id"]

        caption = self.client.put(f"/api/session/items/{item_id}/caption", json={"text": "Gas meter"})
        self.assertEqual(caption.json()["caption"], "Gas meter")
        self.assertTrue(caption.json()["caption_edited"])

        deleted = self.client.delete(f"/api/session/items/{item_id}")
        self.assertTrue(deleted.json()["deleted"])
        self.assertEqual(self.client.get("/api/session").json()["active_count"], 0)

        restored = self.client.post(f"/api/session/items/{item_id}/restore")
        self.assertFalse(restored.json()["deleted"])

        markup = self.client.post(
            f"/api/session/items/{item_id}/markup", json={"boxes": [[1, 1, 20, 20]]}
        )
        self.assertEqual(markup.status_code, 200)
        self.assertTrue(markup.json()["annotated"])

        file_response = self.client.get(f"/api/session/items/{item_id}/file")
        self.assertEqual(file_response.headers["content-type"], "image/jpeg")
        self.assertEqual(file_response.content[:2], b"\xff\xd8")

    def test_unknown_item_is_404(self) -> None:
        response = self.client.put("/api/session/items/missing/caption", json={"text": "x"})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"], "Unknown item: missing")

    def test_short_voice_note_is_422(self) -> None:
        item = self._add_photo()

        response = self.client.post(
            f"/api/session/items/{item['id']}/voice-note",
            files={"audio": ("note.webm", b"tiny", "audio/webm")},
        )

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["detail"], "Failed to transcribe audio")

    def test_notes_and_report_link(self) -> None:
        self.client.put("/api/session/notes", json={"text": "Boiler room"})
        response = self.client.put("/api/session/report", json={"report_id": "report-5"})

        self.assertEqual(response.json()["notes"], "Boiler room")
        self.assertEqual(response.json()["linked_report_id"], "report-5")

    def test_draft_endpoints(self) -> None:
        self.assertEqual(self.client.get("/api/draft").json(), {"available": False})

        response = self.client.post("/api/draft/restore")

        self.assertEqual(response.status_code, 404)

    def test_empty_submit_is_400(self) -> None:
        response = self.client.post("/api/session/submit")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Please add some content first")

    def test_signed_out_submit_is_401(self) -> None:
        self.backend.user_id = None
        self._add_photo()

        response = self.client.post("/api/session/submit")

        self.assertEqual(response.status_code, 401)

    def test_online_submit_returns_summary_and_items(self) -> None:
        self._add_photo()

        response = self.client.post("/api/session/submit", json={"report_type": "site_survey"})

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertFalse(payload["offline"])
        self.assertEqual(payload["summary"], "Everything checked.")
        self.assertEqual(payload["image_count"], 1)
        self.assertTrue(payload["items"][0]["data_url"].startswith("data:image/jpeg;base64,"))
        self.assertEqual(self.backend.calls_to("generate-report-summary")[0]["reportType"], "site_survey")
        self.assertEqual(self.client.get("/api/session").json()["items"], [])

    def test_online_submit_without_report_is_500(self) -> None:
        self._add_photo()
        submit = AsyncMock(return_value=SubmitResult(offline=False))

        with patch("fieldreport.capture.session.CaptureSessionManager.submit", submit):
            response = self.client.post("/api/session/submit")

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"], "Submit finished without a report")

    def test_summary_failures_map_to_distinct_statuses(self) -> None:
        async def slow(body: dict[str, Any]) -> dict[str, Any]:
            await asyncio.sleep(5)
            return {}

        self._add_photo()
        cases = (
            (slow, 504),
            (lambda body: {"summary": ""}, 503),
            (None, 502),
        )
        for handler, status_code in cases:
            with self.subTest(status_code=status_code):
                if handler is None:
                    self.backend.functions.pop("generate-report-summary", None)
                else:
                    self.backend.functions["generate-report-summary"] = handler

                response = self.client.post("/api/session/submit")

                self.assertEqual(response.status_code, status_code)
                self.assertEqual(self.client.get("/api/session").json()["active_count"], 1)

    def test_offline_submit_then_sync(self) -> None:
        self.client.put("/api/settings/work-offline", json={"enabled": True})
        self._add_photo()

        submitted = self.client.post("/api/session/submit")
        self.assertEqual(submitted.json(), {"offline": True, "queued": 1})
        self.assertEqual(self.client.get("/api/offline-queue").json(), {"media": 1, "notes": 0})
        self.assertEqual(self.client.post("/api/offline-queue/sync").status_code, 409)

        self.client.put("/api/settings/work-offline", json={"enabled": False})
        synced = self.client.post("/api/offline-queue/sync")

        self.assertEqual(synced.json()["completed"], 1)
        self.assertEqual(self.client.get("/api/offline-queue").json(), {"media": 0, "notes": 0})
        self.assertEqual(self.backend.inserts[0][0], "media")


if __name__ == "__main__":
    unittest.main()
