from __future__ import annotations

from datetime import datetime, timedelta, timezone
import tempfile
import unittest

from fieldreport.capture import (
    MediaKind,
    OfflineQueue,
    OfflineQueueError,
    PendingMediaItem,
    PendingNoteItem,
)
from tests.support import make_store


BASE_TIME = datetime(2026, 10, 17, 8, 0, tzinfo=timezone.utc)


def pending(item_id: str, minutes: int = 0, **changes) -> PendingMediaItem:
    values = {
        "id": item_id,
        "report_id": "report-1",
        "user_id": "user-1",
        "file_data": b"\xff\xd8payload",
        "file_name": f"{item_id}.jpg",
        "mime_type": "image/jpeg",
        "file_type": MediaKind.PHOTO,
        "file_size": 9,
        "created_at": BASE_TIME + timedelta(minutes=minutes),
    }
    values.update(changes)
    return PendingMediaItem(**values)


class OfflineQueueTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmpdir.cleanup)
        engine, session_factory = make_store(self._tmpdir.name)
        self.addCleanup(engine.dispose)
        self.queue = OfflineQueue(session_factory)

    def test_enqueue_many_persists_media_and_notes(self) -> None:
        note = PendingNoteItem(
            id="n1",
            user_id="user-1",
            note_text="Gate left open",
            created_at=BASE_TIME,
            report_id="report-1",
        )

        queued = self.queue.enqueue_many(
            [
                pending("a", caption="Front", latitude=59.3, longitude=28.1, location_name="Narva"),
                pending("b", file_type=MediaKind.VIDEO, mime_type="video/mp4"),
            ],
            [note],
        )

        self.assertEqual(queued, 2)
        self.assertEqual(self.queue.counts(), {"media": 2, "notes": 1})
        media = self.queue.pending_media()
        self.assertEqual(media[0].caption, "Front")
        self.assertEqual(media[0].location_name, "Narva")
        self.assertEqual(media[0].file_data, b"\xff\xd8payload")
        self.assertIs(media[1].file_type, MediaKind.VIDEO)
        self.assertEqual(self.queue.pending_notes()[0].note_text, "Gate left open")

    def test_pending_media_is_ordered_by_creation_time(self) -> None:
        self.queue.enqueue(pending("late", minutes=5))
        self.queue.enqueue(pending("early", minutes=1))

        self.assertEqual([item.id for item in self.queue.pending_media()], ["early", "late"])

    def test_remove_drops_only_the_named_entries(self) -> None:
        self.queue.enqueue_many([pending("a"), pending("b")])
        self.queue.enqueue_note(
            PendingNoteItem(id="n1", user_id="user-1", note_text="x", created_at=BASE_TIME)
        )

        self.queue.remove_media("a")
        self.queue.remove_note("n1")

        self.assertEqual([item.id for item in self.queue.pending_media()], ["b"])
        self.assertEqual(self.queue.counts(), {"media": 1, "notes": 0})

    def test_failed_write_raises_and_saves_nothing_from_the_batch(self) -> None:
        self.queue.enqueue(pending("a"))

        with self.assertRaises(OfflineQueueError) as ctx:
            self.queue.enqueue_many([pending("b"), pending("a")])

        self.assertTrue(str(ctx.exception).startswith("Failed to save offline"))
        self.assertEqual([item.id for item in self.queue.pending_media()], ["a"])


if __name__ == "__main__":
    unittest.main()
