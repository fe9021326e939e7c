"""Tests for the durable client queue."""
import pytest

from practice_sync.client.exceptions import InvalidSubmissionError
from practice_sync.client.models import Submission, SubmissionStatus, storage_key
from practice_sync.client.queue import SubmissionQueue
from practice_sync.client.storage import QueueStorage


class TestSubmissionModel:

    def test_payload_uses_wire_names(self):
        submission = Submission(
            sessionId=7,
            answers={1: "2", 2: ["1", "3"]},
            timingData={"totalSeconds": 60, "questionTimes": {1: 20}},
        )

        assert submission.payload() == {
            "answers": {"1": "2", "2": ["1", "3"]},
            "timingData": {"totalSeconds": 60.0, "questionTimes": {1: 20.0}},
        }

    def test_json_roundtrip_keeps_state(self):
        submission = Submission(sessionId=7, answers={1: "2"}, retryCount=3, status=SubmissionStatus.FAILED)

        restored = Submission.model_validate_json(submission.to_json())

        assert restored == submission

    def test_negative_retry_count_rejected(self):
        with pytest.raises(ValueError):
            Submission(sessionId=7, answers={1: "2"}, retryCount=-1)


class TestSubmissionQueue:

    async def test_enqueue_resets_delivery_state(self, queue):
        queued = await queue.enqueue(Submission(
            sessionId=1, answers={1: "a"}, status=SubmissionStatus.FAILED, retryCount=4, lastAttemptAt=5.0,
        ))

        assert queued.status == SubmissionStatus.PENDING
        assert queued.retry_count == 0
        assert queued.last_attempt_at is None
        assert await queue.get(1) == queued

    async def test_one_entry_per_session(self, queue):
        await queue.enqueue(Submission(sessionId=1, answers={1: "a"}, timestamp=1.0))
        await queue.enqueue(Submission(sessionId=1, answers={1: "b"}, timestamp=2.0))

        pending = await queue.list_pending()

        assert len(pending) == 1
        assert pending[0].answers == {1: "b"}

    async def test_oldest_first(self, queue):
        await queue.enqueue(Submission(sessionId=2, answers={1: "a"}, timestamp=20.0))
        await queue.enqueue(Submission(sessionId=1, answers={1: "a"}, timestamp=10.0))
        await queue.enqueue(Submission(sessionId=3, answers={1: "a"}, timestamp=30.0))

        assert [s.session_id for s in await queue.list_pending()] == [1, 2, 3]

    async def test_empty_answers_rejected(self, queue):
        with pytest.raises(InvalidSubmissionError):
            await queue.enqueue(Submission(sessionId=1, answers={}))

        assert await queue.list_pending() == []

    async def test_corrupt_entry_dropped(self, queue, storage):
        await queue.enqueue(Submission(sessionId=1, answers={1: "a"}))
        await storage.set(storage_key(2), "{not json")
        await storage.set(storage_key(3), '{"answers": {}}')

        pending = await queue.list_pending()

        assert [s.session_id for s in pending] == [1]
        assert await storage.get(storage_key(2)) is None
        assert await storage.get(storage_key(3)) is None

    async def test_foreign_keys_ignored(self, queue, storage):
        await storage.set("settings_theme", "dark")

        assert await queue.list_pending() == []
        assert await queue.clear() == 0
        assert await storage.get("settings_theme") == "dark"

    async def test_remove_and_clear(self, queue):
        await queue.enqueue(Submission(sessionId=1, answers={1: "a"}))
        await queue.enqueue(Submission(sessionId=2, answers={1: "a"}))

        await queue.remove(1)
        assert await queue.get(1) is None

        assert await queue.clear() == 1
        assert await queue.list_pending() == []

    async def test_survives_reopen(self, tmp_path):
        path = str(tmp_path / "queue.db")
        first = QueueStorage(path)
        await SubmissionQueue(first).enqueue(Submission(sessionId=5, answers={1: "a"}))
        await first.close()

        second = QueueStorage(path)
        try:
            pending = await SubmissionQueue(second).list_pending()
        finally:
            await second.close()

        assert [s.session_id for s in pending] == [5]
