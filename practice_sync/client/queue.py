"""Local durable queue: one pending submission per practice session."""
import logging
from typing import List, Optional

from pydantic import ValidationError

from practice_sync.client.exceptions import InvalidSubmissionError
from practice_sync.client.models import (
    STORAGE_KEY_PREFIX, Submission, SubmissionStatus, storage_key,
)
from practice_sync.client.storage import QueueStorage

logger = logging.getLogger(__name__)


class SubmissionQueue:
    """Persists submissions keyed by session id.

    Enqueueing a session that already has an entry replaces it, so the
    store never holds more than one entry per session.
    """

    def __init__(self, storage: QueueStorage):
        self.storage = storage

    async def enqueue(self, submission: Submission) -> Submission:
        """
        Store a fresh submission, replacing any earlier one of the session.

        Raises:
            InvalidSubmissionError: session id missing or no answers
        """
        if submission.session_id is None:
            raise InvalidSubmissionError("Submission needs a session id")
        if not submission.answers:
            raise InvalidSubmissionError(f"Submission for session {submission.session_id} has no answers")

        queued = submission.model_copy(update={
            "status": SubmissionStatus.PENDING,
            "retry_count": 0,
            "last_attempt_at": None,
        })
        await self.storage.set(queued.key, queued.to_json())

        logger.info("Added submission to queue: session_id=%d", queued.session_id)
        return queued

    async def get(self, session_id: int) -> Optional[Submission]:
        """Stored submission of a session; None if absent or unreadable."""
        raw = await self.storage.get(storage_key(session_id))
        if raw is None:
            return None
        return await self._load(storage_key(session_id), raw)

    async def list_pending(self) -> List[Submission]:
        """All stored submissions, oldest first. Corrupt entries are dropped."""
        submissions = []
        for key, raw in await self.storage.items(STORAGE_KEY_PREFIX):
            submission = await self._load(key, raw)
            if submission is not None:
                submissions.append(submission)

        return sorted(submissions, key=lambda s: s.timestamp)

    async def update(self, submission: Submission) -> None:
        """Rewrite the stored entry of the submission's session."""
        await self.storage.set(submission.key, submission.to_json())

    async def remove(self, session_id: int) -> None:
        """Delete a session's entry after confirmed delivery."""
        await self.storage.delete(storage_key(session_id))
        logger.info("Removed submission from queue: session_id=%d", session_id)

    async def clear(self) -> int:
        """Delete every queued submission. Returns how many were removed."""
        entries = await self.storage.items(STORAGE_KEY_PREFIX)
        for key, _ in entries:
            await self.storage.delete(key)

        logger.info("Cleared submission queue: %d entries", len(entries))
        return len(entries)

    async def _load(self, key: str, raw: str) -> Optional[Submission]:
        try:
            return Submission.model_validate_json(raw)
        except ValidationError as e:
            # An unreadable entry can never be delivered
            logger.warning("Dropping corrupt queue entry %s: %s", key, e)
            await self.storage.delete(key)
            return None
