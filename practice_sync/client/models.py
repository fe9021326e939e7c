"""Data models of the client-side submission queue."""
import time
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from practice_sync.schemas import TimingData

STORAGE_KEY_PREFIX = "pending_submission_"


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    SUBMITTING = "submitting"
    FAILED = "failed"
    COMPLETED = "completed"


def storage_key(session_id: int) -> str:
    """Persisted key of a session's queued submission."""
    return f"{STORAGE_KEY_PREFIX}{session_id}"


class Submission(BaseModel):
    """Answers of one finished session waiting for delivery."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: int = Field(alias="sessionId")
    answers: Dict[int, Any]
    timing_data: Optional[TimingData] = Field(default=None, alias="timingData")
    timestamp: float = Field(default_factory=time.time)
    status: SubmissionStatus = SubmissionStatus.PENDING
    retry_count: int = Field(default=0, ge=0, alias="retryCount")
    last_attempt_at: Optional[float] = Field(default=None, alias="lastAttemptAt")

    @property
    def key(self) -> str:
        return storage_key(self.session_id)

    def payload(self) -> dict:
        """Request body for the submit endpoint."""
        body: Dict[str, Any] = {"answers": {str(qid): answer for qid, answer in self.answers.items()}}
        if self.timing_data is not None:
            body["timingData"] = self.timing_data.model_dump(by_alias=True, exclude_none=True)
        return body

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
