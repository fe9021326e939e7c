"""Request bodies shared by the submission API and the client queue."""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class TimingData(BaseModel):
    """Client-measured timing of a practice session."""
    model_config = ConfigDict(populate_by_name=True)

    total_seconds: Optional[float] = Field(default=None, alias="totalSeconds")
    question_times: Dict[int, float] = Field(default_factory=dict, alias="questionTimes")
    average_time_per_question: Optional[float] = Field(default=None, alias="averageTimePerQuestion")


class SubmitAnswersRequest(BaseModel):
    """Body of POST /sessions/{session_id}/submit."""
    model_config = ConfigDict(populate_by_name=True)

    answers: Dict[int, Any] = Field(default_factory=dict)
    timing_data: Optional[TimingData] = Field(default=None, alias="timingData")


class AttemptRequest(BaseModel):
    """Body of POST /question-attempts."""
    session_id: int
    session_question_id: int
    question_id: int
    user_answer: Any
    time_taken_seconds: Optional[float] = None
