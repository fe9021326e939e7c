"""Server side of a submission: grade, append to the ledger, recompute."""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from practice_sync.core.database import Database
from practice_sync.core.exceptions import (
    InvalidSubmissionError, QuestionNotFoundError, SessionNotFoundError,
)
from practice_sync.database import crud
from practice_sync.schemas import TimingData
from practice_sync.services.answer_checker import evaluate_answer
from practice_sync.services.cache import CacheInvalidator
from practice_sync.services.progress_tracker import accuracy_percentage, update_topic_mastery
from practice_sync.services.session_stats import SessionStats, recompute_session_stats

logger = logging.getLogger(__name__)


@dataclass
class AnswerResult:
    """Grading outcome of one answer."""
    question_id: int
    is_correct: bool
    marks_awarded: float
    topic_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "question_id": self.question_id,
            "is_correct": self.is_correct,
            "marks_awarded": self.marks_awarded,
        }


@dataclass
class SubmitOutcome:
    """What a processed submission reports back to the client."""
    session_id: int
    total_answers: int
    stats: SessionStats
    results: List[AnswerResult] = field(default_factory=list)

    def to_response(self) -> dict:
        return {
            "success": True,
            "session_id": self.session_id,
            "total_answers": self.total_answers,
            "total_correct": self.stats.questions_correct,
            "accuracy": accuracy_percentage(
                self.stats.questions_attempted, self.stats.questions_correct
            ),
            "score": self.stats.score,
            "max_score": self.stats.max_score,
            "results": [r.to_dict() for r in self.results],
        }


def grade(question: Dict, raw_answer: Any) -> tuple[bool, float]:
    """Correctness and marks of one answer (negative marks when wrong)."""
    is_correct = evaluate_answer(question["question_type"], question["details"], raw_answer)
    if is_correct:
        return True, question["marks"] or 0
    return False, -(question["negative_marks"] or 0)


async def submit_answers(
    db: Database,
    cache: Optional[CacheInvalidator],
    user_id: str,
    session_id: int,
    answers: Dict[int, Any],
    timing_data: Optional[TimingData] = None,
) -> SubmitOutcome:
    """
    Grade a batch of answers and fold them into the session and mastery state.

    Every answer is appended to the ledger, even when the same answer was
    submitted before; statistics only count the latest attempt per
    question, so a repeated submission leaves them unchanged.

    Raises:
        InvalidSubmissionError: no answers
        SessionNotFoundError: session missing or owned by another user
    """
    if not answers:
        raise InvalidSubmissionError("No answers provided")

    question_times = timing_data.question_times if timing_data else {}
    results: List[AnswerResult] = []

    async with db.transaction():
        session = await crud.get_session(db, session_id, user_id)
        if not session:
            raise SessionNotFoundError(f"Session {session_id} not found for user {user_id}")

        questions = {
            q["question_id"]: q for q in await crud.get_session_questions(db, session_id, user_id)
        }

        for question_id, raw_answer in answers.items():
            question = questions.get(question_id)
            if question is None:
                logger.warning("Question %d is not part of session %d, skipped", question_id, session_id)
                continue

            is_correct, marks = grade(question, raw_answer)
            seconds = question_times.get(question_id)

            await crud.insert_attempt(
                db,
                user_id=user_id,
                question_id=question_id,
                session_id=session_id,
                session_question_id=question["session_question_id"],
                user_answer={"option": raw_answer},
                is_correct=is_correct,
                marks_awarded=marks,
                time_taken_seconds=seconds,
            )
            if seconds is not None:
                await crud.set_time_spent(db, question["session_question_id"], seconds)

            results.append(AnswerResult(question_id, is_correct, marks, question["topic_id"]))

        stats = await recompute_session_stats(db, session_id, user_id)

        for result in results:
            if result.topic_id is not None:
                await update_topic_mastery(db, cache, user_id, result.topic_id, result.is_correct)

        await crud.mark_session_completed(
            db, session_id, timing_data.total_seconds if timing_data else None
        )

    logger.info(
        "Session %d submitted by %s: %d answers, score %s/%s",
        session_id, user_id, len(results), stats.score, stats.max_score,
    )
    return SubmitOutcome(session_id=session_id, total_answers=len(answers), stats=stats, results=results)


async def record_attempt(
    db: Database,
    cache: Optional[CacheInvalidator],
    user_id: str,
    session_id: int,
    session_question_id: int,
    question_id: int,
    user_answer: Any,
    time_taken_seconds: Optional[float] = None,
) -> dict:
    """
    Grade and store a single answer while the session is still running.

    Raises:
        SessionNotFoundError: session missing or owned by another user
        QuestionNotFoundError: question unknown or not linked to the session
    """
    async with db.transaction():
        if not await crud.get_session(db, session_id, user_id):
            raise SessionNotFoundError(f"Session {session_id} not found for user {user_id}")

        link = await crud.get_session_question(db, session_question_id, session_id)
        if not link or link["question_id"] != question_id:
            raise QuestionNotFoundError(
                f"Question {question_id} is not linked to session {session_id}"
            )

        question = await crud.get_question(db, question_id)
        if not question:
            raise QuestionNotFoundError(f"Question {question_id} not found")

        is_correct, marks = grade(question, user_answer)
        attempt = await crud.insert_attempt(
            db,
            user_id=user_id,
            question_id=question_id,
            session_id=session_id,
            session_question_id=session_question_id,
            user_answer=user_answer,
            is_correct=is_correct,
            marks_awarded=marks,
            time_taken_seconds=time_taken_seconds,
        )
        if time_taken_seconds:
            await crud.set_time_spent(db, session_question_id, time_taken_seconds)

        stats = await recompute_session_stats(db, session_id, user_id)

        if question["topic_id"] is not None:
            await update_topic_mastery(db, cache, user_id, question["topic_id"], is_correct)

    return {
        "attempt_id": attempt["attempt_id"],
        "is_correct": is_correct,
        "marks_awarded": marks,
        "session_stats": stats.to_dict(),
    }
