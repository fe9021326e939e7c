"""Recomputation of session statistics from the attempt ledger."""
import logging
from dataclasses import dataclass, asdict
from typing import Dict, List

from practice_sync.core.database import Database
from practice_sync.core.exceptions import SessionNotFoundError
from practice_sync.database import crud

logger = logging.getLogger(__name__)


@dataclass
class SessionStats:
    """Aggregates stored on the session record."""
    questions_attempted: int
    questions_correct: int
    score: float
    max_score: float

    def to_dict(self) -> dict:
        return asdict(self)


def latest_attempts(attempts: List[Dict]) -> Dict[int, Dict]:
    """Fold attempts (oldest first) into the latest attempt per question."""
    latest: Dict[int, Dict] = {}
    for attempt in sorted(attempts, key=lambda a: (a["attempt_timestamp"], a["attempt_id"])):
        latest[attempt["question_id"]] = attempt
    return latest


async def recompute_session_stats(db: Database, session_id: int, user_id: str) -> SessionStats:
    """
    Derive session statistics from the ledger and store them on the session.

    Re-running it after an identical resubmission gives the same result,
    because only the latest attempt per question counts.

    Raises:
        SessionNotFoundError: session missing or owned by another user
    """
    async with db.transaction():
        session = await crud.get_session(db, session_id, user_id)
        if not session:
            raise SessionNotFoundError(f"Session {session_id} not found for user {user_id}")

        latest = latest_attempts(await crud.get_session_attempts(db, session_id, user_id))

        stats = SessionStats(
            questions_attempted=min(len(latest), session["total_questions"] or 0),
            questions_correct=sum(1 for a in latest.values() if a["is_correct"]),
            score=sum(a["marks_awarded"] or 0 for a in latest.values()),
            max_score=await crud.get_session_max_score(db, session_id),
        )

        await crud.update_session_stats(
            db,
            session_id,
            stats.questions_attempted,
            stats.questions_correct,
            stats.score,
            stats.max_score,
        )

    logger.debug("Session %d stats recomputed: %s", session_id, stats)
    return stats
