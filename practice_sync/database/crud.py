"""CRUD operations for database."""
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from practice_sync.core.database import Database


def utcnow() -> str:
    """Current UTC time as ISO-8601 text with microseconds (sorts lexically)."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


# ============================================================================
# QUESTION BANK
# ============================================================================

async def create_topic(db: Database, name: str) -> int:
    """Create a topic. Returns topic_id."""
    cursor = await db.execute("INSERT INTO topics (name) VALUES (?)", (name,))
    return cursor.lastrowid


async def create_question(
    db: Database,
    question_type: str,
    details: Dict[str, Any],
    marks: int = 4,
    negative_marks: int = 0,
    topic_id: Optional[int] = None,
    question_text: Optional[str] = None,
) -> int:
    """Create a question. Returns question_id."""
    query = """
        INSERT INTO questions (topic_id, question_type, question_text, details, marks, negative_marks)
        VALUES (?, ?, ?, ?, ?, ?)
    """
    cursor = await db.execute(query, (
        topic_id, question_type, question_text, json.dumps(details), marks, negative_marks,
    ))
    return cursor.lastrowid


async def get_question(db: Database, question_id: int) -> Optional[Dict]:
    """Get question by ID."""
    row = await db.fetchone(
        """SELECT question_id, topic_id, question_type, details, marks, negative_marks
           FROM questions WHERE question_id = ?""",
        (question_id,),
    )
    return dict(row) if row else None


# ============================================================================
# PRACTICE SESSIONS
# ============================================================================

async def create_session(db: Database, user_id: str, question_ids: List[int]) -> int:
    """
    Create a practice session with its questions bound in order.

    Returns:
        session_id
    """
    async with db.transaction() as conn:
        cursor = await conn.execute(
            "INSERT INTO practice_sessions (user_id, total_questions) VALUES (?, ?)",
            (user_id, len(question_ids)),
        )
        session_id = cursor.lastrowid

        for order, question_id in enumerate(question_ids, 1):
            await conn.execute(
                """INSERT INTO session_questions (session_id, question_id, user_id, question_order)
                   VALUES (?, ?, ?, ?)""",
                (session_id, question_id, user_id, order),
            )

    return session_id


async def get_session(db: Database, session_id: int, user_id: str) -> Optional[Dict]:
    """Get a session only if it belongs to the user."""
    query = """
        SELECT session_id, user_id, total_questions, questions_attempted,
               questions_correct, score, max_score, is_completed,
               duration_seconds, start_time, end_time, updated_at
        FROM practice_sessions
        WHERE session_id = ? AND user_id = ?
    """
    row = await db.fetchone(query, (session_id, user_id))
    return dict(row) if row else None


async def get_session_questions(db: Database, session_id: int, user_id: str) -> List[Dict]:
    """Questions bound to a session, with grading details."""
    query = """
        SELECT sq.session_question_id, sq.question_id, q.question_type, q.details,
               q.marks, q.negative_marks, q.topic_id
        FROM session_questions sq
        JOIN questions q ON q.question_id = sq.question_id
        WHERE sq.session_id = ? AND sq.user_id = ?
        ORDER BY sq.question_order
    """
    rows = await db.fetchall(query, (session_id, user_id))
    return [dict(row) for row in rows]


async def get_session_question(
    db: Database, session_question_id: int, session_id: int
) -> Optional[Dict]:
    """Get one session question link."""
    row = await db.fetchone(
        """SELECT session_question_id, session_id, question_id, user_id
           FROM session_questions
           WHERE session_question_id = ? AND session_id = ?""",
        (session_question_id, session_id),
    )
    return dict(row) if row else None


async def get_session_max_score(db: Database, session_id: int) -> float:
    """Sum of marks over all questions bound to the session."""
    row = await db.fetchone(
        """SELECT COALESCE(SUM(q.marks), 0) AS total_marks
           FROM session_questions sq
           JOIN questions q ON q.question_id = sq.question_id
           WHERE sq.session_id = ?""",
        (session_id,),
    )
    return row["total_marks"] if row else 0


async def update_session_stats(
    db: Database,
    session_id: int,
    questions_attempted: int,
    questions_correct: int,
    score: float,
    max_score: float,
) -> None:
    """Write derived statistics back onto the session record."""
    query = """
        UPDATE practice_sessions
        SET questions_attempted = ?, questions_correct = ?, score = ?,
            max_score = ?, updated_at = ?
        WHERE session_id = ?
    """
    await db.execute(query, (
        questions_attempted, questions_correct, score, max_score, utcnow(), session_id,
    ))


async def mark_session_completed(
    db: Database, session_id: int, duration_seconds: Optional[float] = None
) -> None:
    """Set is_completed and end_time (first completion only)."""
    now = utcnow()
    query = """
        UPDATE practice_sessions
        SET is_completed = 1, end_time = ?, updated_at = ?,
            duration_seconds = COALESCE(?, duration_seconds)
        WHERE session_id = ? AND is_completed = 0
    """
    await db.execute(query, (now, now, duration_seconds, session_id))


async def set_time_spent(db: Database, session_question_id: int, seconds: float) -> None:
    """Store time spent on one session question."""
    await db.execute(
        "UPDATE session_questions SET time_spent_seconds = ? WHERE session_question_id = ?",
        (seconds, session_question_id),
    )


# ============================================================================
# ATTEMPT LEDGER (append-only)
# ============================================================================

async def count_attempts(db: Database, user_id: str, question_id: int, session_id: int) -> int:
    """Number of attempts already recorded for a question in a session."""
    row = await db.fetchone(
        """SELECT COUNT(*) AS n FROM question_attempts
           WHERE user_id = ? AND question_id = ? AND session_id = ?""",
        (user_id, question_id, session_id),
    )
    return row["n"]


async def insert_attempt(
    db: Database,
    user_id: str,
    question_id: int,
    session_id: int,
    session_question_id: int,
    user_answer: Any,
    is_correct: bool,
    marks_awarded: float,
    time_taken_seconds: Optional[float] = None,
) -> Dict:
    """
    Append an attempt to the ledger.

    attempt_number continues the count of earlier attempts at the same
    question in the same session.

    Returns:
        The stored attempt as a dict
    """
    async with db.transaction():
        attempt_number = await count_attempts(db, user_id, question_id, session_id) + 1
        timestamp = utcnow()

        query = """
            INSERT INTO question_attempts (
                user_id, question_id, session_id, session_question_id,
                attempt_number, user_answer, is_correct, marks_awarded,
                time_taken_seconds, attempt_timestamp
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        cursor = await db.execute(query, (
            user_id, question_id, session_id, session_question_id,
            attempt_number, json.dumps(user_answer), 1 if is_correct else 0,
            marks_awarded, time_taken_seconds, timestamp,
        ))

    return {
        "attempt_id": cursor.lastrowid,
        "user_id": user_id,
        "question_id": question_id,
        "session_id": session_id,
        "session_question_id": session_question_id,
        "attempt_number": attempt_number,
        "user_answer": user_answer,
        "is_correct": is_correct,
        "marks_awarded": marks_awarded,
        "time_taken_seconds": time_taken_seconds,
        "attempt_timestamp": timestamp,
    }


async def get_session_attempts(db: Database, session_id: int, user_id: str) -> List[Dict]:
    """All attempts of a session, oldest first (insertion order breaks ties)."""
    query = """
        SELECT attempt_id, question_id, is_correct, marks_awarded, attempt_timestamp
        FROM question_attempts
        WHERE session_id = ? AND user_id = ?
        ORDER BY attempt_timestamp ASC, attempt_id ASC
    """
    rows = await db.fetchall(query, (session_id, user_id))
    return [dict(row) for row in rows]


async def list_attempts(
    db: Database,
    user_id: str,
    session_id: Optional[int] = None,
    question_id: Optional[int] = None,
    limit: int = 20,
    offset: int = 0,
) -> List[Dict]:
    """Attempt history for a user, newest first."""
    conditions = ["user_id = ?"]
    params: list = [user_id]

    if session_id is not None:
        conditions.append("session_id = ?")
        params.append(session_id)

    if question_id is not None:
        conditions.append("question_id = ?")
        params.append(question_id)

    query = f"""
        SELECT attempt_id, user_id, question_id, session_id, session_question_id,
               attempt_number, user_answer, is_correct, marks_awarded,
               time_taken_seconds, attempt_timestamp
        FROM question_attempts
        WHERE {" AND ".join(conditions)}
        ORDER BY attempt_timestamp DESC, attempt_id DESC
        LIMIT ? OFFSET ?
    """
    rows = await db.fetchall(query, (*params, limit, offset))

    attempts = []
    for row in rows:
        attempt = dict(row)
        attempt["user_answer"] = json.loads(attempt["user_answer"]) if attempt["user_answer"] else None
        attempt["is_correct"] = bool(attempt["is_correct"])
        attempts.append(attempt)

    return attempts


# ============================================================================
# TOPIC MASTERY
# ============================================================================

async def get_topic_mastery(db: Database, user_id: str, topic_id: int) -> Optional[Dict]:
    """Get the mastery record of one user and topic."""
    row = await db.fetchone(
        """SELECT mastery_id, user_id, topic_id, mastery_level, questions_attempted,
                  questions_correct, accuracy_percentage, last_practiced
           FROM topic_mastery
           WHERE user_id = ? AND topic_id = ?""",
        (user_id, topic_id),
    )
    return dict(row) if row else None


async def save_topic_mastery(
    db: Database,
    user_id: str,
    topic_id: int,
    mastery_level: str,
    questions_attempted: int,
    questions_correct: int,
    accuracy_percentage: int,
    last_practiced: str,
) -> None:
    """Insert or overwrite the mastery record of one user and topic."""
    query = """
        INSERT INTO topic_mastery (
            user_id, topic_id, mastery_level, questions_attempted,
            questions_correct, accuracy_percentage, last_practiced
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(user_id, topic_id) DO UPDATE SET
            mastery_level = excluded.mastery_level,
            questions_attempted = excluded.questions_attempted,
            questions_correct = excluded.questions_correct,
            accuracy_percentage = excluded.accuracy_percentage,
            last_practiced = excluded.last_practiced
    """
    await db.execute(query, (
        user_id, topic_id, mastery_level, questions_attempted,
        questions_correct, accuracy_percentage, last_practiced,
    ))


async def list_topic_mastery(
    db: Database, user_id: str, topic_id: Optional[int] = None
) -> List[Dict]:
    """Mastery records of a user, most recently practiced first."""
    query = """
        SELECT tm.mastery_id, tm.topic_id, t.name AS topic_name, tm.mastery_level,
               tm.questions_attempted, tm.questions_correct,
               tm.accuracy_percentage, tm.last_practiced
        FROM topic_mastery tm
        LEFT JOIN topics t ON t.topic_id = tm.topic_id
        WHERE tm.user_id = ?
    """
    params: tuple = (user_id,)
    if topic_id is not None:
        query += " AND tm.topic_id = ?"
        params = (user_id, topic_id)
    query += " ORDER BY tm.last_practiced DESC"

    rows = await db.fetchall(query, params)
    return [dict(row) for row in rows]
