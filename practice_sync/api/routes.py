"""HTTP routes of the submission API."""
import logging
from typing import Optional

from aiohttp import web

from practice_sync.core.database import Database
from practice_sync.core.exceptions import SessionNotFoundError
from practice_sync.database import crud
from practice_sync.schemas import AttemptRequest, SubmitAnswersRequest
from practice_sync.services.cache import CacheInvalidator
from practice_sync.services.progress_tracker import get_mastery_overview
from practice_sync.services.submission import record_attempt, submit_answers

logger = logging.getLogger(__name__)

DB_KEY = web.AppKey("db", Database)
CACHE_KEY = web.AppKey("cache", CacheInvalidator)

routes = web.RouteTableDef()


def _int_param(raw: Optional[str], name: str) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer")


def _session_id(request: web.Request) -> int:
    try:
        return int(request.match_info["session_id"])
    except ValueError:
        raise ValueError("Invalid session ID")


@routes.post("/sessions/{session_id}/submit")
async def submit_session(request: web.Request) -> web.Response:
    """Grade and store a finished session. Safe to repeat with the same body."""
    session_id = _session_id(request)
    body = SubmitAnswersRequest.model_validate(await request.json())

    outcome = await submit_answers(
        request.app[DB_KEY],
        request.app[CACHE_KEY],
        request["user_id"],
        session_id,
        body.answers,
        body.timing_data,
    )
    return web.json_response(outcome.to_response())


@routes.get("/sessions/{session_id}/stats")
async def session_stats(request: web.Request) -> web.Response:
    session_id = _session_id(request)
    session = await crud.get_session(request.app[DB_KEY], session_id, request["user_id"])
    if not session:
        raise SessionNotFoundError(f"Session {session_id} not found")

    return web.json_response({
        "session_id": session["session_id"],
        "total_questions": session["total_questions"],
        "questions_attempted": session["questions_attempted"],
        "questions_correct": session["questions_correct"],
        "score": session["score"],
        "max_score": session["max_score"],
        "is_completed": bool(session["is_completed"]),
        "updated_at": session["updated_at"],
    })


@routes.post("/question-attempts")
async def create_attempt(request: web.Request) -> web.Response:
    """Record one answer during a running session."""
    body = AttemptRequest.model_validate(await request.json())

    result = await record_attempt(
        request.app[DB_KEY],
        request.app[CACHE_KEY],
        request["user_id"],
        body.session_id,
        body.session_question_id,
        body.question_id,
        body.user_answer,
        body.time_taken_seconds,
    )
    return web.json_response(result)


@routes.get("/question-attempts")
async def attempt_history(request: web.Request) -> web.Response:
    query = request.query
    attempts = await crud.list_attempts(
        request.app[DB_KEY],
        request["user_id"],
        session_id=_int_param(query.get("sessionId"), "sessionId"),
        question_id=_int_param(query.get("questionId"), "questionId"),
        limit=_int_param(query.get("limit"), "limit") or 20,
        offset=_int_param(query.get("offset"), "offset") or 0,
    )
    return web.json_response(attempts)


@routes.get("/topic-mastery")
async def topic_mastery(request: web.Request) -> web.Response:
    records = await get_mastery_overview(
        request.app[DB_KEY],
        request["user_id"],
        _int_param(request.query.get("topicId"), "topicId"),
    )
    return web.json_response(records)
