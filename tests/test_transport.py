"""Tests for the HTTP submit client, including delivery to the real API."""
from unittest.mock import AsyncMock

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from conftest import USER_ID
from practice_sync.api.app import create_app
from practice_sync.client.exceptions import NetworkError, SubmissionRejectedError
from practice_sync.client.models import Submission
from practice_sync.client.scheduler import SubmissionQueueService
from practice_sync.client.transport import SubmissionClient
from practice_sync.database import crud


def _stub_app(status: int, body):
    """App answering every submit with a fixed status and body."""
    seen = []

    async def handler(request: web.Request) -> web.Response:
        seen.append({
            "session_id": request.match_info["session_id"],
            "user": request.headers.get("X-User-Id"),
            "body": await request.json(),
        })
        if isinstance(body, str):
            return web.Response(status=status, text=body)
        return web.json_response(body, status=status)

    app = web.Application()
    app.router.add_post("/sessions/{session_id}/submit", handler)
    return app, seen


async def _submit_to(app, payload):
    async with TestServer(app) as server:
        client = SubmissionClient(str(server.make_url("")), USER_ID, timeout=5)
        try:
            return await client.submit(7, payload)
        finally:
            await client.close()


class TestSubmissionClient:

    async def test_success(self):
        app, seen = _stub_app(200, {"success": True, "score": 4})

        data = await _submit_to(app, {"answers": {"1": "2"}})

        assert data["score"] == 4
        assert seen == [{"session_id": "7", "user": USER_ID, "body": {"answers": {"1": "2"}}}]

    async def test_success_without_flag(self):
        app, _ = _stub_app(201, {"id": 1})

        assert await _submit_to(app, {"answers": {}}) == {"id": 1}

    async def test_success_false(self):
        app, _ = _stub_app(200, {"success": False, "error": "Session closed"})

        with pytest.raises(SubmissionRejectedError, match="Session closed"):
            await _submit_to(app, {"answers": {}})

    async def test_server_error_plain_text(self):
        app, _ = _stub_app(502, "Bad Gateway")

        with pytest.raises(SubmissionRejectedError) as exc_info:
            await _submit_to(app, {"answers": {}})

        assert exc_info.value.status == 502

    async def test_connection_refused(self, unused_tcp_port):
        client = SubmissionClient(f"http://127.0.0.1:{unused_tcp_port}", USER_ID, timeout=2)
        try:
            with pytest.raises(NetworkError):
                await client.submit(7, {"answers": {}})
        finally:
            await client.close()


class TestEndToEnd:
    """Queue, scheduler and client delivering to the submission API."""

    async def test_queued_submission_scored_once(self, db, seeded, queue, clock):
        async with TestServer(create_app(db)) as server:
            client = SubmissionClient(str(server.make_url("")), USER_ID)
            service = SubmissionQueueService(queue, client, clock=clock, sleep=AsyncMock())
            delivered = []
            service.add_submission_listener(lambda sid, ok: delivered.append((sid, ok)))

            submission = Submission(
                sessionId=seeded["session_id"],
                answers={seeded["q_mc"]: "2", seeded["q_mcs"]: ["1", "3"]},
                timingData={"totalSeconds": 42},
            )
            await service.enqueue(submission)
            await service.join()

            # The same answers delivered again must not change the score
            await service.enqueue(submission)
            await service.join()
            await client.close()

            session = await crud.get_session(db, seeded["session_id"], USER_ID)

        assert delivered == [(seeded["session_id"], True)] * 2
        assert await queue.list_pending() == []
        assert session["questions_correct"] == 2
        assert session["score"] == 8
        assert session["duration_seconds"] == 42
