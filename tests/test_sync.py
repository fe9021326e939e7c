"""Tests for the queue management CLI."""
import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from practice_sync.client.exceptions import NetworkError
from practice_sync.client.models import Submission, SubmissionStatus
from practice_sync.client.scheduler import SubmissionQueueService
from practice_sync.client.transport import SubmissionClient
from practice_sync.config import Settings
from practice_sync.sync import (
    build_service,
    cmd_clear,
    cmd_enqueue,
    cmd_failed,
    cmd_flush,
    cmd_watch,
    parse_args,
)


@pytest.fixture
def transport():
    mock = AsyncMock()
    mock.submit.return_value = {"success": True}
    return mock


@pytest.fixture
def cfg(tmp_path):
    return Settings(QUEUE_DATABASE_PATH=str(tmp_path / "q.db"), API_BASE_URL="http://api.local:9000")


@pytest.fixture
def service(queue, transport, clock):
    return SubmissionQueueService(queue, transport, online=False, clock=clock, sleep=AsyncMock())


class TestParseArgs:

    def test_enqueue(self):
        args = parse_args(["enqueue", "answers.json"])

        assert args.command == "enqueue"
        assert args.file == "answers.json"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args([])


class TestBuildService:

    async def test_wired_from_settings(self, tmp_path):
        cfg = Settings(
            QUEUE_DATABASE_PATH=str(tmp_path / "q.db"),
            API_BASE_URL="http://api.local:9000/",
            API_USER_ID="user-9",
            MAX_RETRY_ATTEMPTS=3,
        )

        service = build_service(cfg)
        try:
            assert isinstance(service.transport, SubmissionClient)
            assert service.transport.base_url == "http://api.local:9000"
            assert service.transport.user_id == "user-9"
            assert service.max_retry_attempts == 3
        finally:
            await service.queue.storage.close()


class TestCommands:

    async def test_enqueue_from_file(self, service, queue, tmp_path, cfg):
        path = tmp_path / "submission.json"
        path.write_text(json.dumps({"sessionId": 4, "answers": {"1": "2"}}), encoding="utf-8")

        assert await cmd_enqueue(service, parse_args(["enqueue", str(path)]), cfg) == 0
        assert (await queue.get(4)).answers == {1: "2"}

    async def test_enqueue_invalid_file(self, service, queue, tmp_path, cfg):
        path = tmp_path / "submission.json"
        path.write_text('{"answers": {"1": "2"}}', encoding="utf-8")

        assert await cmd_enqueue(service, parse_args(["enqueue", str(path)]), cfg) == 1
        assert await queue.list_pending() == []

    async def test_flush_delivers_and_recovers(self, service, queue, transport, cfg):
        service.handle_online()
        await service.join()
        stuck = await queue.enqueue(Submission(sessionId=4, answers={1: "2"}))
        stuck.status = SubmissionStatus.SUBMITTING
        await queue.update(stuck)

        assert await cmd_flush(service, parse_args(["flush"]), cfg) == 0

        transport.submit.assert_awaited_once()
        assert await queue.list_pending() == []

    async def test_flush_reports_leftovers(self, service, queue, transport, cfg):
        service.handle_online()
        await service.join()
        transport.submit.side_effect = NetworkError("down")
        await queue.enqueue(Submission(sessionId=4, answers={1: "2"}))

        assert await cmd_flush(service, parse_args(["flush"]), cfg) == 2

    async def test_failed_prints_terminal_entries(self, service, queue, capsys, cfg):
        await queue.update(Submission(sessionId=4, answers={1: "2"}, status=SubmissionStatus.FAILED, retryCount=5))
        await queue.update(Submission(sessionId=5, answers={1: "2"}, status=SubmissionStatus.FAILED, retryCount=1))

        assert await cmd_failed(service, parse_args(["failed"]), cfg) == 0

        printed = json.loads(capsys.readouterr().out)
        assert [entry["sessionId"] for entry in printed] == [4]

    async def test_clear(self, service, queue, capsys, cfg):
        await queue.enqueue(Submission(sessionId=4, answers={1: "2"}))

        assert await cmd_clear(service, parse_args(["clear"]), cfg) == 0
        assert "Removed 1" in capsys.readouterr().out

    @patch("practice_sync.sync.ConnectivityMonitor")
    async def test_watch_uses_given_settings(self, monitor_cls, service, tmp_path):
        """The probe is configured from the settings passed in, not the global ones."""
        monitor_cls.return_value.stop = AsyncMock()
        cfg = Settings(
            QUEUE_DATABASE_PATH=str(tmp_path / "q.db"),
            API_BASE_URL="http://api.local:9000",
            CONNECTIVITY_CHECK_INTERVAL=0.01,
            CONNECTIVITY_CHECK_TIMEOUT=0.5,
        )

        task = asyncio.create_task(cmd_watch(service, parse_args(["watch"]), cfg))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        monitor_cls.assert_called_once_with(service, "http://api.local:9000", interval=0.01, timeout=0.5)
        monitor_cls.return_value.start.assert_called_once()
        monitor_cls.return_value.stop.assert_awaited_once()
