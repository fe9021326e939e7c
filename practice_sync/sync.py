"""Client entry point: deliver, inspect and clear queued submissions."""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from practice_sync.client.connectivity import ConnectivityMonitor
from practice_sync.client.exceptions import InvalidSubmissionError
from practice_sync.client.models import Submission
from practice_sync.client.queue import SubmissionQueue
from practice_sync.client.scheduler import SubmissionQueueService
from practice_sync.client.storage import QueueStorage
from practice_sync.client.transport import SubmissionClient
from practice_sync.config import Settings, settings
from practice_sync.core.log import setup_logging

logger = logging.getLogger(__name__)


def build_service(cfg: Settings) -> SubmissionQueueService:
    """Wire queue storage, HTTP transport and scheduler from settings."""
    queue = SubmissionQueue(QueueStorage(cfg.QUEUE_DATABASE_PATH))
    transport = SubmissionClient(cfg.API_BASE_URL, cfg.API_USER_ID, timeout=cfg.SUBMIT_TIMEOUT)
    return SubmissionQueueService(
        queue,
        transport,
        max_retry_attempts=cfg.MAX_RETRY_ATTEMPTS,
        retry_delay_base=cfg.RETRY_DELAY_BASE,
        inter_submission_delay=cfg.INTER_SUBMISSION_DELAY,
        stabilize_delay=cfg.RECONNECT_STABILIZE_DELAY,
        submit_timeout=cfg.SUBMIT_TIMEOUT,
    )


async def _shutdown(service: SubmissionQueueService) -> None:
    await service.join()
    await service.transport.close()
    await service.queue.storage.close()


async def cmd_enqueue(service: SubmissionQueueService, args, cfg: Settings) -> int:
    try:
        submission = Submission.model_validate_json(Path(args.file).read_text(encoding="utf-8"))
        await service.enqueue(submission)
    except (OSError, ValidationError, InvalidSubmissionError) as e:
        logger.error("Could not enqueue %s: %s", args.file, e)
        return 1
    return 0


async def cmd_flush(service: SubmissionQueueService, args, cfg: Settings) -> int:
    await service.recover_interrupted()
    await service.process_queue()
    remaining = await service.queue.list_pending()
    logger.info("%d submissions still queued", len(remaining))
    return 0 if not remaining else 2


async def cmd_failed(service: SubmissionQueueService, args, cfg: Settings) -> int:
    failed = await service.get_failed_submissions()
    print(json.dumps([json.loads(s.to_json()) for s in failed], indent=2, ensure_ascii=False))
    return 0


async def cmd_clear(service: SubmissionQueueService, args, cfg: Settings) -> int:
    removed = await service.clear_queue()
    print(f"Removed {removed} queued submissions")
    return 0


async def cmd_watch(service: SubmissionQueueService, args, cfg: Settings) -> int:
    monitor = ConnectivityMonitor(
        service,
        cfg.API_BASE_URL,
        interval=cfg.CONNECTIVITY_CHECK_INTERVAL,
        timeout=cfg.CONNECTIVITY_CHECK_TIMEOUT,
    )
    await service.recover_interrupted()
    monitor.start()
    try:
        while True:
            await service.process_queue()
            await asyncio.sleep(cfg.CONNECTIVITY_CHECK_INTERVAL)
    finally:
        await monitor.stop()


COMMANDS = {
    "enqueue": cmd_enqueue,
    "flush": cmd_flush,
    "failed": cmd_failed,
    "clear": cmd_clear,
    "watch": cmd_watch,
}


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage queued practice-session submissions")
    sub = parser.add_subparsers(dest="command", required=True)

    p_enqueue = sub.add_parser("enqueue", help="Queue a submission from a JSON file")
    p_enqueue.add_argument("file", help="JSON with sessionId, answers and optional timingData")
    sub.add_parser("flush", help="Deliver due submissions once")
    sub.add_parser("failed", help="Print submissions that exhausted their retries")
    sub.add_parser("clear", help="Delete every queued submission")
    sub.add_parser("watch", help="Keep delivering while watching connectivity")

    return parser.parse_args(argv)


async def main(argv=None, cfg: Settings = settings) -> int:
    args = parse_args(argv)
    service = build_service(cfg)
    try:
        return await COMMANDS[args.command](service, args, cfg)
    finally:
        await _shutdown(service)


if __name__ == "__main__":
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Stopped by user")
