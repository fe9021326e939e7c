"""Network-aware delivery of queued submissions with bounded retries."""
import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Protocol, Set

from practice_sync.client.models import Submission, SubmissionStatus
from practice_sync.client.queue import SubmissionQueue

logger = logging.getLogger(__name__)

MAX_RETRY_ATTEMPTS = 5
# Backoff base in seconds: waits of 2, 4, 8, 16 s after failures 1..4
RETRY_DELAY_BASE = 2.0
INTER_SUBMISSION_DELAY = 1.0
RECONNECT_STABILIZE_DELAY = 1.0
SUBMIT_TIMEOUT = 10.0

NetworkListener = Callable[[bool], None]
SubmissionListener = Callable[[int, bool], None]


class Transport(Protocol):
    async def submit(self, session_id: int, payload: dict) -> dict:
        ...


def retry_delay(retry_count: int, base: float = RETRY_DELAY_BASE) -> float:
    """Minimum wait after the retry_count-th failure before trying again."""
    return base * 2 ** (retry_count - 1)


class SubmissionQueueService:
    """Drains the submission queue whenever the network allows.

    All time and network inputs are injected: ``clock`` returns epoch
    seconds, ``sleep`` waits, and connectivity changes arrive through
    :meth:`handle_online` / :meth:`handle_offline`.
    """

    def __init__(
        self,
        queue: SubmissionQueue,
        transport: Transport,
        *,
        online: bool = True,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        max_retry_attempts: int = MAX_RETRY_ATTEMPTS,
        retry_delay_base: float = RETRY_DELAY_BASE,
        inter_submission_delay: float = INTER_SUBMISSION_DELAY,
        stabilize_delay: float = RECONNECT_STABILIZE_DELAY,
        submit_timeout: float = SUBMIT_TIMEOUT,
    ):
        self.queue = queue
        self.transport = transport
        self.max_retry_attempts = max_retry_attempts
        self.retry_delay_base = retry_delay_base
        self.inter_submission_delay = inter_submission_delay
        self.stabilize_delay = stabilize_delay
        self.submit_timeout = submit_timeout

        self._online = online
        self._clock = clock
        self._sleep = sleep
        self.is_processing = False

        self._network_listeners: List[NetworkListener] = []
        self._submission_listeners: List[SubmissionListener] = []
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Queue access
    # ------------------------------------------------------------------

    def is_online(self) -> bool:
        return self._online

    async def enqueue(self, submission: Submission) -> Submission:
        """Store a submission and, when online, start draining in the background."""
        queued = await self.queue.enqueue(submission)
        if self._online:
            self._spawn(self.process_queue())
        return queued

    async def get_failed_submissions(self) -> List[Submission]:
        """Submissions that exhausted their retries, kept for manual recovery."""
        return [
            s for s in await self.queue.list_pending()
            if s.status == SubmissionStatus.FAILED and self.is_terminal(s)
        ]

    async def clear_queue(self) -> int:
        return await self.queue.clear()

    async def recover_interrupted(self) -> int:
        """Return entries left in ``submitting`` by a crash to ``pending``."""
        recovered = 0
        for submission in await self.queue.list_pending():
            if submission.status == SubmissionStatus.SUBMITTING:
                submission.status = SubmissionStatus.PENDING
                await self.queue.update(submission)
                recovered += 1

        if recovered:
            logger.info("Recovered %d interrupted submissions", recovered)
        return recovered

    # ------------------------------------------------------------------
    # Retry policy
    # ------------------------------------------------------------------

    def is_terminal(self, submission: Submission) -> bool:
        return submission.retry_count >= self.max_retry_attempts

    def should_retry(self, submission: Submission) -> bool:
        """Whether a failed submission is due for another delivery attempt."""
        if self.is_terminal(submission):
            return False

        if submission.last_attempt_at is None:
            return True

        elapsed = self._clock() - submission.last_attempt_at
        return elapsed >= retry_delay(submission.retry_count, self.retry_delay_base)

    def _is_due(self, submission: Submission) -> bool:
        if submission.status == SubmissionStatus.PENDING:
            return True
        return submission.status == SubmissionStatus.FAILED and self.should_retry(submission)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def process_queue(self) -> None:
        """Deliver due submissions one at a time, oldest first."""
        if self.is_processing or not self._online:
            return

        self.is_processing = True
        try:
            due = [s for s in await self.queue.list_pending() if self._is_due(s)]
            if not due:
                return

            logger.info("Processing submission queue: %d due", len(due))

            for index, submission in enumerate(due):
                if not self._online:
                    logger.info("Went offline, %d submissions left for later", len(due) - index)
                    break
                if index:
                    # Spread deliveries out after a reconnect
                    await self._sleep(self.inter_submission_delay)

                # The session may have been removed or enqueued again since the listing
                current = await self.queue.get(submission.session_id)
                if current is None or not self._is_due(current):
                    continue
                await self.process_submission(current)

        except Exception as e:
            logger.error("Error processing submission queue: %s", e)
        finally:
            self.is_processing = False

    async def process_submission(self, submission: Submission) -> bool:
        """
        Run one delivery attempt and persist the resulting state.

        Returns:
            True if the server accepted the submission
        """
        submission.status = SubmissionStatus.SUBMITTING
        submission.last_attempt_at = self._clock()
        await self.queue.update(submission)

        logger.info(
            "Submitting queued session_id=%d (retry_count=%d)",
            submission.session_id, submission.retry_count,
        )

        try:
            # A hung request would stall every later submission of the pass
            await asyncio.wait_for(
                self.transport.submit(submission.session_id, submission.payload()),
                timeout=self.submit_timeout,
            )
        except Exception as e:
            return await self._record_failure(submission, e)

        submission.status = SubmissionStatus.COMPLETED
        if await self._is_current(submission):
            await self.queue.remove(submission.session_id)
        logger.info("Submitted queued session_id=%d", submission.session_id)
        self._notify_submission(submission.session_id, True)
        return True

    async def _record_failure(self, submission: Submission, error: Exception) -> bool:
        submission.retry_count += 1
        submission.status = SubmissionStatus.FAILED

        logger.error(
            "Failed to submit session_id=%d (retry_count=%d): %s",
            submission.session_id, submission.retry_count, error,
        )

        if await self._is_current(submission):
            await self.queue.update(submission)

        if self.is_terminal(submission):
            logger.warning(
                "Max retry attempts (%d) reached for session_id=%d, kept for manual recovery",
                self.max_retry_attempts, submission.session_id,
            )
            self._notify_submission(submission.session_id, False)
        return False

    async def _is_current(self, submission: Submission) -> bool:
        """False once the session was enqueued again while this attempt ran."""
        stored = await self.queue.get(submission.session_id)
        return stored is not None and stored.timestamp == submission.timestamp

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    def handle_online(self) -> None:
        """Connectivity restored: drain the queue once the link has settled."""
        logger.info("Network connection restored")
        self._online = True
        self._notify_network(True)
        self._spawn(self._process_after_reconnect())

    def handle_offline(self) -> None:
        """Connectivity lost: in-flight deliveries fail and are retried later."""
        logger.info("Network connection lost")
        self._online = False
        self._notify_network(False)

    async def _process_after_reconnect(self) -> None:
        await self._sleep(self.stabilize_delay)
        await self.process_queue()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def join(self) -> None:
        """Wait for background queue passes started by this service."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_network_status_listener(self, callback: NetworkListener) -> None:
        self._network_listeners.append(callback)

    def remove_network_status_listener(self, callback: NetworkListener) -> None:
        if callback in self._network_listeners:
            self._network_listeners.remove(callback)

    def add_submission_listener(self, callback: SubmissionListener) -> None:
        """Register callback(session_id, success) for delivered and given-up submissions."""
        self._submission_listeners.append(callback)

    def remove_submission_listener(self, callback: SubmissionListener) -> None:
        if callback in self._submission_listeners:
            self._submission_listeners.remove(callback)

    def _notify_network(self, is_online: bool) -> None:
        for callback in list(self._network_listeners):
            try:
                callback(is_online)
            except Exception:
                logger.exception("Error in network status listener")

    def _notify_submission(self, session_id: int, success: bool) -> None:
        logger.info("Submission finished: session_id=%d success=%s", session_id, success)
        for callback in list(self._submission_listeners):
            try:
                callback(session_id, success)
            except Exception:
                logger.exception("Error in submission listener")
