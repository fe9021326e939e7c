"""Connectivity probe that feeds online/offline transitions to the scheduler."""
import asyncio
import logging
from typing import Optional
from urllib.parse import urlsplit

from practice_sync.client.scheduler import SubmissionQueueService

logger = logging.getLogger(__name__)


def host_and_port(base_url: str) -> tuple[str, int]:
    """Host and TCP port of an http(s) URL."""
    parts = urlsplit(base_url)
    port = parts.port or (443 if parts.scheme == "https" else 80)
    return parts.hostname or "localhost", port


class ConnectivityMonitor:
    """Periodically checks that the API host accepts TCP connections.

    Only transitions are reported: the service hears ``handle_online()``
    when the host becomes reachable again and ``handle_offline()`` when it
    stops answering.
    """

    def __init__(
        self,
        service: SubmissionQueueService,
        base_url: str,
        interval: float = 15.0,
        timeout: float = 5.0,
    ):
        self.service = service
        self.host, self.port = host_and_port(base_url)
        self.interval = interval
        self.timeout = timeout
        self._task: Optional[asyncio.Task] = None

    async def check(self) -> bool:
        """True if host:port accepts a TCP connection within the timeout."""
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug("Reachability check %s:%d failed: %s", self.host, self.port, e)
            return False

        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    async def poll_once(self) -> bool:
        """Probe once and report a change of state to the service."""
        reachable = await self.check()
        if reachable and not self.service.is_online():
            self.service.handle_online()
        elif not reachable and self.service.is_online():
            self.service.handle_offline()
        return reachable

    async def run(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
