"""HTTP client for the submission endpoint."""
import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from .exceptions import NetworkError, SubmissionRejectedError

logger = logging.getLogger(__name__)

USER_HEADER = "X-User-Id"


class SubmissionClient:
    """Async client for POST /sessions/{session_id}/submit."""

    def __init__(
        self,
        base_url: str,
        user_id: str,
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Args:
            base_url: API root, e.g. http://127.0.0.1:8080
            user_id: Identity forwarded in the X-User-Id header
            timeout: Upper bound of one request in seconds
            session: Shared aiohttp session; one is created lazily if omitted
        """
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def submit(self, session_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Deliver a session's answers.

        Returns:
            Parsed response body of a successful submission

        Raises:
            NetworkError: connection failure or timeout
            SubmissionRejectedError: the server answered without success
        """
        url = f"{self.base_url}/sessions/{session_id}/submit"
        session = await self._get_session()

        try:
            async with session.post(
                url,
                json=payload,
                headers={USER_HEADER: self.user_id},
                timeout=self.timeout,
            ) as response:
                status = response.status
                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    data = None
        except asyncio.TimeoutError:
            raise NetworkError(f"Submit for session {session_id} timed out")
        except aiohttp.ClientError as e:
            raise NetworkError(f"Submit for session {session_id} failed: {e}")

        if not isinstance(data, dict):
            data = {}

        if data.get("success") is True or (200 <= status < 300 and "success" not in data):
            return data

        logger.debug("Submit for session %d rejected with HTTP %d: %s", session_id, status, data)
        raise SubmissionRejectedError(data.get("error") or f"HTTP {status}", status=status)

    async def close(self):
        """Close the HTTP session if this client created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
