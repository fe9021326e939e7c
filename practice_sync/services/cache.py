"""Invalidation contract of the external view cache."""
import logging
from typing import Awaitable, Protocol

logger = logging.getLogger(__name__)


def topic_mastery_pattern(user_id: str) -> str:
    """Key pattern covering every cached mastery view of a user."""
    return f"user:{user_id}:topic-mastery:*"


class CacheInvalidator(Protocol):
    """Deletes all cached keys matching a glob-style pattern."""

    def delete_pattern(self, pattern: str) -> Awaitable[None]:
        ...


class LoggingCacheInvalidator:
    """Used when no cache is deployed: records the invalidation and does nothing else."""

    async def delete_pattern(self, pattern: str) -> None:
        logger.debug("Cache invalidation requested for %s", pattern)
