"""Rolling per-topic mastery of a user."""
import logging
import math
from typing import Optional

from practice_sync.core.database import Database
from practice_sync.database import crud
from practice_sync.services.cache import CacheInvalidator, topic_mastery_pattern

logger = logging.getLogger(__name__)

BEGINNER = "beginner"
INTERMEDIATE = "intermediate"
ADVANCED = "advanced"
MASTERED = "mastered"


def accuracy_percentage(attempted: int, correct: int) -> int:
    """Accuracy in whole percent, halves rounded up."""
    if attempted <= 0:
        return 0
    return math.floor(100 * correct / attempted + 0.5)


def mastery_level_for(attempted: int, accuracy: int) -> str:
    """Mastery band for a lifetime attempt count and accuracy percentage."""
    if attempted >= 20:
        if accuracy >= 90:
            return MASTERED
        if accuracy >= 75:
            return ADVANCED
        if accuracy >= 60:
            return INTERMEDIATE
        return BEGINNER

    if attempted >= 10:
        if accuracy >= 80:
            return ADVANCED
        if accuracy >= 60:
            return INTERMEDIATE
        return BEGINNER

    if attempted >= 5:
        return INTERMEDIATE if accuracy >= 70 else BEGINNER

    return BEGINNER


async def _invalidate_mastery_views(cache: CacheInvalidator, user_id: str) -> None:
    pattern = topic_mastery_pattern(user_id)
    try:
        await cache.delete_pattern(pattern)
    except Exception as e:
        # Mastery row is already committed at this point
        logger.error("Cache invalidation of %s failed: %s", pattern, e)


async def update_topic_mastery(
    db: Database,
    cache: Optional[CacheInvalidator],
    user_id: str,
    topic_id: int,
    is_correct: bool,
) -> dict:
    """Apply one new attempt to the user's rolling mastery record of a topic.

    The cached mastery views of the user are invalidated once the
    surrounding transaction commits.
    """
    async with db.transaction():
        current = await crud.get_topic_mastery(db, user_id, topic_id)

        attempted = (current["questions_attempted"] if current else 0) + 1
        correct = (current["questions_correct"] if current else 0) + (1 if is_correct else 0)
        accuracy = accuracy_percentage(attempted, correct)
        level = mastery_level_for(attempted, accuracy)
        last_practiced = crud.utcnow()

        await crud.save_topic_mastery(
            db, user_id, topic_id, level, attempted, correct, accuracy, last_practiced,
        )

        if current and current["mastery_level"] != level:
            logger.info(
                "Mastery of topic %d for user %s: %s -> %s",
                topic_id, user_id, current["mastery_level"], level,
            )

        if cache is not None:
            db.call_on_commit(lambda: _invalidate_mastery_views(cache, user_id))

    return {
        "user_id": user_id,
        "topic_id": topic_id,
        "mastery_level": level,
        "questions_attempted": attempted,
        "questions_correct": correct,
        "accuracy_percentage": accuracy,
        "last_practiced": last_practiced,
    }


async def get_mastery_overview(db: Database, user_id: str, topic_id: Optional[int] = None) -> list[dict]:
    """Mastery records of a user, most recently practiced first."""
    return await crud.list_topic_mastery(db, user_id, topic_id)
