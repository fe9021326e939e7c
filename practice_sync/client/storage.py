"""Durable key-value store backing the client submission queue."""
import logging
from typing import List, Optional, Tuple

from practice_sync.core.database import Database

logger = logging.getLogger(__name__)

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS queue_entries (
        entry_key   TEXT PRIMARY KEY,
        value       TEXT NOT NULL,
        updated_at  TEXT DEFAULT (datetime('now'))
    )
"""


class QueueStorage:
    """SQLite file keyed by string; survives process restarts."""

    def __init__(self, db_path: str):
        self.db = Database(db_path)
        self._ready = False

    async def _ensure_schema(self) -> None:
        if not self._ready:
            await self.db.execute(_SCHEMA)
            self._ready = True

    async def get(self, key: str) -> Optional[str]:
        await self._ensure_schema()
        row = await self.db.fetchone("SELECT value FROM queue_entries WHERE entry_key = ?", (key,))
        return row["value"] if row else None

    async def set(self, key: str, value: str) -> None:
        """Insert or overwrite the value stored under key."""
        await self._ensure_schema()
        await self.db.execute(
            """INSERT INTO queue_entries (entry_key, value) VALUES (?, ?)
               ON CONFLICT(entry_key) DO UPDATE SET
                   value = excluded.value,
                   updated_at = datetime('now')""",
            (key, value),
        )

    async def delete(self, key: str) -> None:
        await self._ensure_schema()
        await self.db.execute("DELETE FROM queue_entries WHERE entry_key = ?", (key,))

    async def items(self, prefix: str = "") -> List[Tuple[str, str]]:
        """All (key, value) pairs whose key starts with prefix."""
        await self._ensure_schema()
        rows = await self.db.fetchall(
            "SELECT entry_key, value FROM queue_entries WHERE substr(entry_key, 1, ?) = ?",
            (len(prefix), prefix),
        )
        return [(row["entry_key"], row["value"]) for row in rows]

    async def close(self) -> None:
        await self.db.close()
