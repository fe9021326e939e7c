"""Database initialization and connection management."""
import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Callable, List, Optional

import aiosqlite

logger = logging.getLogger(__name__)


class Database:
    """Database connection manager.

    One aiosqlite connection in autocommit mode; transactions are opened
    explicitly with :meth:`transaction`. Transactions of different tasks are
    serialized by a lock, nested transactions of the owning task become
    savepoints.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()
        self._owner: Optional[asyncio.Task] = None
        self._depth = 0
        self._on_commit: List[Callable[[], object]] = []

    async def connect(self) -> aiosqlite.Connection:
        """Establish database connection."""
        if self._conn is None:
            # Ensure data directory exists
            db_dir = Path(self.db_path).parent
            db_dir.mkdir(parents=True, exist_ok=True)

            self._conn = await aiosqlite.connect(self.db_path, isolation_level=None)
            self._conn.row_factory = aiosqlite.Row
            await self._conn.execute("PRAGMA foreign_keys = ON")

        return self._conn

    async def close(self):
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run the block in a transaction.

        The outermost level issues ``BEGIN IMMEDIATE``/``COMMIT``; nested
        levels use a savepoint so an inner failure rolls back only its own
        writes when the caller handles the exception.
        """
        conn = await self.connect()
        task = asyncio.current_task()

        if self._owner is not None and self._owner is task:
            self._depth += 1
            savepoint = f"sp_{self._depth}"
            pending_hooks = len(self._on_commit)
            await conn.execute(f"SAVEPOINT {savepoint}")
            try:
                yield conn
            except BaseException:
                await conn.execute(f"ROLLBACK TO SAVEPOINT {savepoint}")
                await conn.execute(f"RELEASE SAVEPOINT {savepoint}")
                del self._on_commit[pending_hooks:]
                raise
            else:
                await conn.execute(f"RELEASE SAVEPOINT {savepoint}")
            finally:
                self._depth -= 1
            return

        async with self._lock:
            self._owner = task
            self._on_commit = []
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                await conn.execute("ROLLBACK")
                self._on_commit = []
                raise
            else:
                await conn.execute("COMMIT")
                callbacks, self._on_commit = self._on_commit, []
            finally:
                self._owner = None

        for callback in callbacks:
            result = callback()
            if asyncio.iscoroutine(result):
                await result

    def call_on_commit(self, callback: Callable[[], object]) -> None:
        """Register a callback to run after the outermost transaction commits.

        Callbacks of a rolled back transaction are discarded. May return an
        awaitable.
        """
        if self._owner is None or self._owner is not asyncio.current_task():
            raise RuntimeError("call_on_commit() requires an open transaction")
        self._on_commit.append(callback)

    def in_transaction(self) -> bool:
        """True when the current task holds an open transaction."""
        return self._owner is not None and self._owner is asyncio.current_task()

    async def execute(self, query: str, params: tuple = ()) -> aiosqlite.Cursor:
        """Execute a query in its own transaction (or the caller's, if open)."""
        async with self.transaction() as conn:
            return await conn.execute(query, params)

    async def fetchone(self, query: str, params: tuple = ()):
        """Fetch one result."""
        return await self._read(query, params, one=True)

    async def fetchall(self, query: str, params: tuple = ()):
        """Fetch all results."""
        return await self._read(query, params)

    async def _read(self, query: str, params: tuple, one: bool = False):
        conn = await self.connect()
        if self.in_transaction():
            return await self._run_read(conn, query, params, one)
        # Outside a transaction, wait so another task's uncommitted writes stay invisible
        async with self._lock:
            return await self._run_read(conn, query, params, one)

    @staticmethod
    async def _run_read(conn: aiosqlite.Connection, query: str, params: tuple, one: bool):
        async with conn.execute(query, params) as cursor:
            if one:
                return await cursor.fetchone()
            return await cursor.fetchall()


async def init_database(db_path: str = "data/practice.db") -> Database:
    """Initialize database with schema from migrations/init.sql."""
    migrations_path = Path(__file__).parent.parent / "database" / "migrations" / "init.sql"

    if not migrations_path.exists():
        raise FileNotFoundError(f"Migration file not found: {migrations_path}")

    with open(migrations_path, "r", encoding="utf-8") as f:
        schema_sql = f.read()

    db = Database(db_path)
    conn = await db.connect()
    await conn.executescript(schema_sql)

    logger.info("Database initialized at %s", db_path)

    return db

