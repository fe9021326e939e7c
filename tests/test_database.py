"""Tests for the transaction manager."""
import asyncio

import pytest

from practice_sync.database import crud


class TestTransaction:
    """Nesting, rollback and commit hooks."""

    async def test_commit(self, db):
        async with db.transaction():
            topic_id = await crud.create_topic(db, "Optics")

        row = await db.fetchone("SELECT name FROM topics WHERE topic_id = ?", (topic_id,))
        assert row["name"] == "Optics"

    async def test_rollback_discards_writes(self, db):
        with pytest.raises(RuntimeError):
            async with db.transaction():
                await crud.create_topic(db, "Optics")
                raise RuntimeError("boom")

        rows = await db.fetchall("SELECT * FROM topics")
        assert rows == []

    async def test_inner_failure_rolls_back_savepoint_only(self, db):
        """A handled failure of a nested block keeps the outer writes."""
        async with db.transaction():
            await crud.create_topic(db, "Outer")
            try:
                async with db.transaction():
                    await crud.create_topic(db, "Inner")
                    raise ValueError("inner")
            except ValueError:
                pass

        rows = await db.fetchall("SELECT name FROM topics")
        assert [r["name"] for r in rows] == ["Outer"]

    async def test_on_commit_runs_after_commit(self, db):
        seen = []

        async def hook():
            rows = await db.fetchall("SELECT name FROM topics")
            seen.append([r["name"] for r in rows])

        async with db.transaction():
            await crud.create_topic(db, "Optics")
            db.call_on_commit(hook)
            assert seen == []

        assert seen == [["Optics"]]

    async def test_on_commit_dropped_on_rollback(self, db):
        calls = []

        with pytest.raises(RuntimeError):
            async with db.transaction():
                db.call_on_commit(lambda: calls.append(1))
                raise RuntimeError("boom")

        assert calls == []

    async def test_on_commit_of_rolled_back_savepoint_dropped(self, db):
        calls = []

        async with db.transaction():
            db.call_on_commit(lambda: calls.append("outer"))
            try:
                async with db.transaction():
                    db.call_on_commit(lambda: calls.append("inner"))
                    raise ValueError("inner")
            except ValueError:
                pass

        assert calls == ["outer"]

    async def test_on_commit_requires_transaction(self, db):
        with pytest.raises(RuntimeError, match="requires an open transaction"):
            db.call_on_commit(lambda: None)

    async def test_in_transaction(self, db):
        assert db.in_transaction() is False
        async with db.transaction():
            assert db.in_transaction() is True
        assert db.in_transaction() is False

    async def test_concurrent_transactions_serialized(self, db):
        """Two tasks never interleave inside their transactions."""
        events = []

        async def worker(name):
            async with db.transaction():
                events.append(f"{name}-start")
                await crud.create_topic(db, name)
                await asyncio.sleep(0.01)
                events.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert events in (
            ["a-start", "a-end", "b-start", "b-end"],
            ["b-start", "b-end", "a-start", "a-end"],
        )
        rows = await db.fetchall("SELECT * FROM topics")
        assert len(rows) == 2
