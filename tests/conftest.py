"""Shared fixtures for the submission pipeline tests."""
import pytest

from practice_sync.client.queue import SubmissionQueue
from practice_sync.client.storage import QueueStorage
from practice_sync.core.database import init_database
from practice_sync.database import crud

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


def options(correct, count=4):
    """Question details with options 1..count, the given ones correct."""
    return {
        "options": [
            {"option_number": n, "option_text": f"Option {n}", "is_correct": n in correct}
            for n in range(1, count + 1)
        ]
    }


@pytest.fixture
def mc_details():
    """Multiple choice, option 2 correct."""
    return options({2})


@pytest.fixture
def mcs_details():
    """Multiple correct statements, options 1 and 3 correct."""
    return options({1, 3})


@pytest.fixture
async def db(tmp_path):
    """Fresh database with the full schema."""
    database = await init_database(str(tmp_path / "practice.db"))
    yield database
    await database.close()


@pytest.fixture
async def seeded(db, mc_details, mcs_details):
    """One topic, three questions and a session of USER_ID over all of them."""
    topic_id = await crud.create_topic(db, "Kinematics")
    q_mc = await crud.create_question(db, "MultipleChoice", mc_details, marks=4, negative_marks=1, topic_id=topic_id)
    q_mcs = await crud.create_question(db, "MultipleCorrectStatements", mcs_details, marks=4, topic_id=topic_id)
    q_tf = await crud.create_question(db, "TrueFalse", options({1}, count=2), marks=2)
    session_id = await crud.create_session(db, USER_ID, [q_mc, q_mcs, q_tf])

    return {
        "topic_id": topic_id,
        "q_mc": q_mc,
        "q_mcs": q_mcs,
        "q_tf": q_tf,
        "session_id": session_id,
    }


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def storage(tmp_path):
    """Client queue storage in a temporary file."""
    store = QueueStorage(str(tmp_path / "queue.db"))
    yield store
    await store.close()


@pytest.fixture
def queue(storage):
    return SubmissionQueue(storage)
