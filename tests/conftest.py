import pytest

from audit import MemoryAuditSink
from config import ForumConfig
from forum import ForumService
from users import Actor, anonymous

ADMIN = Actor(1, "Admin", "10.0.0.1", frozenset({"admin"}))
MODERATOR = Actor(2, "Mod", "10.0.0.2", frozenset({"moderator"}))
ALICE = Actor(3, "Alice", "10.0.0.3")
BOB = Actor(4, "Bob", "10.0.0.4")
ANON = anonymous("10.0.0.9")


class FakeClock:
    """Strictly increasing timestamps, one second apart."""

    def __init__(self, start: float = 1_700_000_000.0, step: float = 1.0):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def audit():
    return MemoryAuditSink()


@pytest.fixture
def config(tmp_path, clock):
    return ForumConfig(db_path=str(tmp_path / "forum.db"), clock=clock,
                       max_threads_per_page=5, max_replies_per_page=10)


@pytest.fixture
async def service(config, audit):
    forum = ForumService(config, audit=audit)
    await forum.initialize()
    return forum


@pytest.fixture
async def board(service):
    """One category with two forums."""
    category = await service.add_category(ADMIN, "General")
    first = await service.add_forum(ADMIN, category.category_id, "Talk")
    second = await service.add_forum(ADMIN, category.category_id, "Help")
    return category, first, second


@pytest.fixture
def check_counters(service):
    """Assert every cached counter and last-post pointer matches the rows."""

    async def check():
        db = service.db
        for forum in await db.execute_query("SELECT * FROM forums"):
            forum_id = forum["forum_id"]
            threads = await db.execute_query(
                "SELECT COUNT(*) AS n FROM threads WHERE forum_id = ?", (forum_id,), fetch_one=True)
            replies = await db.execute_query("""
                SELECT COUNT(*) AS n FROM replies r JOIN threads t ON r.thread_id = t.thread_id
                WHERE t.forum_id = ?
            """, (forum_id,), fetch_one=True)
            newest = await db.execute_query("""
                SELECT MAX(ts) AS ts FROM (
                    SELECT posted_at AS ts FROM threads WHERE forum_id = ?
                    UNION ALL
                    SELECT r.posted_at FROM replies r JOIN threads t ON r.thread_id = t.thread_id
                    WHERE t.forum_id = ?
                )
            """, (forum_id, forum_id), fetch_one=True)
            assert forum["thread_count"] == threads["n"], f"forum {forum_id} thread_count"
            assert forum["reply_count"] == replies["n"], f"forum {forum_id} reply_count"
            assert forum["last_post_at"] == newest["ts"], f"forum {forum_id} last_post_at"

        for thread in await db.execute_query("SELECT * FROM threads"):
            thread_id = thread["thread_id"]
            row = await db.execute_query(
                "SELECT COUNT(*) AS n, MAX(posted_at) AS ts FROM replies WHERE thread_id = ?",
                (thread_id,), fetch_one=True)
            assert thread["reply_count"] == row["n"], f"thread {thread_id} reply_count"
            expected = row["ts"] if row["n"] else thread["posted_at"]
            assert thread["last_post_at"] == expected, f"thread {thread_id} last_post_at"

    return check
