from dataclasses import dataclass, field
from typing import Sequence, Union

from boards import BoardManager
from config import ForumConfig, RECENT_POSTS_LIMIT
from database import DatabaseManager
from exceptions import ErrorCode, ValidationError
from posts import Reply
from threads import Thread
from utils import escape_like

Post = Union[Thread, Reply]


@dataclass(slots=True)
class RecentPostFilters:
    limit: int = RECENT_POSTS_LIMIT
    category_ids: list[int] = field(default_factory=list)
    category_names: list[str] = field(default_factory=list)
    forum_ids: list[int] = field(default_factory=list)


@dataclass(slots=True)
class SearchResults:
    query: str
    threads: list[Thread] = field(default_factory=list)
    replies: list[Reply] = field(default_factory=list)

    @property
    def hits(self) -> int:
        return len(self.threads) + len(self.replies)


def _in_clause(column: str, values: Sequence) -> str:
    return f"{column} IN ({', '.join('?' for _ in values)})"


class SearchAggregator:
    def __init__(self, db: DatabaseManager, boards: BoardManager, config: ForumConfig) -> None:
        self.db = db
        self.boards = boards
        self.config = config

    async def recent_posts(self, filters: RecentPostFilters) -> list[Post]:
        """Newest threads and replies, mixed, newest first.

        Each kind is fetched pre-sorted and pre-limited to ``filters.limit`` before
        the merge. The merged top ``limit`` can never hold more than ``limit`` posts
        of one kind, so both queries stay bounded without losing anything.
        """
        limit = filters.limit
        if limit <= 0:
            return []

        category_ids = list(filters.category_ids)
        if filters.category_names:
            categories = await self.boards.find_categories_by_name(filters.category_names)
            if not categories and not category_ids:
                return []
            category_ids.extend(category.category_id for category in categories)

        clauses: list[str] = []
        params: list = []
        if category_ids:
            clauses.append(_in_clause("f.category_id", category_ids))
            params.extend(category_ids)
        if filters.forum_ids:
            clauses.append(_in_clause("t.forum_id", filters.forum_ids))
            params.extend(filters.forum_ids)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        reply_rows = await self.db.execute_query(f"""
            SELECT r.*
            FROM replies r
            JOIN threads t ON r.thread_id = t.thread_id
            JOIN forums f ON t.forum_id = f.forum_id
            {where}
            ORDER BY r.posted_at DESC, r.reply_id DESC
            LIMIT ?
        """, (*params, limit))
        thread_rows = await self.db.execute_query(f"""
            SELECT t.*
            FROM threads t
            JOIN forums f ON t.forum_id = f.forum_id
            {where}
            ORDER BY t.posted_at DESC, t.thread_id DESC
            LIMIT ?
        """, (*params, limit))

        posts: list[Post] = [Reply.from_row(row) for row in reply_rows]
        posts.extend(Thread.from_row(row) for row in thread_rows)
        # sort is stable, so equal timestamps keep fetch order
        posts.sort(key=lambda post: post.posted_at, reverse=True)
        return posts[:limit]

    async def search(self, query: str, limit: int = 0) -> SearchResults:
        """Substring search over thread titles and bodies and reply bodies"""
        query = query.strip()
        if len(query) < self.config.search_query_min_length:
            raise ValidationError(
                ErrorCode.QUERY_TOO_SHORT,
                f"Search query must be at least {self.config.search_query_min_length} characters"
            )
        limit = limit or self.config.search_results_limit
        term = f"%{escape_like(query)}%"

        thread_rows = await self.db.execute_query("""
            SELECT * FROM threads
            WHERE title LIKE ? ESCAPE '\\' OR body LIKE ? ESCAPE '\\'
            ORDER BY posted_at DESC, thread_id DESC
            LIMIT ?
        """, (term, term, limit))
        reply_rows = await self.db.execute_query("""
            SELECT * FROM replies
            WHERE body LIKE ? ESCAPE '\\'
            ORDER BY posted_at DESC, reply_id DESC
            LIMIT ?
        """, (term, limit))

        return SearchResults(
            query,
            [Thread.from_row(row) for row in thread_rows],
            [Reply.from_row(row) for row in reply_rows],
        )
