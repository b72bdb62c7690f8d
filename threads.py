from dataclasses import dataclass
from typing import Optional

import aiosqlite

from database import DatabaseManager
from users import Actor
from utils import normalize_title


@dataclass(frozen=True, slots=True)
class Thread:
    thread_id: int
    forum_id: int
    title: str
    body: str
    posted_at: float
    actor_id: int = 0
    actor_ip: str = ""
    edited_at: Optional[float] = None
    edit_actor_id: Optional[int] = None
    edit_actor_ip: Optional[str] = None
    closed_at: Optional[float] = None
    closed_actor_id: Optional[int] = None
    closed_actor_ip: Optional[str] = None
    sticky: bool = False
    reply_count: int = 0
    view_count: int = 0
    last_post_at: Optional[float] = None
    last_post_actor_id: int = 0
    last_post_actor_ip: str = ""

    def __str__(self) -> str:
        sticky_marker = " [STICKY]" if self.sticky else ""
        closed_marker = " [CLOSED]" if self.is_closed else ""
        return f"Thread {self.thread_id}: {self.title}{sticky_marker}{closed_marker}"

    @property
    def is_closed(self) -> bool:
        return bool(self.closed_at) and self.closed_at > 0  # type: ignore

    @classmethod
    def from_row(cls, row) -> "Thread":
        return cls(
            thread_id=row["thread_id"],
            forum_id=row["forum_id"],
            title=row["title"],
            body=row["body"],
            posted_at=row["posted_at"],
            actor_id=row["actor_id"],
            actor_ip=row["actor_ip"],
            edited_at=row["edited_at"],
            edit_actor_id=row["edit_actor_id"],
            edit_actor_ip=row["edit_actor_ip"],
            closed_at=row["closed_at"],
            closed_actor_id=row["closed_actor_id"],
            closed_actor_ip=row["closed_actor_ip"],
            sticky=bool(row["sticky"]),
            reply_count=row["reply_count"],
            view_count=row["view_count"],
            last_post_at=row["last_post_at"],
            last_post_actor_id=row["last_post_actor_id"],
            last_post_actor_ip=row["last_post_actor_ip"],
        )


class ThreadManager:
    """Row-level storage for threads. Counter cascades are the caller's job."""

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db

    async def create_thread(self, forum_id: int, title: str, body: str, author: Actor,
                            posted_at: float, conn: Optional[aiosqlite.Connection] = None) -> Thread:
        """Insert a thread whose last-post pointer starts at its own posted metadata."""
        title = normalize_title(title)
        thread_id = await self.db.execute_insert("""
            INSERT INTO threads (forum_id, title, body, posted_at, actor_id, actor_ip,
                                 last_post_at, last_post_actor_id, last_post_actor_ip)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (forum_id, title, body, posted_at, author.actor_id, author.ip,
              posted_at, author.actor_id, author.ip), conn=conn)
        return Thread(
            thread_id, forum_id, title, body, posted_at, author.actor_id, author.ip,
            last_post_at=posted_at, last_post_actor_id=author.actor_id, last_post_actor_ip=author.ip,
        )

    async def find_thread_by_id(self, thread_id: int,
                                conn: Optional[aiosqlite.Connection] = None) -> Optional[Thread]:
        row = await self.db.execute_query(
            "SELECT * FROM threads WHERE thread_id = ?",
            (thread_id,), fetch_one=True, conn=conn
        )
        return Thread.from_row(row) if row else None

    async def find_thread_by_title(self, title: str,
                                   conn: Optional[aiosqlite.Connection] = None) -> Optional[Thread]:
        row = await self.db.execute_query(
            "SELECT * FROM threads WHERE title = ? ORDER BY thread_id LIMIT 1",
            (normalize_title(title),), fetch_one=True, conn=conn
        )
        return Thread.from_row(row) if row else None

    async def title_exists(self, title: str, exclude_thread_id: Optional[int] = None,
                           conn: Optional[aiosqlite.Connection] = None) -> bool:
        thread = await self.find_thread_by_title(title, conn=conn)
        return thread is not None and thread.thread_id != exclude_thread_id

    async def list_threads_for_forum(self, forum_id: int, offset: int = 0,
                                     limit: Optional[int] = None) -> list[Thread]:
        """Sticky threads first, then by most recent activity"""
        rows = await self.db.execute_query("""
            SELECT * FROM threads
            WHERE forum_id = ?
            ORDER BY sticky DESC, last_post_at DESC, thread_id DESC
            LIMIT ? OFFSET ?
        """, (forum_id, -1 if limit is None else limit, offset))
        return [Thread.from_row(row) for row in rows]

    async def update_thread(self, thread_id: int, title: str, body: Optional[str], editor: Actor,
                            edited_at: float, conn: Optional[aiosqlite.Connection] = None):
        if body is None:
            await self.db.execute_update("""
                UPDATE threads
                SET title = ?, edited_at = ?, edit_actor_id = ?, edit_actor_ip = ?
                WHERE thread_id = ?
            """, (normalize_title(title), edited_at, editor.actor_id, editor.ip, thread_id), conn=conn)
        else:
            await self.db.execute_update("""
                UPDATE threads
                SET title = ?, body = ?, edited_at = ?, edit_actor_id = ?, edit_actor_ip = ?
                WHERE thread_id = ?
            """, (normalize_title(title), body, edited_at, editor.actor_id, editor.ip, thread_id), conn=conn)

    async def set_closed(self, thread_id: int, closer: Actor, closed_at: float,
                         conn: Optional[aiosqlite.Connection] = None):
        await self.db.execute_update("""
            UPDATE threads
            SET closed_at = ?, closed_actor_id = ?, closed_actor_ip = ?
            WHERE thread_id = ?
        """, (closed_at, closer.actor_id, closer.ip, thread_id), conn=conn)

    async def clear_closed(self, thread_id: int, conn: Optional[aiosqlite.Connection] = None):
        await self.db.execute_update("""
            UPDATE threads
            SET closed_at = NULL, closed_actor_id = NULL, closed_actor_ip = NULL
            WHERE thread_id = ?
        """, (thread_id,), conn=conn)

    async def set_sticky(self, thread_id: int, sticky: bool,
                         conn: Optional[aiosqlite.Connection] = None):
        await self.db.execute_update(
            "UPDATE threads SET sticky = ? WHERE thread_id = ?",
            (sticky, thread_id), conn=conn
        )

    async def set_forum(self, thread_id: int, forum_id: int,
                        conn: Optional[aiosqlite.Connection] = None):
        await self.db.execute_update(
            "UPDATE threads SET forum_id = ? WHERE thread_id = ?",
            (forum_id, thread_id), conn=conn
        )

    async def delete_thread(self, thread_id: int, conn: Optional[aiosqlite.Connection] = None) -> int:
        """Remove the thread row and its replies. Returns how many replies went with it."""
        removed = await self.db.execute_update(
            "DELETE FROM replies WHERE thread_id = ?", (thread_id,), conn=conn
        )
        await self.db.execute_update(
            "DELETE FROM threads WHERE thread_id = ?", (thread_id,), conn=conn
        )
        return removed

    async def increment_view_count(self, thread_id: int):
        """Best-effort bump on its own connection; lost updates are acceptable."""
        await self.db.execute_update(
            "UPDATE threads SET view_count = view_count + 1 WHERE thread_id = ?",
            (thread_id,)
        )
