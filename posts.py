from dataclasses import dataclass
from typing import Optional

import aiosqlite

from database import DatabaseManager
from users import Actor


@dataclass(frozen=True, slots=True)
class Reply:
    reply_id: int
    thread_id: int
    body: str
    posted_at: float
    actor_id: int = 0
    actor_ip: str = ""
    edited_at: Optional[float] = None
    edit_actor_id: Optional[int] = None
    edit_actor_ip: Optional[str] = None

    def __str__(self) -> str:
        return f"Reply {self.reply_id}: {self.body[:50]}..."

    @classmethod
    def from_row(cls, row) -> "Reply":
        return cls(
            reply_id=row["reply_id"],
            thread_id=row["thread_id"],
            body=row["body"],
            posted_at=row["posted_at"],
            actor_id=row["actor_id"],
            actor_ip=row["actor_ip"],
            edited_at=row["edited_at"],
            edit_actor_id=row["edit_actor_id"],
            edit_actor_ip=row["edit_actor_ip"],
        )


class PostManager:
    def __init__(self, db: DatabaseManager) -> None:
        self.db = db

    async def create_reply(self, thread_id: int, body: str, author: Actor, posted_at: float,
                           conn: Optional[aiosqlite.Connection] = None) -> Reply:
        reply_id = await self.db.execute_insert("""
            INSERT INTO replies (thread_id, body, posted_at, actor_id, actor_ip)
            VALUES (?, ?, ?, ?, ?)
        """, (thread_id, body, posted_at, author.actor_id, author.ip), conn=conn)
        return Reply(reply_id, thread_id, body, posted_at, author.actor_id, author.ip)

    async def find_reply_by_id(self, reply_id: int,
                               conn: Optional[aiosqlite.Connection] = None) -> Optional[Reply]:
        row = await self.db.execute_query(
            "SELECT * FROM replies WHERE reply_id = ?",
            (reply_id,), fetch_one=True, conn=conn
        )
        return Reply.from_row(row) if row else None

    async def list_replies_for_thread(self, thread_id: int, offset: int = 0,
                                      limit: Optional[int] = None) -> list[Reply]:
        """Replies oldest first; ``limit=None`` returns the rest of the thread"""
        rows = await self.db.execute_query("""
            SELECT * FROM replies
            WHERE thread_id = ?
            ORDER BY posted_at ASC, reply_id ASC
            LIMIT ? OFFSET ?
        """, (thread_id, -1 if limit is None else limit, offset))
        return [Reply.from_row(row) for row in rows]

    async def count_replies(self, thread_id: int,
                            conn: Optional[aiosqlite.Connection] = None) -> int:
        row = await self.db.execute_query(
            "SELECT COUNT(*) AS count FROM replies WHERE thread_id = ?",
            (thread_id,), fetch_one=True, conn=conn
        )
        return row["count"]

    async def update_reply(self, reply_id: int, body: str, editor: Actor, edited_at: float,
                           conn: Optional[aiosqlite.Connection] = None):
        await self.db.execute_update("""
            UPDATE replies
            SET body = ?, edited_at = ?, edit_actor_id = ?, edit_actor_ip = ?
            WHERE reply_id = ?
        """, (body, edited_at, editor.actor_id, editor.ip, reply_id), conn=conn)

    async def delete_reply(self, reply_id: int, conn: Optional[aiosqlite.Connection] = None) -> bool:
        removed = await self.db.execute_update(
            "DELETE FROM replies WHERE reply_id = ?", (reply_id,), conn=conn
        )
        return removed > 0
