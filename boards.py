from dataclasses import dataclass
from typing import Optional, Sequence

import aiosqlite

from database import DatabaseManager


@dataclass(frozen=True, slots=True)
class Category:
    category_id: int
    name: str
    sortkey: int = 9

    def __str__(self) -> str:
        return f"Category {self.category_id}: {self.name}"

    @classmethod
    def from_row(cls, row) -> "Category":
        return cls(row["category_id"], row["name"], row["sortkey"])


@dataclass(frozen=True, slots=True)
class Forum:
    forum_id: int
    category_id: int
    name: str
    description: str = ""
    sortkey: int = 9
    announcement: bool = False
    thread_count: int = 0
    reply_count: int = 0
    last_post_at: Optional[float] = None
    last_post_actor_id: Optional[int] = None
    last_post_actor_ip: Optional[str] = None
    last_thread_id: Optional[int] = None
    last_thread_title: Optional[str] = None

    def __str__(self) -> str:
        announcement_marker = " [ANNOUNCEMENT]" if self.announcement else ""
        return f"Forum {self.forum_id}: {self.name}{announcement_marker}"

    @classmethod
    def from_row(cls, row) -> "Forum":
        return cls(
            forum_id=row["forum_id"],
            category_id=row["category_id"],
            name=row["name"],
            description=row["description"],
            sortkey=row["sortkey"],
            announcement=bool(row["announcement"]),
            thread_count=row["thread_count"],
            reply_count=row["reply_count"],
            last_post_at=row["last_post_at"],
            last_post_actor_id=row["last_post_actor_id"],
            last_post_actor_ip=row["last_post_actor_ip"],
            last_thread_id=row["last_thread_id"],
            last_thread_title=row["last_thread_title"],
        )

    def has_posts(self) -> bool:
        return self.last_post_at is not None


class BoardManager:
    """Category and forum rows. Creating them is plain CRUD; their counters belong
    to the aggregate updater."""

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db

    async def add_category(self, name: str, sortkey: int = 9,
                           conn: Optional[aiosqlite.Connection] = None) -> Category:
        category_id = await self.db.execute_insert(
            "INSERT INTO categories (name, sortkey) VALUES (?, ?)",
            (name, sortkey), conn=conn
        )
        return Category(category_id, name, sortkey)

    async def add_forum(self, category_id: int, name: str, description: str = "",
                        sortkey: int = 9, announcement: bool = False,
                        conn: Optional[aiosqlite.Connection] = None) -> Forum:
        forum_id = await self.db.execute_insert("""
            INSERT INTO forums (category_id, name, description, sortkey, announcement)
            VALUES (?, ?, ?, ?, ?)
        """, (category_id, name, description, sortkey, announcement), conn=conn)
        return Forum(forum_id, category_id, name, description, sortkey, announcement)

    async def get_category(self, category_id: int,
                           conn: Optional[aiosqlite.Connection] = None) -> Optional[Category]:
        row = await self.db.execute_query(
            "SELECT * FROM categories WHERE category_id = ?",
            (category_id,), fetch_one=True, conn=conn
        )
        return Category.from_row(row) if row else None

    async def get_forum(self, forum_id: int,
                        conn: Optional[aiosqlite.Connection] = None) -> Optional[Forum]:
        row = await self.db.execute_query(
            "SELECT * FROM forums WHERE forum_id = ?",
            (forum_id,), fetch_one=True, conn=conn
        )
        return Forum.from_row(row) if row else None

    async def list_categories(self) -> list[Category]:
        rows = await self.db.execute_query(
            "SELECT * FROM categories ORDER BY sortkey ASC, category_id ASC"
        )
        return [Category.from_row(row) for row in rows]

    async def list_forums(self, category_id: Optional[int] = None) -> list[Forum]:
        """Forums of one category, or all forums grouped by category, in display order"""
        if category_id is None:
            rows = await self.db.execute_query(
                "SELECT * FROM forums ORDER BY category_id ASC, sortkey ASC, forum_id ASC"
            )
        else:
            rows = await self.db.execute_query(
                "SELECT * FROM forums WHERE category_id = ? ORDER BY sortkey ASC, forum_id ASC",
                (category_id,)
            )
        return [Forum.from_row(row) for row in rows]

    async def find_categories_by_name(self, names: Sequence[str]) -> list[Category]:
        if not names:
            return []
        placeholders = ", ".join("?" for _ in names)
        rows = await self.db.execute_query(
            f"SELECT * FROM categories WHERE name IN ({placeholders}) ORDER BY category_id",
            tuple(names)
        )
        return [Category.from_row(row) for row in rows]
