import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import aiosqlite

from config import DB_BUSY_TIMEOUT
from exceptions import StorageError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS categories (
    category_id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    sortkey INTEGER NOT NULL DEFAULT 9
);

CREATE TABLE IF NOT EXISTS forums (
    forum_id INTEGER PRIMARY KEY AUTOINCREMENT,
    category_id INTEGER NOT NULL REFERENCES categories(category_id),
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    sortkey INTEGER NOT NULL DEFAULT 9,
    announcement BOOLEAN NOT NULL DEFAULT FALSE,
    thread_count INTEGER NOT NULL DEFAULT 0,
    reply_count INTEGER NOT NULL DEFAULT 0,
    last_post_at REAL,
    last_post_actor_id INTEGER,
    last_post_actor_ip TEXT,
    last_thread_id INTEGER,
    last_thread_title TEXT
);

CREATE TABLE IF NOT EXISTS threads (
    thread_id INTEGER PRIMARY KEY AUTOINCREMENT,
    forum_id INTEGER NOT NULL REFERENCES forums(forum_id),
    title TEXT NOT NULL,
    body TEXT NOT NULL,
    posted_at REAL NOT NULL,
    actor_id INTEGER NOT NULL DEFAULT 0,
    actor_ip TEXT NOT NULL DEFAULT '',
    edited_at REAL,
    edit_actor_id INTEGER,
    edit_actor_ip TEXT,
    closed_at REAL,
    closed_actor_id INTEGER,
    closed_actor_ip TEXT,
    sticky BOOLEAN NOT NULL DEFAULT FALSE,
    reply_count INTEGER NOT NULL DEFAULT 0,
    view_count INTEGER NOT NULL DEFAULT 0,
    last_post_at REAL NOT NULL,
    last_post_actor_id INTEGER NOT NULL DEFAULT 0,
    last_post_actor_ip TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS replies (
    reply_id INTEGER PRIMARY KEY AUTOINCREMENT,
    thread_id INTEGER NOT NULL REFERENCES threads(thread_id) ON DELETE CASCADE,
    body TEXT NOT NULL,
    posted_at REAL NOT NULL,
    actor_id INTEGER NOT NULL DEFAULT 0,
    actor_ip TEXT NOT NULL DEFAULT '',
    edited_at REAL,
    edit_actor_id INTEGER,
    edit_actor_ip TEXT
);

CREATE INDEX IF NOT EXISTS idx_forums_category ON forums(category_id, sortkey);
CREATE INDEX IF NOT EXISTS idx_threads_forum ON threads(forum_id, sticky, last_post_at);
CREATE INDEX IF NOT EXISTS idx_threads_title ON threads(title);
CREATE INDEX IF NOT EXISTS idx_threads_posted ON threads(posted_at);
CREATE INDEX IF NOT EXISTS idx_replies_thread ON replies(thread_id, posted_at);
CREATE INDEX IF NOT EXISTS idx_replies_posted ON replies(posted_at);
"""


class DatabaseManager:
    """Thin aiosqlite wrapper.

    Every helper accepts an optional ``conn``. Passing the connection yielded by
    :meth:`transaction` makes the statement part of that transaction; without it
    the statement runs on its own short-lived connection in autocommit mode.
    """

    def __init__(self, db_path: str, busy_timeout: float = DB_BUSY_TIMEOUT):
        self.db_path = db_path
        self.busy_timeout = busy_timeout

    async def get_connection(self) -> aiosqlite.Connection:
        # isolation_level=None: no implicit BEGIN, transactions are explicit
        conn = await aiosqlite.connect(self.db_path, timeout=self.busy_timeout, isolation_level=None)
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA foreign_keys = ON")
        return conn

    async def init_schema(self):
        """Create tables and indexes if they do not exist yet"""
        try:
            conn = await self.get_connection()
            try:
                await conn.executescript(SCHEMA)
            finally:
                await conn.close()
        except aiosqlite.Error as e:
            raise StorageError(f"Could not initialise schema: {e}") from e
        logger.debug("Forum schema verified at %s", self.db_path)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run the enclosed statements atomically.

        ``BEGIN IMMEDIATE`` takes the write lock up front, so two mutations of the
        same aggregates serialize instead of interleaving their read-modify-write
        steps. Any exception rolls everything back; SQLite failures come out as
        :class:`StorageError`.
        """
        try:
            conn = await self.get_connection()
        except aiosqlite.Error as e:
            raise StorageError(f"Could not open database: {e}") from e
        try:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                await conn.execute("ROLLBACK")
                raise
            await conn.execute("COMMIT")
        except aiosqlite.Error as e:
            logger.error("Transaction aborted: %s", e)
            raise StorageError(str(e)) from e
        finally:
            await conn.close()

    async def _run(self, conn: aiosqlite.Connection, query: str, params: tuple, fetch_one: bool):
        cursor = await conn.execute(query, params)
        try:
            if fetch_one:
                return await cursor.fetchone()
            return await cursor.fetchall()
        finally:
            await cursor.close()

    async def execute_query(self, query: str, params: tuple = (), fetch_one: bool = False,
                            conn: Optional[aiosqlite.Connection] = None) -> Any:
        if conn is not None:
            return await self._run(conn, query, params, fetch_one)
        try:
            own = await self.get_connection()
            try:
                return await self._run(own, query, params, fetch_one)
            finally:
                await own.close()
        except aiosqlite.Error as e:
            raise StorageError(str(e)) from e

    async def execute_insert(self, query: str, params: tuple = (),
                             conn: Optional[aiosqlite.Connection] = None) -> int:
        if conn is not None:
            cursor = await conn.execute(query, params)
            lastrowid = cursor.lastrowid
            await cursor.close()
            return lastrowid  # type: ignore
        try:
            own = await self.get_connection()
            try:
                cursor = await own.execute(query, params)
                lastrowid = cursor.lastrowid
                await cursor.close()
                return lastrowid  # type: ignore
            finally:
                await own.close()
        except aiosqlite.Error as e:
            raise StorageError(str(e)) from e

    async def execute_update(self, query: str, params: tuple = (),
                             conn: Optional[aiosqlite.Connection] = None) -> int:
        """Run an UPDATE/DELETE and return the number of affected rows"""
        if conn is not None:
            cursor = await conn.execute(query, params)
            rowcount = cursor.rowcount
            await cursor.close()
            return rowcount
        try:
            own = await self.get_connection()
            try:
                cursor = await own.execute(query, params)
                rowcount = cursor.rowcount
                await cursor.close()
                return rowcount
            finally:
                await own.close()
        except aiosqlite.Error as e:
            raise StorageError(str(e)) from e
