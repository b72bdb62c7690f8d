"""Denormalized counter maintenance for the category > forum > thread > reply tree.

Forums carry ``thread_count``, ``reply_count`` and a last-post pointer; threads
carry ``reply_count`` and their own last-post pointer. Every structural change
goes through one of the ``on_*`` methods below, always on the connection of the
transaction that made the row change, so the counters commit or roll back
together with it.

Additions apply a delta. Removals apply a delta to the counts but *recompute*
the last-post pointers from what is left, since the removed post was not
necessarily the newest one.
"""
import logging

import aiosqlite

from posts import Reply
from threads import Thread

logger = logging.getLogger(__name__)

NEWEST_FORUM_POST = """
    SELECT thread_id, title, actor_id, actor_ip, posted_at, 0 AS is_reply, thread_id AS post_id
    FROM threads
    WHERE forum_id = ?
    UNION ALL
    SELECT t.thread_id, t.title, r.actor_id, r.actor_ip, r.posted_at, 1 AS is_reply, r.reply_id AS post_id
    FROM replies r
    JOIN threads t ON r.thread_id = t.thread_id
    WHERE t.forum_id = ?
    ORDER BY posted_at DESC, is_reply DESC, post_id DESC
    LIMIT 1
"""


class AggregateUpdater:

    async def on_thread_added(self, conn: aiosqlite.Connection, thread: Thread):
        await conn.execute("""
            UPDATE forums
            SET thread_count = thread_count + 1,
                last_post_at = ?,
                last_post_actor_id = ?,
                last_post_actor_ip = ?,
                last_thread_id = ?,
                last_thread_title = ?
            WHERE forum_id = ?
        """, (thread.posted_at, thread.actor_id, thread.actor_ip,
              thread.thread_id, thread.title, thread.forum_id))

    async def on_reply_added(self, conn: aiosqlite.Connection, thread: Thread, reply: Reply):
        await conn.execute("""
            UPDATE threads
            SET reply_count = reply_count + 1,
                last_post_at = ?,
                last_post_actor_id = ?,
                last_post_actor_ip = ?
            WHERE thread_id = ?
        """, (reply.posted_at, reply.actor_id, reply.actor_ip, thread.thread_id))
        await conn.execute("""
            UPDATE forums
            SET reply_count = reply_count + 1,
                last_post_at = ?,
                last_post_actor_id = ?,
                last_post_actor_ip = ?,
                last_thread_id = ?,
                last_thread_title = ?
            WHERE forum_id = ?
        """, (reply.posted_at, reply.actor_id, reply.actor_ip,
              thread.thread_id, thread.title, thread.forum_id))

    async def on_reply_deleted(self, conn: aiosqlite.Connection, thread: Thread):
        """Call after the reply row is gone."""
        cursor = await conn.execute("""
            SELECT actor_id, actor_ip, posted_at
            FROM replies
            WHERE thread_id = ?
            ORDER BY posted_at DESC, reply_id DESC
            LIMIT 1
        """, (thread.thread_id,))
        newest = await cursor.fetchone()
        await cursor.close()

        if newest:
            last = (newest["posted_at"], newest["actor_id"], newest["actor_ip"])
        else:
            last = (thread.posted_at, thread.actor_id, thread.actor_ip)

        await conn.execute("""
            UPDATE threads
            SET reply_count = MAX(reply_count - 1, 0),
                last_post_at = ?,
                last_post_actor_id = ?,
                last_post_actor_ip = ?
            WHERE thread_id = ?
        """, (*last, thread.thread_id))
        await self._adjust_forum(conn, thread.forum_id, threads=0, replies=-1)

    async def on_thread_deleted(self, conn: aiosqlite.Connection, forum_id: int, replies_removed: int):
        """Call after the thread and its replies are gone.

        ``replies_removed`` is the number of reply rows the delete actually
        removed, not the thread's cached counter.
        """
        await self._adjust_forum(conn, forum_id, threads=-1, replies=-replies_removed)

    async def on_thread_moved(self, conn: aiosqlite.Connection, old_forum_id: int,
                              new_forum_id: int, thread: Thread, reply_count: int):
        """Call after ``thread.forum_id`` has been rewritten to ``new_forum_id``."""
        if old_forum_id == new_forum_id:
            return
        await self._adjust_forum(conn, old_forum_id, threads=-1, replies=-reply_count)
        await self._adjust_forum(conn, new_forum_id, threads=1, replies=reply_count)

    async def on_thread_renamed(self, conn: aiosqlite.Connection, thread_id: int, title: str):
        await conn.execute(
            "UPDATE forums SET last_thread_title = ? WHERE last_thread_id = ?",
            (title, thread_id)
        )

    async def recount_forum(self, conn: aiosqlite.Connection, forum_id: int):
        """Rebuild every counter of a forum and of its threads from the rows themselves."""
        await conn.execute("""
            UPDATE threads
            SET reply_count = (SELECT COUNT(*) FROM replies r WHERE r.thread_id = threads.thread_id),
                last_post_at = COALESCE((SELECT r.posted_at FROM replies r WHERE r.thread_id = threads.thread_id
                                         ORDER BY r.posted_at DESC, r.reply_id DESC LIMIT 1), posted_at),
                last_post_actor_id = COALESCE((SELECT r.actor_id FROM replies r WHERE r.thread_id = threads.thread_id
                                               ORDER BY r.posted_at DESC, r.reply_id DESC LIMIT 1), actor_id),
                last_post_actor_ip = COALESCE((SELECT r.actor_ip FROM replies r WHERE r.thread_id = threads.thread_id
                                               ORDER BY r.posted_at DESC, r.reply_id DESC LIMIT 1), actor_ip)
            WHERE forum_id = ?
        """, (forum_id,))
        await conn.execute("""
            UPDATE forums
            SET thread_count = (SELECT COUNT(*) FROM threads t WHERE t.forum_id = forums.forum_id),
                reply_count = (SELECT COUNT(*) FROM replies r
                               JOIN threads t ON r.thread_id = t.thread_id
                               WHERE t.forum_id = forums.forum_id)
            WHERE forum_id = ?
        """, (forum_id,))
        await self._refresh_forum_last_post(conn, forum_id)
        logger.info("Recounted forum %s", forum_id)

    async def _adjust_forum(self, conn: aiosqlite.Connection, forum_id: int, threads: int, replies: int):
        await conn.execute("""
            UPDATE forums
            SET thread_count = MAX(thread_count + ?, 0),
                reply_count = MAX(reply_count + ?, 0)
            WHERE forum_id = ?
        """, (threads, replies, forum_id))
        await self._refresh_forum_last_post(conn, forum_id)

    async def _refresh_forum_last_post(self, conn: aiosqlite.Connection, forum_id: int):
        cursor = await conn.execute(NEWEST_FORUM_POST, (forum_id, forum_id))
        newest = await cursor.fetchone()
        await cursor.close()

        if newest is None:
            await conn.execute("""
                UPDATE forums
                SET last_post_at = NULL, last_post_actor_id = NULL, last_post_actor_ip = NULL,
                    last_thread_id = NULL, last_thread_title = NULL
                WHERE forum_id = ?
            """, (forum_id,))
            return

        await conn.execute("""
            UPDATE forums
            SET last_post_at = ?,
                last_post_actor_id = ?,
                last_post_actor_ip = ?,
                last_thread_id = ?,
                last_thread_title = ?
            WHERE forum_id = ?
        """, (newest["posted_at"], newest["actor_id"], newest["actor_ip"],
              newest["thread_id"], newest["title"], forum_id))
