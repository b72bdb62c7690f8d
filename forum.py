import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from aggregates import AggregateUpdater
from audit import AuditEvent, AuditSink, LoggingAuditSink
from boards import BoardManager, Category, Forum
from config import ForumConfig
from database import DatabaseManager
from exceptions import ErrorCode, NotFoundError, PermissionDenied, StateError, StorageError, ValidationError
from hierarchy import Crumb, HierarchyNavigator
from pagination import PageRequest, PageWindow, compute_window
from posts import PostManager, Reply
from search import Post, RecentPostFilters, SearchAggregator, SearchResults
from threads import Thread, ThreadManager
from users import Actor
from utils import has_illegal_title_chars, normalize_title, truncate

logger = logging.getLogger(__name__)

AbuseGate = Callable[[Actor], bool]


@dataclass(slots=True)
class CategoryOverview:
    category: Category
    forums: list[Forum] = field(default_factory=list)


@dataclass(slots=True)
class ForumPage:
    forum: Forum
    threads: list[Thread]
    window: PageWindow
    breadcrumbs: list[Crumb]


@dataclass(slots=True)
class ThreadPage:
    thread: Thread
    replies: list[Reply]
    window: PageWindow
    breadcrumbs: list[Crumb]


class ForumService:
    """Main entry point that orchestrates all components.

    Every mutation checks permissions and input first, then performs the row
    change and its counter cascade inside one transaction, and finally emits an
    audit event once the transaction has committed.
    """

    def __init__(self, config: Optional[ForumConfig] = None, audit: Optional[AuditSink] = None,
                 abuse_gate: Optional[AbuseGate] = None):
        self.config = config or ForumConfig()
        self.db = DatabaseManager(self.config.db_path, self.config.busy_timeout)
        self.boards = BoardManager(self.db)
        self.threads = ThreadManager(self.db)
        self.posts = PostManager(self.db)
        self.aggregates = AggregateUpdater()
        self.finder = SearchAggregator(self.db, self.boards, self.config)
        self.audit = audit or LoggingAuditSink()
        self.abuse_gate = abuse_gate

    async def initialize(self):
        await self.db.init_schema()

    def navigator(self) -> HierarchyNavigator:
        """A fresh request-scoped navigator"""
        return HierarchyNavigator(self.boards, self.threads)

    # Permission and input checks

    def _deny(self, actor: Actor, what: str):
        logger.warning("%s denied: %s", actor, what)
        raise PermissionDenied(f"Not allowed to {what}")

    def _require_poster(self, actor: Actor, what: str):
        if actor.is_anonymous() and not self.config.allow_anonymous:
            self._deny(actor, what)

    def _require_moderator(self, actor: Actor, what: str):
        if actor.is_anonymous() or not actor.is_moderator():
            self._deny(actor, what)

    def _require_admin(self, actor: Actor, what: str):
        if actor.is_anonymous() or not actor.is_admin():
            self._deny(actor, what)

    def _require_author_or_moderator(self, actor: Actor, author_id: int, what: str):
        if actor.is_anonymous():
            self._deny(actor, what)
        if actor.actor_id != author_id and not actor.is_moderator():
            self._deny(actor, what)

    def _check_abuse_gate(self, actor: Actor):
        if self.abuse_gate is not None and not self.abuse_gate(actor):
            logger.warning("%s failed the anti-abuse check", actor)
            raise ValidationError(ErrorCode.ABUSE_CHECK_FAILED, "Anti-abuse check failed")

    @staticmethod
    def _clean_title(title: str) -> str:
        title = normalize_title(title or "")
        if not title:
            raise ValidationError(ErrorCode.EMPTY_FIELD, "Title must not be empty")
        if has_illegal_title_chars(title):
            raise ValidationError(ErrorCode.INVALID_TITLE_CHARS, "Title contains illegal characters")
        return title

    @staticmethod
    def _clean_text(text: str) -> str:
        text = (text or "").strip()
        if not text:
            raise ValidationError(ErrorCode.EMPTY_FIELD, "Text must not be empty")
        return text

    def _emit(self, action: str, actor: Actor, target_id: int, text: str = ""):
        self.audit.emit(AuditEvent(action, actor.actor_id, target_id,
                                   truncate(text, self.config.audit_summary_length)))

    # Reads

    async def overview(self) -> list[CategoryOverview]:
        categories = {c.category_id: CategoryOverview(c) for c in await self.boards.list_categories()}
        for forum in await self.boards.list_forums():
            if forum.category_id in categories:
                categories[forum.category_id].forums.append(forum)
        return list(categories.values())

    async def show_forum(self, forum_id: int, page: PageRequest = None) -> ForumPage:
        nav = self.navigator()
        forum = await nav.forum(forum_id)
        window = compute_window(forum.thread_count, self.config.max_threads_per_page, page)
        threads = await self.threads.list_threads_for_forum(forum_id, window.offset, window.limit)
        return ForumPage(forum, threads, window, await nav.breadcrumbs(forum=forum))

    async def show_thread(self, thread_id: int, page: PageRequest = None, count_view: bool = True) -> ThreadPage:
        nav = self.navigator()
        thread = await nav.thread(thread_id)
        return await self._thread_page(nav, thread, page, count_view)

    async def show_thread_by_title(self, title: str, page: PageRequest = None,
                                   count_view: bool = True) -> ThreadPage:
        thread = await self.threads.find_thread_by_title(title)
        if thread is None:
            raise NotFoundError("thread", title)
        return await self._thread_page(self.navigator(), thread, page, count_view)

    async def _thread_page(self, nav: HierarchyNavigator, thread: Thread, page: PageRequest,
                           count_view: bool) -> ThreadPage:
        total = await self.posts.count_replies(thread.thread_id)
        window = compute_window(total, self.config.max_replies_per_page, page)
        replies = await self.posts.list_replies_for_thread(thread.thread_id, window.offset, window.limit)
        breadcrumbs = await nav.breadcrumbs(thread=thread)
        if count_view:
            try:
                await self.threads.increment_view_count(thread.thread_id)
            except StorageError as e:
                # display metric only, the page is still served
                logger.warning("View count for thread %s not updated: %s", thread.thread_id, e)
        return ThreadPage(thread, replies, window, breadcrumbs)

    async def recent_posts(self, filters: Optional[RecentPostFilters] = None) -> list[Post]:
        return await self.finder.recent_posts(filters or RecentPostFilters(limit=self.config.recent_posts_limit))

    async def search(self, query: str, limit: int = 0) -> SearchResults:
        return await self.finder.search(query, limit)

    # Categories and forums

    async def add_category(self, actor: Actor, name: str, sortkey: int = 9) -> Category:
        self._require_admin(actor, "add categories")
        name = self._clean_text(name)
        async with self.db.transaction() as conn:
            category = await self.boards.add_category(name, sortkey, conn=conn)
        logger.info("Category %s '%s' added by %s", category.category_id, name, actor)
        self._emit("add-category", actor, category.category_id, name)
        return category

    async def add_forum(self, actor: Actor, category_id: int, name: str, description: str = "",
                        sortkey: int = 9, announcement: bool = False) -> Forum:
        self._require_admin(actor, "add forums")
        name = self._clean_text(name)
        async with self.db.transaction() as conn:
            if await self.boards.get_category(category_id, conn=conn) is None:
                raise NotFoundError("category", category_id)
            forum = await self.boards.add_forum(category_id, name, description.strip(), sortkey,
                                                announcement, conn=conn)
        logger.info("Forum %s '%s' added by %s", forum.forum_id, name, actor)
        self._emit("add-forum", actor, forum.forum_id, name)
        return forum

    async def recount_forum(self, actor: Actor, forum_id: int) -> Forum:
        self._require_admin(actor, "recount forums")
        async with self.db.transaction() as conn:
            if await self.boards.get_forum(forum_id, conn=conn) is None:
                raise NotFoundError("forum", forum_id)
            await self.aggregates.recount_forum(conn, forum_id)
            forum = await self.boards.get_forum(forum_id, conn=conn)
        return forum  # type: ignore

    # Threads

    async def create_thread(self, actor: Actor, forum_id: int, title: str, body: str) -> Thread:
        self._require_poster(actor, "create threads")
        title = self._clean_title(title)
        body = self._clean_text(body)
        self._check_abuse_gate(actor)

        async with self.db.transaction() as conn:
            forum = await self.boards.get_forum(forum_id, conn=conn)
            if forum is None:
                raise NotFoundError("forum", forum_id)
            if forum.announcement and not actor.is_moderator():
                self._deny(actor, f"post in announcement forum {forum_id}")
            if await self.threads.title_exists(title, conn=conn):
                raise ValidationError(ErrorCode.DUPLICATE_TITLE, f"A thread titled '{title}' already exists")
            thread = await self.threads.create_thread(forum_id, title, body, actor, self.config.clock(), conn=conn)
            await self.aggregates.on_thread_added(conn, thread)

        logger.info("Thread %s '%s' created in forum %s by %s", thread.thread_id, title, forum_id, actor)
        self._emit("add-thread", actor, thread.thread_id, body)
        return thread

    async def edit_thread(self, actor: Actor, thread_id: int, title: str, body: Optional[str] = None) -> Thread:
        """Retitle a thread and optionally replace its text. ``body=None`` keeps the text."""
        title = self._clean_title(title)
        if body is not None:
            body = self._clean_text(body)

        async with self.db.transaction() as conn:
            thread = await self._thread_in(conn, thread_id)
            self._require_author_or_moderator(actor, thread.actor_id, f"edit thread {thread_id}")
            if thread.title == title and (body is None or body == thread.body):
                return thread
            if title != thread.title and await self.threads.title_exists(title, thread_id, conn=conn):
                raise ValidationError(ErrorCode.DUPLICATE_TITLE, f"A thread titled '{title}' already exists")
            await self.threads.update_thread(thread_id, title, body, actor, self.config.clock(), conn=conn)
            if title != thread.title:
                await self.aggregates.on_thread_renamed(conn, thread_id, title)
            updated = await self._thread_in(conn, thread_id)

        logger.info("Thread %s edited by %s", thread_id, actor)
        self._emit("edit-thread", actor, thread_id, title)
        return updated

    async def delete_thread(self, actor: Actor, thread_id: int) -> Thread:
        if actor.is_anonymous():
            self._deny(actor, f"delete thread {thread_id}")

        async with self.db.transaction() as conn:
            thread = await self._thread_in(conn, thread_id)
            self._require_author_or_moderator(actor, thread.actor_id, f"delete thread {thread_id}")
            removed = await self.threads.delete_thread(thread_id, conn=conn)
            await self.aggregates.on_thread_deleted(conn, thread.forum_id, removed)

        logger.info("Thread %s deleted with %s replies by %s", thread_id, removed, actor)
        self._emit("delete-thread", actor, thread_id, thread.title)
        return thread

    async def close_thread(self, actor: Actor, thread_id: int) -> Thread:
        self._require_moderator(actor, f"close thread {thread_id}")
        async with self.db.transaction() as conn:
            await self._thread_in(conn, thread_id)
            await self.threads.set_closed(thread_id, actor, self.config.clock(), conn=conn)
            thread = await self._thread_in(conn, thread_id)
        self._emit("close-thread", actor, thread_id, thread.title)
        return thread

    async def reopen_thread(self, actor: Actor, thread_id: int) -> Thread:
        self._require_moderator(actor, f"reopen thread {thread_id}")
        async with self.db.transaction() as conn:
            await self._thread_in(conn, thread_id)
            await self.threads.clear_closed(thread_id, conn=conn)
            thread = await self._thread_in(conn, thread_id)
        self._emit("reopen-thread", actor, thread_id, thread.title)
        return thread

    async def set_sticky(self, actor: Actor, thread_id: int, sticky: bool = True) -> Thread:
        self._require_admin(actor, f"change sticky status of thread {thread_id}")
        async with self.db.transaction() as conn:
            await self._thread_in(conn, thread_id)
            await self.threads.set_sticky(thread_id, sticky, conn=conn)
            thread = await self._thread_in(conn, thread_id)
        self._emit("stick-thread" if sticky else "unstick-thread", actor, thread_id, thread.title)
        return thread

    async def move_thread(self, actor: Actor, thread_id: int, new_forum_id: int,
                          new_title: Optional[str] = None) -> Thread:
        """Move a thread to another forum, optionally retitling it on the way."""
        self._require_moderator(actor, f"move thread {thread_id}")
        if new_title is not None:
            new_title = self._clean_title(new_title)

        async with self.db.transaction() as conn:
            thread = await self._thread_in(conn, thread_id)
            if new_forum_id != thread.forum_id:
                if await self.boards.get_forum(new_forum_id, conn=conn) is None:
                    raise NotFoundError("forum", new_forum_id)
                reply_count = await self.posts.count_replies(thread_id, conn=conn)
                await self.threads.set_forum(thread_id, new_forum_id, conn=conn)
                await self.aggregates.on_thread_moved(conn, thread.forum_id, new_forum_id, thread, reply_count)
            if new_title is not None and new_title != thread.title:
                if await self.threads.title_exists(new_title, thread_id, conn=conn):
                    raise ValidationError(ErrorCode.DUPLICATE_TITLE, f"A thread titled '{new_title}' already exists")
                await self.threads.update_thread(thread_id, new_title, None, actor, self.config.clock(), conn=conn)
                await self.aggregates.on_thread_renamed(conn, thread_id, new_title)
            moved = await self._thread_in(conn, thread_id)

        logger.info("Thread %s moved from forum %s to %s by %s", thread_id, thread.forum_id, new_forum_id, actor)
        self._emit("move-thread", actor, thread_id, f"{moved.title} -> forum {new_forum_id}")
        return moved

    # Replies

    async def create_reply(self, actor: Actor, thread_id: int, body: str) -> Reply:
        self._require_poster(actor, "reply")
        body = self._clean_text(body)
        if actor.is_anonymous():
            self._check_abuse_gate(actor)

        async with self.db.transaction() as conn:
            thread = await self._thread_in(conn, thread_id)
            if thread.is_closed:
                raise StateError(f"Thread {thread_id} is closed")
            reply = await self.posts.create_reply(thread_id, body, actor, self.config.clock(), conn=conn)
            await self.aggregates.on_reply_added(conn, thread, reply)

        logger.info("Reply %s added to thread %s by %s", reply.reply_id, thread_id, actor)
        self._emit("add-reply", actor, reply.reply_id, body)
        return reply

    async def edit_reply(self, actor: Actor, reply_id: int, body: str) -> Reply:
        body = self._clean_text(body)
        async with self.db.transaction() as conn:
            reply = await self._reply_in(conn, reply_id)
            self._require_author_or_moderator(actor, reply.actor_id, f"edit reply {reply_id}")
            if reply.body == body:
                return reply
            await self.posts.update_reply(reply_id, body, actor, self.config.clock(), conn=conn)
            updated = await self._reply_in(conn, reply_id)

        logger.info("Reply %s edited by %s", reply_id, actor)
        self._emit("edit-reply", actor, reply_id, body)
        return updated

    async def delete_reply(self, actor: Actor, reply_id: int) -> Reply:
        if actor.is_anonymous():
            self._deny(actor, f"delete reply {reply_id}")

        async with self.db.transaction() as conn:
            reply = await self._reply_in(conn, reply_id)
            self._require_author_or_moderator(actor, reply.actor_id, f"delete reply {reply_id}")
            thread = await self._thread_in(conn, reply.thread_id)
            await self.posts.delete_reply(reply_id, conn=conn)
            await self.aggregates.on_reply_deleted(conn, thread)

        logger.info("Reply %s deleted from thread %s by %s", reply_id, reply.thread_id, actor)
        self._emit("delete-reply", actor, reply_id, reply.body)
        return reply

    async def _thread_in(self, conn, thread_id: int) -> Thread:
        thread = await self.threads.find_thread_by_id(thread_id, conn=conn)
        if thread is None:
            raise NotFoundError("thread", thread_id)
        return thread

    async def _reply_in(self, conn, reply_id: int) -> Reply:
        reply = await self.posts.find_reply_by_id(reply_id, conn=conn)
        if reply is None:
            raise NotFoundError("reply", reply_id)
        return reply
