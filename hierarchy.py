from dataclasses import dataclass
from typing import Optional

from boards import BoardManager, Category, Forum
from exceptions import NotFoundError
from threads import Thread, ThreadManager


@dataclass(frozen=True, slots=True)
class Crumb:
    kind: str  # "category", "forum" or "thread"
    key: int
    label: str


class HierarchyNavigator:
    """Parent lookups for one request.

    Results are memoized by id for the lifetime of the navigator; create a new
    navigator per request so nothing outlives it.
    """

    def __init__(self, boards: BoardManager, threads: ThreadManager) -> None:
        self.boards = boards
        self.threads = threads
        self._forums: dict[int, Forum] = {}
        self._categories: dict[int, Category] = {}
        self._threads: dict[int, Thread] = {}

    async def thread(self, thread_id: int) -> Thread:
        if thread_id not in self._threads:
            thread = await self.threads.find_thread_by_id(thread_id)
            if thread is None:
                raise NotFoundError("thread", thread_id)
            self._threads[thread_id] = thread
        return self._threads[thread_id]

    async def forum(self, forum_id: int) -> Forum:
        if forum_id not in self._forums:
            forum = await self.boards.get_forum(forum_id)
            if forum is None:
                raise NotFoundError("forum", forum_id)
            self._forums[forum_id] = forum
        return self._forums[forum_id]

    async def category(self, category_id: int) -> Category:
        if category_id not in self._categories:
            category = await self.boards.get_category(category_id)
            if category is None:
                raise NotFoundError("category", category_id)
            self._categories[category_id] = category
        return self._categories[category_id]

    async def parent_forum(self, thread: Thread) -> Forum:
        return await self.forum(thread.forum_id)

    async def parent_category(self, forum: Forum) -> Category:
        return await self.category(forum.category_id)

    async def breadcrumbs(self, thread: Optional[Thread] = None, forum: Optional[Forum] = None) -> list[Crumb]:
        if thread is not None:
            forum = await self.parent_forum(thread)
        if forum is None:
            return []
        category = await self.parent_category(forum)
        return build_breadcrumbs(category, forum, thread)


def build_breadcrumbs(category: Category, forum: Forum, thread: Optional[Thread] = None) -> list[Crumb]:
    crumbs = [
        Crumb("category", category.category_id, category.name),
        Crumb("forum", forum.forum_id, forum.name),
    ]
    if thread is not None:
        crumbs.append(Crumb("thread", thread.thread_id, thread.title))
    return crumbs
