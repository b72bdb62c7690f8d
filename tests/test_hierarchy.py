import pytest

from boards import Category, Forum
from conftest import ALICE
from exceptions import NotFoundError
from hierarchy import Crumb, build_breadcrumbs
from threads import Thread


def test_build_breadcrumbs():
    category = Category(1, "General")
    forum = Forum(2, 1, "Talk")
    thread = Thread(3, 2, "Hello", "text", 0.0)

    assert build_breadcrumbs(category, forum) == [
        Crumb("category", 1, "General"),
        Crumb("forum", 2, "Talk"),
    ]
    assert build_breadcrumbs(category, forum, thread)[-1] == Crumb("thread", 3, "Hello")


async def test_thread_breadcrumbs(service, board):
    category, talk, _ = board
    thread = await service.create_thread(ALICE, talk.forum_id, "Hello", "text")

    crumbs = await service.navigator().breadcrumbs(thread=thread)

    assert [(c.kind, c.key, c.label) for c in crumbs] == [
        ("category", category.category_id, "General"),
        ("forum", talk.forum_id, "Talk"),
        ("thread", thread.thread_id, "Hello"),
    ]


async def test_breadcrumbs_without_anchor_are_empty(service):
    assert await service.navigator().breadcrumbs() == []


async def test_navigator_memoizes_lookups(service, board, monkeypatch):
    _, talk, _ = board
    thread = await service.create_thread(ALICE, talk.forum_id, "Hello", "text")
    calls = []
    get_forum = service.boards.get_forum

    async def counting_get_forum(forum_id, conn=None):
        calls.append(forum_id)
        return await get_forum(forum_id, conn=conn)

    monkeypatch.setattr(service.boards, "get_forum", counting_get_forum)
    nav = service.navigator()

    first = await nav.parent_forum(thread)
    second = await nav.forum(talk.forum_id)
    await nav.breadcrumbs(thread=thread)

    assert first is second
    assert calls == [talk.forum_id]

    await service.navigator().forum(talk.forum_id)
    assert calls == [talk.forum_id, talk.forum_id]


async def test_navigator_missing_nodes(service):
    nav = service.navigator()
    with pytest.raises(NotFoundError):
        await nav.thread(1)
    with pytest.raises(NotFoundError):
        await nav.forum(1)
    with pytest.raises(NotFoundError):
        await nav.category(1)
