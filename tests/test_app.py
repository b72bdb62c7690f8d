import pytest
from fastapi.testclient import TestClient

from app import create_app
from config import ForumConfig
from forum import ForumService
from security import SecurityManager


@pytest.fixture
def tokens():
    return SecurityManager(secret_key="test-secret")


@pytest.fixture
def client(tmp_path, tokens):
    service = ForumService(ForumConfig(db_path=str(tmp_path / "api.db")))
    with TestClient(create_app(service, tokens, allowed_hosts=["testserver"])) as client:
        yield client


def auth(tokens, actor_id, name, *roles):
    return {"Authorization": f"Bearer {tokens.create_access_token(actor_id, name, roles)}"}


@pytest.fixture
def admin(tokens):
    return auth(tokens, 1, "Admin", "admin")


@pytest.fixture
def moderator(tokens):
    return auth(tokens, 2, "Mod", "moderator")


@pytest.fixture
def alice(tokens):
    return auth(tokens, 3, "Alice")


@pytest.fixture
def bob(tokens):
    return auth(tokens, 4, "Bob")


@pytest.fixture
def forum_id(client, admin):
    response = client.post("/api/categories", json={"name": "General"}, headers=admin)
    assert response.status_code == 200
    category_id = response.json()["category_id"]
    response = client.post(f"/api/categories/{category_id}/forums",
                           json={"name": "Talk", "description": "Anything goes"}, headers=admin)
    assert response.status_code == 200
    return response.json()["forum_id"]


def create_thread(client, headers, forum_id, title="Hello", content="First post"):
    response = client.post(f"/api/forums/{forum_id}/threads",
                           json={"title": title, "content": content}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_default_hosts_reject_unknown_host_header(tmp_path, tokens):
    service = ForumService(ForumConfig(db_path=str(tmp_path / "hosts.db")))
    with TestClient(create_app(service, tokens)) as client:
        assert client.get("/health").status_code == 400
        assert client.get("/health", headers={"Host": "localhost"}).status_code == 200


def test_huge_page_number_is_served_not_crashed(client, forum_id, alice):
    thread = create_thread(client, alice, forum_id)

    response = client.get(f"/api/threads/{thread['thread_id']}", params={"page": "99999999999999999999999"})
    assert response.status_code == 200
    assert response.json()["replies"] == []

    response = client.get(f"/api/forums/{forum_id}", params={"page": "²"})
    assert response.status_code == 200
    assert response.json()["page"]["page"] == 1


def test_thread_and_reply_flow(client, forum_id, alice, bob):
    thread = create_thread(client, alice, forum_id, title="Hello_World")
    assert thread["title"] == "Hello World"
    assert thread["actor_id"] == 3

    response = client.post(f"/api/threads/{thread['thread_id']}/replies", json={"content": "Hi!"}, headers=bob)
    assert response.status_code == 200
    reply = response.json()

    page = client.get(f"/api/threads/{thread['thread_id']}").json()
    assert page["thread"]["reply_count"] == 1
    assert page["thread"]["last_post_actor_id"] == 4
    assert [r["reply_id"] for r in page["replies"]] == [reply["reply_id"]]
    assert [c["kind"] for c in page["breadcrumbs"]] == ["category", "forum", "thread"]
    assert page["page"] == {"page": 1, "page_count": 1, "offset": 0, "limit": 10}

    by_title = client.get("/api/threads/by-title/Hello_World", params={"page": "latest"})
    assert by_title.status_code == 200
    assert by_title.json()["thread"]["thread_id"] == thread["thread_id"]

    forum = client.get(f"/api/forums/{forum_id}").json()
    assert forum["forum"]["thread_count"] == 1
    assert forum["forum"]["reply_count"] == 1
    assert forum["forum"]["last_thread_title"] == "Hello World"

    overview = client.get("/api/overview").json()
    assert overview[0]["category"]["name"] == "General"
    assert overview[0]["forums"][0]["reply_count"] == 1


def test_anonymous_cannot_post_by_default(client, forum_id):
    response = client.post(f"/api/forums/{forum_id}/threads", json={"title": "Hi", "content": "anon"})
    assert response.status_code == 403
    assert response.json()["error"] == "PermissionDenied"


def test_invalid_token_is_unauthorized(client, forum_id):
    response = client.post(f"/api/forums/{forum_id}/threads", json={"title": "Hi", "content": "x"},
                           headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_token_signed_with_other_key_is_rejected(client, forum_id):
    forged = SecurityManager(secret_key="other-secret").create_access_token(1, "Admin", ["admin"])
    response = client.post("/api/categories", json={"name": "Forged"},
                           headers={"Authorization": f"Bearer {forged}"})
    assert response.status_code == 401


def test_validation_errors_are_bad_requests(client, forum_id, alice):
    create_thread(client, alice, forum_id, title="Taken")

    duplicate = client.post(f"/api/forums/{forum_id}/threads",
                            json={"title": "Taken", "content": "again"}, headers=alice)
    assert duplicate.status_code == 400
    assert duplicate.json()["message"].startswith("DuplicateTitle")

    empty = client.post(f"/api/forums/{forum_id}/threads",
                        json={"title": "New", "content": "   "}, headers=alice)
    assert empty.status_code == 400


def test_unknown_ids_are_not_found(client, forum_id, alice, moderator):
    assert client.get("/api/threads/999").status_code == 404
    assert client.get("/api/forums/999").status_code == 404
    assert client.delete("/api/replies/999", headers=moderator).status_code == 404
    response = client.post("/api/threads/999/replies", json={"content": "x"}, headers=alice)
    assert response.status_code == 404
    assert response.json()["error"] == "NotFoundError"


def test_closed_thread_rejects_replies(client, forum_id, alice, bob, moderator):
    thread = create_thread(client, alice, forum_id)
    url = f"/api/threads/{thread['thread_id']}"

    assert client.patch(f"{url}/close", json={"closed": True}, headers=alice).status_code == 403
    closed = client.patch(f"{url}/close", json={"closed": True}, headers=moderator)
    assert closed.json()["is_closed"] is True

    response = client.post(f"{url}/replies", json={"content": "late"}, headers=bob)
    assert response.status_code == 409

    client.patch(f"{url}/close", json={"closed": False}, headers=moderator)
    assert client.post(f"{url}/replies", json={"content": "on time"}, headers=bob).status_code == 200


def test_edit_move_and_delete(client, admin, forum_id, alice, bob, moderator):
    category_id = client.get("/api/overview").json()[0]["category"]["category_id"]
    other = client.post(f"/api/categories/{category_id}/forums", json={"name": "Help"}, headers=admin).json()
    thread = create_thread(client, alice, forum_id)
    url = f"/api/threads/{thread['thread_id']}"
    reply = client.post(f"{url}/replies", json={"content": "typo"}, headers=bob).json()

    assert client.put(url, json={"title": "Mine now"}, headers=bob).status_code == 403
    edited = client.put(url, json={"title": "Renamed", "content": "Better text"}, headers=alice).json()
    assert (edited["title"], edited["body"]) == ("Renamed", "Better text")

    fixed = client.patch(f"/api/replies/{reply['reply_id']}", json={"content": "fixed"}, headers=bob).json()
    assert fixed["body"] == "fixed"

    moved = client.post(f"{url}/move", json={"forum_id": other["forum_id"]}, headers=moderator).json()
    assert moved["forum_id"] == other["forum_id"]
    assert client.get(f"/api/forums/{forum_id}").json()["forum"]["thread_count"] == 0
    target = client.get(f"/api/forums/{other['forum_id']}").json()["forum"]
    assert (target["thread_count"], target["reply_count"]) == (1, 1)

    assert client.delete(url, headers=alice).status_code == 200
    target = client.get(f"/api/forums/{other['forum_id']}").json()["forum"]
    assert (target["thread_count"], target["reply_count"]) == (0, 0)
    assert target["last_post_at"] is None


def test_sticky_and_recount_are_admin_only(client, forum_id, admin, alice, moderator):
    thread = create_thread(client, alice, forum_id)
    url = f"/api/threads/{thread['thread_id']}/sticky"

    assert client.patch(url, json={"sticky": True}, headers=moderator).status_code == 403
    assert client.patch(url, json={"sticky": True}, headers=admin).json()["sticky"] is True

    assert client.post(f"/api/forums/{forum_id}/recount", headers=moderator).status_code == 403
    recounted = client.post(f"/api/forums/{forum_id}/recount", headers=admin).json()
    assert recounted["thread_count"] == 1


def test_recent_posts_and_search(client, forum_id, alice, bob):
    thread = create_thread(client, alice, forum_id, title="Gardening", content="tomatoes")
    for n in range(3):
        client.post(f"/api/threads/{thread['thread_id']}/replies", json={"content": f"reply {n}"}, headers=bob)

    recent = client.get("/api/recent", params={"limit": 3}).json()
    assert [post["kind"] for post in recent] == ["reply", "reply", "reply"]
    assert recent[0]["text"] == "reply 2"

    everything = client.get("/api/recent", params={"category": "General"}).json()
    assert len(everything) == 4
    assert everything[-1] == {
        "kind": "thread", "post_id": thread["thread_id"], "thread_id": thread["thread_id"],
        "posted_at": thread["posted_at"], "actor_id": 3, "text": "Gardening",
    }
    assert client.get("/api/recent", params={"category": "Missing"}).json() == []

    results = client.get("/api/search", params={"q": "tomato"}).json()
    assert results["hits"] == 1
    assert results["threads"][0]["title"] == "Gardening"
    assert client.get("/api/search", params={"q": "t"}).status_code == 400
