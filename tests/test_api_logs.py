"""HTTP tests for /api/logs in no-identity mode."""

import logging
import re

from fastapi.testclient import TestClient

from promptlog.core.exceptions import StorageError
from promptlog.core.middleware import RequestIdFilter
from promptlog.main import create_app
from promptlog.storage.memory import InMemoryLogStore

from conftest import make_settings

PAYLOAD = {
    "prUrl": "https://github.com/a/b/pull/1",
    "authorEmail": "dev@x.com",
    "orchestrator": "Cursor",
    "llm": "GPT-4",
    "tags": "api, auth",
    "content": "# test",
}


def create(client: TestClient, **overrides) -> dict:
    resp = client.post("/api/logs", json={**PAYLOAD, **overrides})
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_create_scenario(client: TestClient) -> None:
    """POST returns 201 with normalized tags, generated id and no branch."""
    resp = client.post("/api/logs", json=PAYLOAD)
    assert resp.status_code == 201
    body = resp.json()
    assert body["tags"] == ["api", "auth"]
    assert re.match(r"^LOG-\d{4}-\d{6}$", body["id"])
    assert body["branch"] is None
    assert body["prUrl"] == PAYLOAD["prUrl"]
    assert body["authorEmail"] == "dev@x.com"
    assert body["ownerId"] is None
    assert body["createdAt"].endswith("Z")
    assert body["updatedAt"] == body["createdAt"]


def test_create_with_explicit_id(client: TestClient) -> None:
    body = create(client, id="LOG-2024-000900", branch="main")
    assert body["id"] == "LOG-2024-000900"
    assert client.get("/api/logs/LOG-2024-000900").json()["branch"] == "main"


def test_create_validation_error_has_field_details(client: TestClient) -> None:
    payload = {k: v for k, v in PAYLOAD.items() if k != "prUrl"}
    resp = client.post("/api/logs", json=payload)
    assert resp.status_code == 400
    body = resp.json()
    assert body["detail"] == "Validation failed"
    assert any("prUrl" in error["loc"] for error in body["errors"])


def test_create_rejects_empty_content(client: TestClient) -> None:
    resp = client.post("/api/logs", json={**PAYLOAD, "content": ""})
    assert resp.status_code == 400


def test_get_by_id_and_not_found(client: TestClient) -> None:
    created = create(client)
    resp = client.get(f"/api/logs/{created['id']}")
    assert resp.status_code == 200
    assert resp.json() == created
    assert client.get("/api/logs/LOG-1999-000001").status_code == 404


def test_list_all_newest_first(client: TestClient) -> None:
    first = create(client, content="first")
    second = create(client, content="second")
    resp = client.get("/api/logs")
    assert resp.status_code == 200
    assert [log["id"] for log in resp.json()] == [second["id"], first["id"]]


def test_recent_limit_and_fallback(client: TestClient) -> None:
    ids = [create(client, content=f"log {i}")["id"] for i in range(12)]
    newest = list(reversed(ids))
    assert [log["id"] for log in client.get("/api/logs/recent", params={"limit": 2}).json()] == newest[:2]
    assert len(client.get("/api/logs/recent").json()) == 10
    assert len(client.get("/api/logs/recent", params={"limit": "abc"}).json()) == 10
    assert len(client.get("/api/logs/recent", params={"limit": -3}).json()) == 10


def test_search_requires_query(client: TestClient) -> None:
    resp = client.get("/api/logs/search")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Search query is required"
    assert client.get("/api/logs/search", params={"q": ""}).status_code == 400


def test_search_case_insensitive(client: TestClient) -> None:
    hello = create(client, content="Hello World")
    create(client, content="Other")
    resp = client.get("/api/logs/search", params={"q": "hello"})
    assert resp.status_code == 200
    assert [log["id"] for log in resp.json()] == [hello["id"]]
    assert client.get("/api/logs/search", params={"q": "xyz123"}).json() == []


def test_search_by_tag(client: TestClient) -> None:
    tagged = create(client, tags="payments, stripe")
    create(client)
    resp = client.get("/api/logs/search", params={"q": "STRIPE"})
    assert [log["id"] for log in resp.json()] == [tagged["id"]]


def test_update_partial(client: TestClient) -> None:
    created = create(client, branch="main")
    resp = client.put(
        f"/api/logs/{created['id']}",
        json={"llm": "Claude 3.5 Sonnet", "tags": "refactor, db", "id": "LOG-OTHER"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] == created["id"]
    assert body["llm"] == "Claude 3.5 Sonnet"
    assert body["tags"] == ["refactor", "db"]
    assert body["branch"] == "main"
    assert body["content"] == created["content"]
    assert body["updatedAt"] > created["updatedAt"]
    assert client.get("/api/logs/LOG-OTHER").status_code == 404


def test_update_missing_returns_404(client: TestClient) -> None:
    resp = client.put("/api/logs/LOG-1999-000001", json={"llm": "GPT-4o"})
    assert resp.status_code == 404


def test_update_validation_error(client: TestClient) -> None:
    created = create(client)
    resp = client.put(f"/api/logs/{created['id']}", json={"content": None})
    assert resp.status_code == 400


def test_delete_twice(client: TestClient) -> None:
    created = create(client)
    first = client.delete(f"/api/logs/{created['id']}")
    assert first.status_code == 204
    assert first.content == b""
    assert client.delete(f"/api/logs/{created['id']}").status_code == 404
    assert client.get(f"/api/logs/{created['id']}").status_code == 404


def test_writes_rejected_when_anonymous_writes_disabled() -> None:
    store = InMemoryLogStore()
    store.create({
        "pr_url": "https://github.com/a/b/pull/9",
        "author_email": "dev@x.com",
        "orchestrator": "Cursor",
        "llm": "GPT-4",
        "content": "seeded",
    })
    client = TestClient(create_app(settings=make_settings(ANONYMOUS_WRITES_ALLOWED=False), store=store))

    assert client.get("/api/logs").status_code == 200
    assert client.post("/api/logs", json=PAYLOAD).status_code == 401
    log_id = store.list_all()[0].id
    assert client.put(f"/api/logs/{log_id}", json={"llm": "x"}).status_code == 401
    assert client.delete(f"/api/logs/{log_id}").status_code == 401
    assert store.get(log_id).llm == "GPT-4"


class FailingStore(InMemoryLogStore):
    def list_all(self, owner_id=None):
        raise StorageError("Failed to fetch logs")


def test_storage_error_is_500_without_details() -> None:
    client = TestClient(create_app(settings=make_settings(), store=FailingStore()))
    resp = client.get("/api/logs")
    assert resp.status_code == 500
    assert resp.json() == {"detail": "Failed to fetch logs"}


def test_health(client: TestClient) -> None:
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "storage": "memory", "identity": False}


def test_request_id_header(client: TestClient) -> None:
    resp = client.get("/api/health")
    assert resp.headers["X-Request-Id"]
    assert "X-Response-Time-Ms" in resp.headers


def test_supplied_request_id_is_echoed(client: TestClient) -> None:
    resp = client.get("/api/health", headers={"X-Request-Id": "req-abc.123"})
    assert resp.headers["X-Request-Id"] == "req-abc.123"

    other = client.get("/api/health", headers={"X-Request-Id": "not an id!"})
    assert other.headers["X-Request-Id"] != "not an id!"


def test_request_id_reaches_log_records(client: TestClient, caplog) -> None:
    caplog.set_level(logging.INFO, logger="promptlog")
    caplog.handler.addFilter(RequestIdFilter())
    client.get("/api/logs/LOG-1999-000001", headers={"X-Request-Id": "trace-42"})
    access = [r for r in caplog.records if r.getMessage().startswith("GET /api/logs/")]
    assert access
    assert access[-1].request_id == "trace-42"


def test_unaddressable_ids_are_rejected(client: TestClient) -> None:
    for bad_id in ("a/b", "recent", "search"):
        resp = client.post("/api/logs", json={**PAYLOAD, "id": bad_id})
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["loc"] == ["body", "id"]


def test_sql_backend_end_to_end(sql_store) -> None:
    client = TestClient(create_app(settings=make_settings(), store=sql_store))
    created = create(client)
    assert client.get(f"/api/logs/{created['id']}").json() == created
    assert [log["id"] for log in client.get("/api/logs/search", params={"q": "AUTH"}).json()] == [created["id"]]
    assert client.delete(f"/api/logs/{created['id']}").status_code == 204
