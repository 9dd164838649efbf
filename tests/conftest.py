"""Shared fixtures: both store backends, settings and app factories."""

from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from promptlog.core.config import Settings
from promptlog.main import create_app
from promptlog.storage.memory import InMemoryLogStore, InMemorySessionStore
from promptlog.storage.sql import SqlLogStore, SqlSessionStore


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from the environment's .env and OAuth credentials."""
    values: Dict[str, Any] = {
        "DATABASE_URL": None,
        "GOOGLE_CLIENT_ID": None,
        "GOOGLE_CLIENT_SECRET": None,
        "SESSION_SECRET": "test-secret",
        "ANONYMOUS_WRITES_ALLOWED": True,
        "FRONTEND_URL": "http://frontend.test",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def log_data(**overrides: Any) -> Dict[str, Any]:
    """Store-level payload for a valid prompt log."""
    data: Dict[str, Any] = {
        "pr_url": "https://github.com/a/b/pull/1",
        "branch": None,
        "author_email": "dev@x.com",
        "orchestrator": "Cursor",
        "llm": "GPT-4",
        "tags": ["api", "auth"],
        "content": "# test",
    }
    data.update(overrides)
    return data


@pytest.fixture
def memory_store():
    return InMemoryLogStore()


@pytest.fixture
def sql_store():
    store = SqlLogStore.from_url("sqlite://")
    store.create_schema()
    yield store
    store.close()


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Every store conformance test runs against both backends."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture(params=["memory", "sql"])
def session_store(request):
    if request.param == "memory":
        yield InMemorySessionStore()
        return
    log_store = request.getfixturevalue("sql_store")
    yield SqlSessionStore(log_store.database)


@pytest.fixture
def client(memory_store):
    """Client for an app in no-identity mode with anonymous writes allowed."""
    app = create_app(settings=make_settings(), store=memory_store)
    return TestClient(app)
