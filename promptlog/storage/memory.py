"""In-memory stores useful for development and unit tests.

Everything lives in process memory and is lost on restart. A lock guards
each operation because FastAPI runs sync endpoints on a threadpool.
"""

from __future__ import annotations

import secrets
import threading
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

from promptlog.core.exceptions import ResourceConflictError, ValidationError
from promptlog.domain import EDITABLE_FIELDS, PromptLog, User
from promptlog.services.id_generator import IdGenerator
from promptlog.services.search import matches
from promptlog.storage.base import (
    DEFAULT_RECENT_LIMIT,
    LogStore,
    SessionStore,
    next_timestamp,
    normalize_limit,
    utcnow,
)


class InMemoryLogStore(LogStore):
    backend_name = "memory"

    def __init__(self, id_generator: Optional[IdGenerator] = None) -> None:
        self._logs: Dict[str, PromptLog] = {}
        self._users: Dict[str, User] = {}
        self._lock = threading.RLock()
        self._ids = id_generator or IdGenerator()
        self._last_stamp: Optional[datetime] = None

    # prompt logs -------------------------------------------------------

    def get(self, log_id: str, owner_id: Optional[str] = None) -> Optional[PromptLog]:
        with self._lock:
            log = self._find(log_id, owner_id)
            return log.copy() if log else None

    def list_all(self, owner_id: Optional[str] = None) -> List[PromptLog]:
        with self._lock:
            return [log.copy() for log in self._ordered(owner_id)]

    def list_recent(
        self, limit: Any = DEFAULT_RECENT_LIMIT, owner_id: Optional[str] = None
    ) -> List[PromptLog]:
        limit = normalize_limit(limit)
        with self._lock:
            return [log.copy() for log in self._ordered(owner_id)[:limit]]

    def search(self, query: str, owner_id: Optional[str] = None) -> List[PromptLog]:
        if not query:
            raise ValidationError("Search query is required")
        with self._lock:
            return [log.copy() for log in self._ordered(owner_id) if matches(log, query)]

    def create(self, data: Mapping[str, Any]) -> PromptLog:
        owner_id = data.get("owner_id")
        with self._lock:
            log_id = data.get("id") or self._ids.next_id(taken=self._logs.__contains__)
            existing = self._logs.get(log_id)
            if existing and existing.owner_id is not None and existing.owner_id != owner_id:
                raise ResourceConflictError(f"Log {log_id} already exists")
            stamp = self._stamp()
            log = PromptLog(
                id=log_id,
                pr_url=data["pr_url"],
                branch=data.get("branch"),
                author_email=data["author_email"],
                orchestrator=data["orchestrator"],
                llm=data["llm"],
                tags=list(data.get("tags") or []),
                content=data["content"],
                owner_id=owner_id,
                created_at=stamp,
                updated_at=stamp,
            )
            self._logs[log_id] = log
            return log.copy()

    def update(
        self, log_id: str, patch: Mapping[str, Any], owner_id: Optional[str] = None
    ) -> Optional[PromptLog]:
        with self._lock:
            log = self._find(log_id, owner_id)
            if log is None:
                return None
            for key, value in patch.items():
                if key not in EDITABLE_FIELDS:
                    continue
                setattr(log, key, list(value or []) if key == "tags" else value)
            log.updated_at = self._stamp(after=log.updated_at)
            return log.copy()

    def delete(self, log_id: str, owner_id: Optional[str] = None) -> bool:
        with self._lock:
            if self._find(log_id, owner_id) is None:
                return False
            del self._logs[log_id]
            return True

    # users -------------------------------------------------------------

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return User(**vars(user)) if user else None

    def upsert_user(self, data: Mapping[str, Any]) -> User:
        with self._lock:
            now = utcnow()
            user = self._users.get(data["id"])
            if user is None:
                user = User(id=data["id"], created_at=now)
                self._users[user.id] = user
            user.email = data.get("email")
            user.first_name = data.get("first_name")
            user.last_name = data.get("last_name")
            user.profile_image_url = data.get("profile_image_url")
            user.updated_at = now
            return User(**vars(user))

    # helpers -----------------------------------------------------------

    def _find(self, log_id: str, owner_id: Optional[str]) -> Optional[PromptLog]:
        log = self._logs.get(log_id)
        if log is None or (owner_id is not None and log.owner_id != owner_id):
            return None
        return log

    def _ordered(self, owner_id: Optional[str]) -> List[PromptLog]:
        logs = [
            log for log in self._logs.values()
            if owner_id is None or log.owner_id == owner_id
        ]
        return sorted(logs, key=lambda log: (log.created_at, log.id), reverse=True)

    def _stamp(self, after: Optional[datetime] = None) -> datetime:
        floor = max(filter(None, (self._last_stamp, after)), default=None)
        self._last_stamp = next_timestamp(floor)
        return self._last_stamp


class InMemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def create(self, user_id: str, ttl: timedelta) -> str:
        sid = secrets.token_urlsafe(32)
        with self._lock:
            self._sessions[sid] = {
                "sess": {"userId": user_id},
                "expire": utcnow() + ttl,
            }
        return sid

    def get(self, sid: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._sessions.get(sid)
            if record is None:
                return None
            if record["expire"] <= utcnow():
                del self._sessions[sid]
                return None
            return dict(record["sess"])

    def delete(self, sid: str) -> None:
        with self._lock:
            self._sessions.pop(sid, None)

    def purge_expired(self) -> int:
        now = utcnow()
        with self._lock:
            expired = [sid for sid, record in self._sessions.items() if record["expire"] <= now]
            for sid in expired:
                del self._sessions[sid]
        return len(expired)
