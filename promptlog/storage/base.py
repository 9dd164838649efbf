"""Storage contracts shared by the in-memory and SQL backends."""

from __future__ import annotations

import abc
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

from promptlog.domain import PromptLog, User

DEFAULT_RECENT_LIMIT = 10


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every backend stores and returns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def next_timestamp(previous: Optional[datetime] = None) -> datetime:
    """Current time, nudged forward so it is strictly after ``previous``."""
    now = utcnow()
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def normalize_limit(limit: Any, default: int = DEFAULT_RECENT_LIMIT) -> int:
    """Positive integer limit, or ``default`` for anything else."""
    if isinstance(limit, bool):
        return default
    try:
        value = int(limit)
    except (TypeError, ValueError):
        return default
    if isinstance(limit, float) and value != limit:
        return default
    return value if value > 0 else default


class LogStore(abc.ABC):
    """Persistence contract for prompt logs and the users that own them.

    ``data`` passed to :meth:`create` and ``patch`` passed to :meth:`update`
    are mappings keyed by :data:`promptlog.domain.EDITABLE_FIELDS` (plus
    ``id`` and ``owner_id`` for create). Tags must already be normalized.
    """

    backend_name = "abstract"

    @abc.abstractmethod
    def get(self, log_id: str, owner_id: Optional[str] = None) -> Optional[PromptLog]:
        ...

    @abc.abstractmethod
    def list_all(self, owner_id: Optional[str] = None) -> List[PromptLog]:
        ...

    @abc.abstractmethod
    def list_recent(
        self, limit: Any = DEFAULT_RECENT_LIMIT, owner_id: Optional[str] = None
    ) -> List[PromptLog]:
        ...

    @abc.abstractmethod
    def search(self, query: str, owner_id: Optional[str] = None) -> List[PromptLog]:
        ...

    @abc.abstractmethod
    def create(self, data: Mapping[str, Any]) -> PromptLog:
        ...

    @abc.abstractmethod
    def update(
        self, log_id: str, patch: Mapping[str, Any], owner_id: Optional[str] = None
    ) -> Optional[PromptLog]:
        ...

    @abc.abstractmethod
    def delete(self, log_id: str, owner_id: Optional[str] = None) -> bool:
        ...

    @abc.abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        ...

    @abc.abstractmethod
    def upsert_user(self, data: Mapping[str, Any]) -> User:
        ...

    def create_schema(self) -> None:
        """Create backing tables where the backend has any."""

    def close(self) -> None:
        """Release backend resources."""


class SessionStore(abc.ABC):
    """Server-side session records referenced by the signed session cookie."""

    @abc.abstractmethod
    def create(self, user_id: str, ttl: timedelta) -> str:
        """Persist a new session for ``user_id`` and return its id."""

    @abc.abstractmethod
    def get(self, sid: str) -> Optional[Dict[str, Any]]:
        """Session payload, or None when missing or expired."""

    @abc.abstractmethod
    def delete(self, sid: str) -> None:
        ...

    @abc.abstractmethod
    def purge_expired(self) -> int:
        """Drop expired sessions and return how many were removed."""

    def close(self) -> None:
        """Release backend resources."""
