from .base import LogStore, SessionStore
from .memory import InMemoryLogStore, InMemorySessionStore
from .sql import SqlLogStore, SqlSessionStore

__all__ = [
    "LogStore",
    "SessionStore",
    "InMemoryLogStore",
    "InMemorySessionStore",
    "SqlLogStore",
    "SqlSessionStore",
]
