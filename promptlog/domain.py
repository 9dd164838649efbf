"""Records handed out by every store implementation.

Both storage backends convert their internal representation into these
plain dataclasses so callers never hold an ORM row or a reference into the
in-memory map.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional

# Fields a caller may set on a prompt log (everything but identity and timestamps).
EDITABLE_FIELDS = ("pr_url", "branch", "author_email", "orchestrator", "llm", "tags", "content")


@dataclass
class PromptLog:
    id: str
    pr_url: str
    author_email: str
    orchestrator: str
    llm: str
    content: str
    created_at: datetime
    updated_at: datetime
    branch: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    owner_id: Optional[str] = None

    def copy(self) -> "PromptLog":
        return replace(self, tags=list(self.tags))


@dataclass
class User:
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
