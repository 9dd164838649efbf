"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any, Union
from datetime import datetime, timezone

# Path segments under /api/logs that are routes, not log ids.
RESERVED_IDS = ("recent", "search")


def parse_tags(value: Union[str, List[str], None]) -> List[str]:
    """Split a comma-separated tag string, trim each tag, drop empties.

    A list is accepted too and cleaned the same way.
    """
    if value is None:
        return []
    if isinstance(value, str):
        parts = value.split(",")
    elif isinstance(value, (list, tuple)):
        parts = value
    else:
        raise ValueError("tags must be a comma-separated string or a list of strings")
    tags = []
    for part in parts:
        if not isinstance(part, str):
            raise ValueError("tags must be a comma-separated string or a list of strings")
        tag = part.strip()
        if tag:
            tags.append(tag)
    return tags


def format_utc(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 in UTC with a trailing Z and fixed microsecond width."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---- Prompt logs ----
class PromptLogCreate(CamelModel):
    id: Optional[str] = None
    pr_url: str = Field(..., min_length=1)
    branch: Optional[str] = None
    author_email: str = Field(..., min_length=1)
    orchestrator: str = Field(..., min_length=1)
    llm: str = Field(..., min_length=1)
    tags: List[str] = Field(default_factory=list)
    content: str = Field(..., min_length=1)

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, value):
        return parse_tags(value)

    @field_validator("id")
    @classmethod
    def addressable_id(cls, value):
        if value is None:
            return value
        if "/" in value:
            raise ValueError("id cannot contain '/'")
        if value.strip().lower() in RESERVED_IDS:
            raise ValueError(f"id cannot be one of: {', '.join(RESERVED_IDS)}")
        return value

    def to_store(self, owner_id: Optional[str] = None) -> Dict[str, Any]:
        data = self.model_dump()
        data["id"] = (self.id or "").strip() or None
        data["owner_id"] = owner_id
        return data


class PromptLogUpdate(CamelModel):
    """Partial update; only the fields present in the body are applied."""

    id: Optional[str] = None  # accepted for form round-trips, never applied
    pr_url: Optional[str] = Field(None, min_length=1)
    branch: Optional[str] = None
    author_email: Optional[str] = Field(None, min_length=1)
    orchestrator: Optional[str] = Field(None, min_length=1)
    llm: Optional[str] = Field(None, min_length=1)
    tags: Optional[List[str]] = None
    content: Optional[str] = Field(None, min_length=1)

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, value):
        return parse_tags(value)

    @field_validator("pr_url", "author_email", "orchestrator", "llm", "content")
    @classmethod
    def required_not_null(cls, value):
        if value is None:
            raise ValueError("field cannot be null")
        return value

    def to_patch(self) -> Dict[str, Any]:
        patch = self.model_dump(exclude_unset=True)
        patch.pop("id", None)
        return patch


class PromptLogOut(CamelModel):
    id: str
    pr_url: str
    branch: Optional[str] = None
    author_email: str
    orchestrator: str
    llm: str
    tags: List[str] = []
    content: str
    owner_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    @field_serializer("created_at", "updated_at")
    def serialize_timestamp(self, value: datetime) -> str:
        return format_utc(value)


# ---- User ----
class UserOut(CamelModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    @field_serializer("created_at", "updated_at")
    def serialize_timestamp(self, value: Optional[datetime]) -> Optional[str]:
        return format_utc(value)


# ---- Misc ----
class HealthResponse(BaseModel):
    status: str = "ok"
    storage: str
    identity: bool
