"""Prompt logs API router — list, recent, search, CRUD."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response

from promptlog.core.config import Settings
from promptlog.core.exceptions import ResourceNotFoundError, ValidationError
from promptlog.core.security import get_settings, get_store, owner_of, require_read, require_write
from promptlog.domain import User
from promptlog.schemas.schemas import PromptLogCreate, PromptLogOut, PromptLogUpdate
from promptlog.storage.base import LogStore, normalize_limit

logger = logging.getLogger("promptlog")

router = APIRouter(prefix="/logs", tags=["logs"])


@router.get("", response_model=List[PromptLogOut])
def list_logs(
    store: LogStore = Depends(get_store),
    user: Optional[User] = Depends(require_read),
):
    """All logs visible to the caller, newest first."""
    return store.list_all(owner_of(user))


@router.get("/recent", response_model=List[PromptLogOut])
def recent_logs(
    limit: Optional[str] = Query(None),
    settings: Settings = Depends(get_settings),
    store: LogStore = Depends(get_store),
    user: Optional[User] = Depends(require_read),
):
    """Newest logs, ``limit`` of them (invalid limits fall back to the default)."""
    default = settings.RECENT_LOGS_DEFAULT_LIMIT
    size = normalize_limit(limit, default) if limit is not None else default
    return store.list_recent(size, owner_of(user))


@router.get("/search", response_model=List[PromptLogOut])
def search_logs(
    q: Optional[str] = Query(None),
    store: LogStore = Depends(get_store),
    user: Optional[User] = Depends(require_read),
):
    """Case-insensitive substring search across log fields and tags."""
    if not q:
        raise ValidationError(
            "Search query is required",
            errors=[{"loc": ["query", "q"], "msg": "Field required", "type": "missing"}],
        )
    return store.search(q, owner_of(user))


@router.get("/{log_id}", response_model=PromptLogOut)
def get_log(
    log_id: str,
    store: LogStore = Depends(get_store),
    user: Optional[User] = Depends(require_read),
):
    log = store.get(log_id, owner_of(user))
    if log is None:
        raise ResourceNotFoundError("Log not found")
    return log


@router.post("", response_model=PromptLogOut, status_code=201)
def create_log(
    body: PromptLogCreate,
    store: LogStore = Depends(get_store),
    user: Optional[User] = Depends(require_write),
):
    """Create a log; an id is generated when none is supplied."""
    log = store.create(body.to_store(owner_id=owner_of(user)))
    logger.info("Created log %s (owner=%s)", log.id, log.owner_id)
    return log


@router.put("/{log_id}", response_model=PromptLogOut)
def update_log(
    log_id: str,
    body: PromptLogUpdate,
    store: LogStore = Depends(get_store),
    user: Optional[User] = Depends(require_write),
):
    """Merge the supplied fields onto an existing log."""
    log = store.update(log_id, body.to_patch(), owner_of(user))
    if log is None:
        raise ResourceNotFoundError("Log not found")
    logger.info("Updated log %s", log_id)
    return log


@router.delete("/{log_id}", status_code=204, response_class=Response)
def delete_log(
    log_id: str,
    store: LogStore = Depends(get_store),
    user: Optional[User] = Depends(require_write),
):
    if not store.delete(log_id, owner_of(user)):
        raise ResourceNotFoundError("Log not found")
    logger.info("Deleted log %s", log_id)
    return Response(status_code=204)
