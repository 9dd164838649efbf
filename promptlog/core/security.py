"""Session cookies and the access-control gate.

The session cookie holds a short JWT whose ``sid`` claim points at a
server-side session row; the row holds the user id. Route dependencies
below decide, per operation, whether the request may proceed and which
owner id scopes it.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from jose import JWTError, jwt

from promptlog.core.config import Settings
from promptlog.core.exceptions import AuthorizationError
from promptlog.domain import User
from promptlog.storage.base import LogStore, SessionStore

logger = logging.getLogger("promptlog")

SESSION_COOKIE = "promptlog_session"
STATE_COOKIE = "promptlog_oauth_state"
STATE_TTL = timedelta(minutes=10)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> LogStore:
    return request.app.state.store


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


# ---- Signed tokens ----

def _encode(claims: dict, ttl: timedelta, settings: Settings) -> str:
    to_encode = claims.copy()
    to_encode["exp"] = datetime.now(timezone.utc) + ttl
    return jwt.encode(to_encode, settings.SESSION_SECRET, algorithm=settings.SESSION_ALGORITHM)


def _decode(token: str, expected_type: str, settings: Settings) -> Optional[dict]:
    try:
        payload = jwt.decode(token, settings.SESSION_SECRET, algorithms=[settings.SESSION_ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != expected_type:
        return None
    return payload


def session_ttl(settings: Settings) -> timedelta:
    return timedelta(days=settings.SESSION_TTL_DAYS)


def create_session_token(sid: str, settings: Settings) -> str:
    """Sign a cookie value referencing server-side session ``sid``."""
    return _encode({"sid": sid, "type": "session"}, session_ttl(settings), settings)


def read_session_token(token: Optional[str], settings: Settings) -> Optional[str]:
    """Return the session id from a cookie value, or None if it is not valid."""
    if not token:
        return None
    payload = _decode(token, "session", settings)
    return payload.get("sid") if payload else None


def create_state_token(settings: Settings) -> tuple[str, str]:
    """New OAuth ``state`` value plus the signed cookie that remembers it."""
    state = secrets.token_urlsafe(24)
    return state, _encode({"state": state, "type": "oauth_state"}, STATE_TTL, settings)


def state_matches(token: Optional[str], state: Optional[str], settings: Settings) -> bool:
    if not token or not state:
        return False
    payload = _decode(token, "oauth_state", settings)
    return bool(payload) and secrets.compare_digest(payload.get("state", ""), state)


# ---- Current user ----

def get_current_user(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: LogStore = Depends(get_store),
    sessions: SessionStore = Depends(get_session_store),
) -> Optional[User]:
    """User bound to the request's session cookie, or None when anonymous."""
    if not settings.identity_configured:
        return None
    sid = read_session_token(request.cookies.get(SESSION_COOKIE), settings)
    if not sid:
        return None
    session = sessions.get(sid)
    if not session or not session.get("userId"):
        return None
    return store.get_user(session["userId"])


# ---- Access-control gate ----

def require_read(
    settings: Settings = Depends(get_settings),
    user: Optional[User] = Depends(get_current_user),
) -> Optional[User]:
    """Reads need a session only when an identity provider is configured."""
    if settings.identity_configured and user is None:
        raise AuthorizationError("Unauthorized")
    return user


def require_write(
    settings: Settings = Depends(get_settings),
    user: Optional[User] = Depends(get_current_user),
) -> Optional[User]:
    """Writes need a session, unless anonymous writes are explicitly allowed
    and no identity provider is configured."""
    if settings.identity_configured:
        if user is None:
            raise AuthorizationError("Unauthorized")
        return user
    if not settings.ANONYMOUS_WRITES_ALLOWED:
        logger.info("Rejected anonymous write: ANONYMOUS_WRITES_ALLOWED is off")
        raise AuthorizationError("Unauthorized")
    return None


def require_session(user: Optional[User] = Depends(get_current_user)) -> User:
    if user is None:
        raise AuthorizationError("Unauthorized")
    return user


def owner_of(user: Optional[User]) -> Optional[str]:
    """Owner filter for store calls: the signed-in user's id, if any."""
    return user.id if user else None
