"""Auth API router — Google sign-in, callback, logout, current user."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse

from promptlog.core.config import Settings
from promptlog.core.exceptions import AuthenticationError, StorageError
from promptlog.core.security import (
    SESSION_COOKIE,
    STATE_COOKIE,
    STATE_TTL,
    create_session_token,
    create_state_token,
    get_session_store,
    get_settings,
    get_store,
    read_session_token,
    require_session,
    session_ttl,
    state_matches,
)
from promptlog.domain import User
from promptlog.schemas.schemas import UserOut
from promptlog.services.oauth_service import GoogleOAuthClient, require_client
from promptlog.storage.base import LogStore, SessionStore

logger = logging.getLogger("promptlog")

router = APIRouter(prefix="/auth", tags=["auth"])


def get_oauth_client(request: Request) -> Optional[GoogleOAuthClient]:
    return request.app.state.oauth


def _home(settings: Settings, error: Optional[str] = None) -> str:
    base = settings.FRONTEND_URL.rstrip("/") + "/"
    return f"{base}?error={error}" if error else base


@router.get("/user", response_model=UserOut)
def current_user(user: User = Depends(require_session)):
    """Profile of the signed-in user."""
    return user


@router.get("/google")
def google_login(
    settings: Settings = Depends(get_settings),
    oauth: Optional[GoogleOAuthClient] = Depends(get_oauth_client),
):
    """Redirect to the provider's consent screen."""
    client = require_client(oauth)
    state, state_cookie = create_state_token(settings)
    response = RedirectResponse(client.authorization_url(state))
    response.set_cookie(
        STATE_COOKIE,
        state_cookie,
        max_age=int(STATE_TTL.total_seconds()),
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )
    return response


@router.get("/google/callback")
async def google_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    store: LogStore = Depends(get_store),
    sessions: SessionStore = Depends(get_session_store),
    oauth: Optional[GoogleOAuthClient] = Depends(get_oauth_client),
):
    """Finish sign-in: verify state, exchange the code, upsert the user, open a session."""
    client = require_client(oauth)
    failure = RedirectResponse(_home(settings, "auth_failed"))
    failure.delete_cookie(STATE_COOKIE)

    if error or not code:
        logger.warning("OAuth callback without code (error=%s)", error)
        return failure
    if not state_matches(request.cookies.get(STATE_COOKIE), state, settings):
        logger.warning("OAuth callback with mismatched state")
        return failure

    try:
        profile = await client.authenticate(code)
        user = await run_in_threadpool(store.upsert_user, profile)
        sid = await run_in_threadpool(sessions.create, user.id, session_ttl(settings))
    except (AuthenticationError, StorageError) as e:
        logger.warning("Sign-in failed: %s", e.message)
        return failure

    logger.info("User %s signed in", user.id)
    response = RedirectResponse(_home(settings))
    response.delete_cookie(STATE_COOKIE)
    response.set_cookie(
        SESSION_COOKIE,
        create_session_token(sid, settings),
        max_age=int(session_ttl(settings).total_seconds()),
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )
    return response


@router.get("/logout")
def logout(
    request: Request,
    settings: Settings = Depends(get_settings),
    sessions: SessionStore = Depends(get_session_store),
):
    """Drop the server-side session and clear the cookie."""
    sid = read_session_token(request.cookies.get(SESSION_COOKIE), settings)
    if sid:
        sessions.delete(sid)
    response = RedirectResponse(_home(settings))
    response.delete_cookie(SESSION_COOKIE)
    return response
