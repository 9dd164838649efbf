"""CORS, request-id, and logging middleware."""

import re
import uuid
import time
import logging
from contextvars import ContextVar
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from promptlog.core.config import Settings

logger = logging.getLogger("promptlog")

REQUEST_ID_HEADER = "X-Request-Id"
# Ids supplied by a proxy or client are reused only when they look like ids.
_INCOMING_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    """Stamp every log record with the id of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


def resolve_request_id(incoming: Optional[str]) -> str:
    if incoming and _INCOMING_ID.match(incoming):
        return incoming
    return uuid.uuid4().hex


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and log one access line when it completes.

    The id is visible to handlers as ``request.state.request_id`` and to log
    records through :class:`RequestIdFilter`, so storage and sign-in failures
    can be matched to the request that caused them.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        start = time.perf_counter()
        try:
            response: Response = await call_next(request)
            duration = round((time.perf_counter() - start) * 1000, 2)
            response.headers[REQUEST_ID_HEADER] = request_id
            response.headers["X-Response-Time-Ms"] = str(duration)

            level = logging.WARNING if response.status_code >= 500 else logging.INFO
            logger.log(
                level,
                "%s %s %s %sms",
                request.method,
                request.url.path,
                response.status_code,
                duration,
            )
            return response
        finally:
            request_id_var.reset(token)


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure all middleware for the application."""
    # CORS, credentials on so the session cookie reaches the API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    # Request ID + timing
    app.add_middleware(RequestIdMiddleware)
