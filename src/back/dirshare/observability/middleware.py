"""Request middleware for the dirshare FastAPI application.

- ``RequestIdMiddleware`` accepts or mints an ``X-Request-ID``, binds it
  into the structlog context for the lifetime of the request and echoes
  it on the response.
- ``AccessMiddleware`` times each request once and uses that timing for
  both the Prometheus HTTP series and the ``request_completed`` log line.

Share tokens are bearer credentials, so request paths are reduced to
route templates before they reach metric labels or access logs.
"""

from __future__ import annotations

import re
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from .logging import get_logger
from .metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_FLIGHT,
    HTTP_REQUESTS_TOTAL,
)

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

_VALID_REQUEST_ID = re.compile(r"^[a-zA-Z0-9\-]{8,128}$")

_TOKEN_ROUTES = [
    (re.compile(r"^/share/[^/]+$"), "/share/{token}"),
    (re.compile(r"^/direct-download/[^/]+$"), "/direct-download/{token}"),
]


def _normalize_path(path: str) -> str:
    """Replace share tokens in ``path`` with a route template."""
    for pattern, template in _TOKEN_ROUTES:
        if pattern.match(path):
            return template
    return path


def _request_id(request: Request) -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER, "")
    if _VALID_REQUEST_ID.match(incoming):
        return incoming
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a per-request correlation ID into the structlog context."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        rid = _request_id(request)
        with structlog.contextvars.bound_contextvars(request_id=rid):
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response


class AccessMiddleware(BaseHTTPMiddleware):
    """Record HTTP metrics and one structured access line per request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        method = request.method
        path = _normalize_path(request.url.path)
        status = 500

        HTTP_REQUESTS_IN_FLIGHT.inc()
        start = time.perf_counter()
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            duration = time.perf_counter() - start
            HTTP_REQUESTS_IN_FLIGHT.dec()
            HTTP_REQUEST_DURATION_SECONDS.labels(method=method, path=path).observe(duration)
            HTTP_REQUESTS_TOTAL.labels(method=method, path=path, status=str(status)).inc()
            logger.info(
                "request_completed",
                method=method,
                path=path,
                status=status,
                duration_ms=round(duration * 1000, 2),
            )
