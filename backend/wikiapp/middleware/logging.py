"""
Wiki Backend: Access Logging Middleware
=======================================

What:  One access log line per wiki request on the `wikiapp.access` logger.
How:   Times the rest of the middleware chain. Form posts (/create, /save,
       /delete) answer with a 303, so for redirects the line also names the
       page the browser is sent to.
When:  Runs inside RequestIDMiddleware; the request ID reaches the line
       through RequestIdLogFilter.

Form bodies are never logged: they carry page content.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("wikiapp.access")


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log for page traffic; probe endpoints stay silent."""

    QUIET_PATHS = frozenset({"/alive", "/health"})

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        status = response.status_code
        target = response.headers.get("location")
        logger.log(
            _level_for(status),
            "%s %s -> %d%s in %.1fms",
            request.method,
            request.url.path,
            status,
            f" {target}" if target else "",
            elapsed_ms,
        )
        return response
