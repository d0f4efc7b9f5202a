"""
Wiki Backend: Request ID Middleware
===================================

What:  Tags every request with an ID, echoed back in X-Request-ID.
How:   The client's X-Request-ID is kept when it sends one; otherwise a short
       random ID is generated. The ID lives in a ContextVar for the duration
       of the request.

The ContextVar is read by the access log, by the exception handlers (error
bodies carry it) and by RequestIdLogFilter, which stamps it on every log
record emitted while a route handler runs.
"""

import logging
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIdLogFilter(logging.Filter):
    """Adds `record.request_id` ("-" outside a request) for use in log formats."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("") or "-"
        return True


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        token = request_id_var.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = rid
        return response
