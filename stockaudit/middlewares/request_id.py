"""Correlation ids for API calls.

Each request gets an id (taken from ``X-Request-ID`` when the caller sends
one) that is echoed back and attached to every log line written while the
request is handled. The operator resolved by the auth dependency is recorded
on ``request.state`` and added to the completion log.
"""

from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

request_id_ctx_var: ContextVar[str | None] = ContextVar("stockaudit_request_id", default=None)
principal_ctx_var: ContextVar[str | None] = ContextVar("stockaudit_principal", default=None)
logger = logging.getLogger("stockaudit.request")


def _completion_fields(request: Request, response: Response, elapsed_ms: float) -> dict:
    fields = {
        "method": request.method,
        "path": request.url.path,
        "status": response.status_code,
        "duration_ms": round(elapsed_ms, 2),
    }
    principal = getattr(request.state, "principal", None)
    if principal:
        fields["principal"] = principal
    return fields


class RequestIdMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, header_name: str = REQUEST_ID_HEADER) -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self.header_name) or uuid4().hex
        request.state.request_id = request_id
        id_token = request_id_ctx_var.set(request_id)
        principal_token = principal_ctx_var.set(None)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            response.headers[self.header_name] = request_id
            logger.info(
                "request.completed",
                extra={"extra_data": _completion_fields(request, response, elapsed_ms)},
            )
        finally:
            principal_ctx_var.reset(principal_token)
            request_id_ctx_var.reset(id_token)
        return response
