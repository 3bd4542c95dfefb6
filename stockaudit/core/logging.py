"""JSON log lines for the audit service.

Every record carries the request id and acting operator of the request it was
written under; callers add structured fields through ``extra={"extra_data": {...}}``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from ..middlewares import principal_ctx_var, request_id_ctx_var
from .config import settings

# Access logs duplicate request.completed.
QUIET_LOGGERS = ("uvicorn.access",)


def _request_context() -> dict[str, Any]:
    context: dict[str, Any] = {}
    request_id = request_id_ctx_var.get()
    if request_id:
        context["request_id"] = request_id
    principal = principal_ctx_var.get()
    if principal:
        context["principal"] = principal
    return context


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "timestamp": stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_request_context(),
        }
        extra_data = getattr(record, "extra_data", None)
        if isinstance(extra_data, Mapping):
            payload.update(extra_data)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), default=str)


def configure_logging(level: str | None = None) -> None:
    """Route the root logger through :class:`JsonLogFormatter` on stderr."""

    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel((level or settings.LOG_LEVEL).upper())
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
