"""Error taxonomy for the audit engine and the HTTP envelope that renders it.

Validation problems (duplicate serials, count mismatches) never show up here:
the reconciler reports them as verdicts. What remains are the failures that
can happen around a mutation:

* ``PermissionDenied`` - the caller may not mutate; raised before any I/O.
* ``TransientDataSourceError`` - network/database hiccup; eligible for retry.
* ``PermanentDataSourceError`` - anything a retry cannot fix.
* ``MutationNotAllowed`` - a write touched a field outside the audit flags.
* ``SerialsUnavailable`` - an outward order names units that are not in stock.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException


class StockAuditError(Exception):
    """Base class for errors raised by the audit engine."""

    code = "stock_audit_error"


class DataSourceError(StockAuditError):
    code = "data_source_error"
    transient = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TransientDataSourceError(DataSourceError):
    code = "data_source_unavailable"
    transient = True


class PermanentDataSourceError(DataSourceError):
    code = "data_source_rejected"


class PermissionDenied(PermanentDataSourceError):
    code = "permission_denied"


class MutationNotAllowed(StockAuditError):
    code = "mutation_not_allowed"


class SerialsUnavailable(StockAuditError):
    """An outward order names units that are not on the shelf it ships from."""

    code = "serials_unavailable"

    def __init__(self, problems: dict[int, str]) -> None:
        super().__init__(f"{len(problems)} serial numbers cannot be moved out")
        self.problems = problems


def is_transient(exc: BaseException) -> bool:
    return isinstance(exc, DataSourceError) and exc.transient


def describe(exc: BaseException) -> str:
    """Human readable reason for a failure, never empty."""

    text = str(exc).strip()
    return text or exc.__class__.__name__


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(
        status_code=exc.status_code,
        code="http_error",
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return ErrorEnvelope(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        code="validation_error",
        message="Validation failed",
        details={"errors": exc.errors()},
    )


async def stock_audit_exception_handler(request: Request, exc: StockAuditError):
    if isinstance(exc, PermissionDenied):
        status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, MutationNotAllowed):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, SerialsUnavailable):
        return ErrorEnvelope(
            status_code=status.HTTP_409_CONFLICT,
            code=exc.code,
            message=describe(exc),
            details={"positions": {str(position): reason for position, reason in exc.problems.items()}},
        )
    elif isinstance(exc, TransientDataSourceError):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(exc, DataSourceError):
        status_code = status.HTTP_502_BAD_GATEWAY
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return ErrorEnvelope(status_code=status_code, code=exc.code, message=describe(exc))
