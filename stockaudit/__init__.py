"""Application wiring for the stock audit service.

Brings together configuration, database setup, the reconciliation and audit
routers, and error handling. The engine itself lives in ``services`` and does
not depend on anything here.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.errors import (
    StockAuditError,
    http_exception_handler,
    stock_audit_exception_handler,
    validation_exception_handler,
)
from .db.session import Base, engine
from .middlewares import RequestIdMiddleware

# Importing the models registers them with the metadata used by create_all.
from .models import device as _device  # noqa: F401
from .models import order as _order  # noqa: F401


@asynccontextmanager
async def lifespan(_: FastAPI):
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
app.add_middleware(RequestIdMiddleware)

from .routers import api_orders as api_orders_router  # noqa: E402

app.include_router(api_orders_router.router)

from .routers import api_audit as api_audit_router  # noqa: E402

app.include_router(api_audit_router.router)

app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StockAuditError, stock_audit_exception_handler)


__all__ = ["app"]
