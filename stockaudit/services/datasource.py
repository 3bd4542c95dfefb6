"""Asynchronous access to orders and devices.

The engine talks to storage only through :class:`DataSource`. The SQL
implementation runs the synchronous CRUD helpers in Starlette's thread pool
and turns SQLAlchemy failures into the transient/permanent taxonomy the
retry policy understands.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Protocol, TypeVar

from sqlalchemy.exc import DisconnectionError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..core.errors import (
    DataSourceError,
    PermanentDataSourceError,
    TransientDataSourceError,
)
from ..crud import devices as device_crud
from ..crud import orders as order_crud
from ..schemas.device import DeviceRecord
from ..schemas.order import OrderRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class UpdateOutcome:
    updated_ids: list[int] = field(default_factory=list)
    error: Optional[DataSourceError] = None


class DataSource(Protocol):
    async def list_orders(self) -> list[OrderRecord]: ...

    async def list_devices(self) -> list[DeviceRecord]: ...

    async def update_device(self, device_id: int, fields: dict) -> DeviceRecord: ...

    async def update_devices(self, device_ids: Iterable[int], fields: dict) -> UpdateOutcome: ...


def classify_db_error(exc: SQLAlchemyError) -> DataSourceError:
    if isinstance(exc, (OperationalError, DisconnectionError, PoolTimeoutError)):
        return TransientDataSourceError(f"Database unavailable: {exc.__class__.__name__}")
    return PermanentDataSourceError(f"Database rejected the update: {exc.__class__.__name__}")


class SqlDataSource:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def _call(self, work: Callable[[Session], T]) -> T:
        db = self._session_factory()
        try:
            return work(db)
        except SQLAlchemyError as exc:
            db.rollback()
            error = classify_db_error(exc)
            logger.warning(
                "datasource.error",
                extra={"extra_data": {"transient": error.transient, "error": error.message}},
            )
            raise error from exc
        finally:
            db.close()

    async def _run(self, work: Callable[[Session], T]) -> T:
        return await run_in_threadpool(self._call, work)

    async def list_orders(self) -> list[OrderRecord]:
        return await self._run(
            lambda db: [OrderRecord.model_validate(row) for row in order_crud.list_orders(db)]
        )

    async def list_devices(self) -> list[DeviceRecord]:
        return await self._run(
            lambda db: [DeviceRecord.model_validate(row) for row in device_crud.list_devices(db)]
        )

    async def update_device(self, device_id: int, fields: dict) -> DeviceRecord:
        def work(db: Session) -> DeviceRecord:
            device = device_crud.update_device_fields(db, device_id, fields)
            if device is None:
                raise PermanentDataSourceError(f"Device {device_id} not found")
            return DeviceRecord.model_validate(device)

        return await self._run(work)

    async def update_devices(self, device_ids: Iterable[int], fields: dict) -> UpdateOutcome:
        ids = list(device_ids)
        try:
            updated = await self._run(lambda db: device_crud.update_devices_fields(db, ids, fields))
        except DataSourceError as exc:
            return UpdateOutcome(updated_ids=[], error=exc)
        return UpdateOutcome(updated_ids=updated)
