"""Registering new orders.

An order is saved together with one device row per unit, so reconciliation
has something to compare against from the start. Outward orders are checked
first: every unit they name must be in stock at the warehouse it leaves from.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.errors import SerialsUnavailable
from ..crud import devices as device_crud
from ..crud import orders as order_crud
from ..schemas.common import MaterialType
from ..schemas.device import DeviceCreate, DeviceRecord
from ..schemas.order import OrderCreate, OrderRecord, OrderRegistration
from .classifier import check_serial_availability
from .datasource import classify_db_error
from .reconciler import is_duplicate_sales_order

logger = logging.getLogger(__name__)

DEFAULT_ASSET_STATUS = "Fresh"


def _unavailable_positions(db: Session, payload: OrderCreate, orders: list[OrderRecord]) -> dict[int, str]:
    devices = [DeviceRecord.model_validate(row) for row in device_crud.list_devices(db)]
    reasons = check_serial_availability(payload.serial_numbers, devices, orders, payload.warehouse)
    return {position: reason for position, reason in enumerate(reasons, start=1) if reason}


def _device_for_slot(order, payload: OrderCreate, slot: int) -> DeviceCreate:
    serials = order.serial_numbers or []
    statuses = payload.asset_statuses
    return DeviceCreate(
        serial_number=serials[slot] if slot < len(serials) else "",
        order_id=order.id,
        material_type=payload.material_type,
        order_type=order.order_type,
        asset_type=order.asset_type,
        model=order.model,
        configuration=order.configuration,
        product=order.product,
        asset_status=(statuses[slot] if slot < len(statuses) else "") or DEFAULT_ASSET_STATUS,
        warehouse=order.warehouse,
        sales_order=order.sales_order,
        deal_id=order.deal_id,
        nucleus_id=order.nucleus_id,
        school_name=order.school_name,
    )


def register_order(db: Session, payload: OrderCreate, actor: str) -> OrderRegistration:
    """Save ``payload`` and its devices in one transaction.

    Raises ``SerialsUnavailable`` for an outward order naming units that
    cannot leave ``payload.warehouse``, and ``ValueError`` when a required
    field is blank.
    """

    orders = [OrderRecord.model_validate(row) for row in order_crud.list_orders(db)]
    if payload.material_type == MaterialType.OUTWARD:
        problems = _unavailable_positions(db, payload, orders)
        if problems:
            logger.warning(
                "order.serials_unavailable",
                extra={"extra_data": {"warehouse": payload.warehouse, "positions": sorted(problems)}},
            )
            raise SerialsUnavailable(problems)

    duplicate = is_duplicate_sales_order(orders, payload.sales_order)
    try:
        order = order_crud.create_order(db, payload.model_dump(exclude={"asset_statuses"}), actor, commit=False)
        device_ids = []
        for slot in range(order.quantity):
            device = device_crud.create_device(
                db, _device_for_slot(order, payload, slot).model_dump(), actor, commit=False
            )
            device_ids.append(device.id)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise classify_db_error(exc) from exc
    except ValueError:
        db.rollback()
        raise
    db.refresh(order)

    logger.info(
        "order.registered",
        extra={
            "extra_data": {
                "order_id": order.id,
                "devices": len(device_ids),
                "duplicate_sales_order": duplicate,
            }
        },
    )
    return OrderRegistration(
        order=OrderRecord.model_validate(order),
        device_ids=device_ids,
        duplicate_sales_order=duplicate,
    )
