"""Device stock classification.

Devices are append-mostly: each movement of a unit can leave a new row
behind. Everything that reasons about "what is on the shelf right now" first
collapses those rows to the latest one per unit (:func:`dedupe_latest`) and
then derives the unit's state from its order (:func:`effective_status`).
Nothing here is stored; callers recompute from fresh snapshots.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from ..core.config import settings
from ..core.serials import duplicate_serials, normalize_serial, normalized_serials
from ..schemas.common import EffectiveStatus, MaterialType, as_utc
from ..schemas.device import DeviceRecord
from ..schemas.order import OrderRecord

__all__ = [
    "dedupe_latest",
    "effective_status",
    "index_orders",
    "is_in_scope_for_audit",
    "check_serial_availability",
]


def index_orders(orders: Iterable[OrderRecord]) -> dict[int, OrderRecord]:
    return {order.id: order for order in orders}


def dedupe_latest(devices: Iterable[DeviceRecord]) -> dict[str, DeviceRecord]:
    """Keep the newest row per identity key.

    Rows are compared by ``created_at``; a missing timestamp counts as the
    earliest possible one. On a tie the row seen last wins: rows arrive in
    insertion order, and timestamps only resolve to the second, so a move
    recorded in the same second as the row it supersedes must still win.
    """

    latest: dict[str, DeviceRecord] = {}
    for device in devices:
        key = device.identity_key
        current = latest.get(key)
        if current is None or as_utc(device.created_at) >= as_utc(current.created_at):
            latest[key] = device
    return latest


def effective_status(device: DeviceRecord, orders_by_id: Mapping[int, OrderRecord]) -> EffectiveStatus:
    """``Assigned`` when the device's order moved it out, otherwise ``Stock``.

    When the linked order is not in the snapshot the device's own
    ``material_type`` (a mirror of the order's) is used instead.
    """

    if device.order_id is None:
        return EffectiveStatus.STOCK
    order = orders_by_id.get(device.order_id)
    material = order.material_type if order is not None else device.material_type
    if material == MaterialType.OUTWARD:
        return EffectiveStatus.ASSIGNED
    return EffectiveStatus.STOCK


def is_in_scope_for_audit(
    device: DeviceRecord,
    orders_by_id: Mapping[int, OrderRecord],
    excluded_asset_types: Iterable[str] | None = None,
    excluded_models: Iterable[str] | None = None,
) -> bool:
    if excluded_asset_types is None:
        excluded_asset_types = settings.AUDIT_EXCLUDED_ASSET_TYPES
    if excluded_models is None:
        excluded_models = settings.AUDIT_EXCLUDED_MODELS
    asset_types = set(excluded_asset_types)
    models = set(excluded_models)
    if device.is_deleted:
        return False
    if device.asset_type in asset_types or device.model in models:
        return False
    return effective_status(device, orders_by_id) == EffectiveStatus.STOCK


def check_serial_availability(
    serials: Iterable[str],
    devices: Iterable[DeviceRecord],
    orders: Iterable[OrderRecord],
    warehouse: str,
) -> list[str | None]:
    """Explain, per declared position, why a serial cannot leave ``warehouse``.

    ``None`` means the unit is in stock there. Used before an outward order
    is saved so that operators cannot ship a unit twice or from the wrong
    place.
    """

    declared = normalized_serials(serials)
    repeated = set(duplicate_serials(declared))
    orders_by_id = index_orders(orders)
    live = dedupe_latest(device for device in devices if not device.is_deleted)

    messages: list[str | None] = []
    for serial in declared:
        if not serial:
            messages.append(None)
            continue
        if serial in repeated:
            messages.append("Duplicate within order")
            continue
        device = live.get(serial)
        if device is None:
            messages.append("Not found in stock")
            continue
        sales_order = device.sales_order or "N/A"
        if effective_status(device, orders_by_id) == EffectiveStatus.ASSIGNED:
            messages.append(f"Currently Outward in {device.warehouse} (SO: {sales_order})")
        elif normalize_serial(device.warehouse) != normalize_serial(warehouse):
            messages.append(f"In {device.warehouse} stock (SO: {sales_order})")
        else:
            messages.append(None)
    return messages
