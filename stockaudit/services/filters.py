"""One filter engine for the audit screen.

Filters are looked up through :data:`FILTER_FIELDS`, an explicit table from
filter name to a pair of typed accessors: the device value and the
operator's accepted set. Nothing is resolved by attribute name at runtime.
"""

from __future__ import annotations

from typing import Callable, Iterable, NamedTuple, Optional

from ..schemas.audit import AuditCounts, AuditFilters
from ..schemas.common import ASSET_CHECK_MATCHED, as_utc
from ..schemas.device import DeviceRecord
from ..schemas.order import OrderRecord
from .classifier import dedupe_latest, index_orders, is_in_scope_for_audit

Accessor = Callable[[DeviceRecord], Optional[str]]
Selection = Callable[[AuditFilters], set[str]]


class FilterField(NamedTuple):
    value: Accessor
    accepted: Selection


FILTER_FIELDS: dict[str, FilterField] = {
    "warehouse": FilterField(lambda device: device.warehouse, lambda filters: filters.warehouse),
    "asset_type": FilterField(lambda device: device.asset_type, lambda filters: filters.asset_type),
    "model": FilterField(lambda device: device.model, lambda filters: filters.model),
    "configuration": FilterField(lambda device: device.configuration, lambda filters: filters.configuration),
    "product": FilterField(lambda device: device.product, lambda filters: filters.product),
    "asset_status": FilterField(lambda device: device.asset_status, lambda filters: filters.asset_status),
    "asset_group": FilterField(lambda device: device.asset_group, lambda filters: filters.asset_group),
    "order_type": FilterField(lambda device: device.order_type, lambda filters: filters.order_type),
}

SEARCH_FIELDS: tuple[Accessor, ...] = (
    lambda device: device.serial_number,
    lambda device: device.model,
    lambda device: device.asset_type,
    lambda device: device.configuration,
    lambda device: device.product,
    lambda device: device.asset_status,
    lambda device: device.asset_group,
    lambda device: device.warehouse,
    lambda device: device.order_type,
    lambda device: device.sales_order,
    lambda device: device.deal_id,
    lambda device: device.nucleus_id,
    lambda device: device.school_name,
    lambda device: device.asset_check,
)


def _matches_search(device: DeviceRecord, query: str) -> bool:
    needle = query.strip().lower()
    if not needle:
        return True
    for accessor in SEARCH_FIELDS:
        value = accessor(device)
        if value and needle in value.lower():
            return True
    return False


def _matches_dates(device: DeviceRecord, filters: AuditFilters) -> bool:
    if filters.updated_from is None or filters.updated_to is None:
        return True
    if device.updated_at is None:
        return False
    stamp = as_utc(device.updated_at)
    return as_utc(filters.updated_from) <= stamp <= as_utc(filters.updated_to)


def matches(device: DeviceRecord, filters: AuditFilters) -> bool:
    for field in FILTER_FIELDS.values():
        accepted = field.accepted(filters)
        if accepted and field.value(device) not in accepted:
            return False
    return _matches_dates(device, filters) and _matches_search(device, filters.search)


def filter_devices(devices: Iterable[DeviceRecord], filters: AuditFilters | None = None) -> list[DeviceRecord]:
    if filters is None:
        return list(devices)
    return [device for device in devices if matches(device, filters)]


def audit_working_set(
    devices: Iterable[DeviceRecord],
    orders: Iterable[OrderRecord],
    filters: AuditFilters | None = None,
    excluded_asset_types: Iterable[str] | None = None,
    excluded_models: Iterable[str] | None = None,
) -> list[DeviceRecord]:
    """Latest in-stock, auditable devices that pass the operator's filters."""

    orders_by_id = index_orders(orders)
    latest = dedupe_latest(devices).values()
    in_scope = [
        device
        for device in latest
        if is_in_scope_for_audit(device, orders_by_id, excluded_asset_types, excluded_models)
    ]
    return filter_devices(in_scope, filters)


def facet_values(devices: Iterable[DeviceRecord]) -> dict[str, list[str]]:
    devices = list(devices)
    return {
        name: sorted({value for value in map(field.value, devices) if value})
        for name, field in FILTER_FIELDS.items()
    }


def audit_counts(devices: Iterable[DeviceRecord]) -> AuditCounts:
    devices = list(devices)
    matched = sum(1 for device in devices if device.asset_check == ASSET_CHECK_MATCHED)
    return AuditCounts(matched=matched, unmatched=len(devices) - matched)
