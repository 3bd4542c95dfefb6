"""Order status reconciliation.

For every order we compare the serials it *declared* with the serials of the
devices that were actually created for it, and produce a verdict plus a
sentence the operator can act on. The rules form a priority chain: the first
one that fires decides the verdict, so a duplicate is reported before a
count problem and a count problem before a content mismatch.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Mapping, Sequence

from ..core.serials import duplicate_serials, normalize_serial, normalized_serials
from ..schemas.common import VerdictStatus
from ..schemas.device import DeviceRecord
from ..schemas.order import OrderRecord, ReconciledOrder, Verdict

__all__ = [
    "reconcile_order",
    "reconcile_orders",
    "group_orders",
    "find_cross_order_duplicates",
    "is_duplicate_sales_order",
]

GroupKey = tuple


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _join(values: Iterable[object]) -> str:
    return ", ".join(str(value) for value in values)


def _blank_positions(declared: Sequence[str], quantity: int) -> list[int]:
    """1-based positions that hold no serial, including slots past the end of the list."""

    positions = [index for index, serial in enumerate(declared, start=1) if not serial]
    positions.extend(range(len(declared) + 1, quantity + 1))
    return positions


def _count_failure(declared: Sequence[str], quantity: int, provided: int) -> str:
    if provided > quantity:
        surplus = provided - quantity
        return f"Extra {_plural(surplus, 'serial number')} (Expected {quantity}, got {provided})"
    missing = quantity - provided
    positions = _blank_positions(declared, quantity)[:missing]
    label = "position" if len(positions) == 1 else "positions"
    return (
        f"Missing {_plural(missing, 'serial number')} at {label} {_join(positions)} "
        f"(Expected {quantity}, got {provided})"
    )


def _realized_serials(order_id: int, devices: Iterable[DeviceRecord]) -> list[str]:
    realized = []
    for device in devices:
        if device.order_id != order_id:
            continue
        serial = normalize_serial(device.serial_number)
        if serial:
            realized.append(serial)
    return realized


def reconcile_order(
    order: OrderRecord,
    devices: Iterable[DeviceRecord],
    cross_order_duplicates: Mapping[str, Sequence[int]] | None = None,
) -> Verdict:
    """Return the verdict for one order. Never raises."""

    declared = normalized_serials(order.serial_numbers)
    provided = [serial for serial in declared if serial]
    quantity = order.quantity or 0

    if not provided:
        return Verdict(status=VerdictStatus.PENDING, details="No serial numbers provided")

    duplicates = duplicate_serials(declared)
    if duplicates:
        return Verdict(
            status=VerdictStatus.FAILED,
            details=f"Duplicate serial numbers: {_join(duplicates)}",
        )

    if cross_order_duplicates:
        clashes = []
        for serial in provided:
            others = [other for other in cross_order_duplicates.get(serial, ()) if other != order.id]
            if others:
                clashes.append(f"{serial} (orders {_join(others)})")
        if clashes:
            return Verdict(
                status=VerdictStatus.FAILED,
                details=f"Serial numbers also declared in other orders: {_join(clashes)}",
            )

    if len(provided) != quantity:
        return Verdict(status=VerdictStatus.FAILED, details=_count_failure(declared, quantity, len(provided)))

    realized = _realized_serials(order.id, devices)
    if len(realized) != quantity:
        return Verdict(
            status=VerdictStatus.FAILED,
            details=f"Device count mismatch: Expected {quantity}, got {len(realized)}",
        )

    realized_set = set(realized)
    mismatched = [serial for serial in provided if serial not in realized_set]
    if mismatched:
        return Verdict(
            status=VerdictStatus.FAILED,
            details=f"Serial numbers not found in devices: {_join(mismatched)}",
        )

    return Verdict(
        status=VerdictStatus.SUCCESS,
        details=f"All {quantity} serial numbers present and valid",
    )


def find_cross_order_duplicates(orders: Iterable[OrderRecord]) -> dict[str, list[int]]:
    """Serials declared by more than one live order, mapped to those order ids."""

    owners: dict[str, list[int]] = defaultdict(list)
    for order in orders:
        if order.is_deleted:
            continue
        for serial in dict.fromkeys(normalized_serials(order.serial_numbers)):
            if serial and order.id not in owners[serial]:
                owners[serial].append(order.id)
    return {serial: ids for serial, ids in owners.items() if len(ids) > 1}


def reconcile_orders(
    orders: Iterable[OrderRecord],
    devices: Iterable[DeviceRecord],
    *,
    check_cross_order: bool = False,
) -> list[ReconciledOrder]:
    """Attach a verdict to every order without touching the order itself."""

    orders = list(orders)
    by_order: dict[int, list[DeviceRecord]] = defaultdict(list)
    for device in devices:
        if device.order_id is not None:
            by_order[device.order_id].append(device)

    cross = find_cross_order_duplicates(orders) if check_cross_order else None
    results = []
    for order in orders:
        verdict = reconcile_order(order, by_order.get(order.id, ()), cross)
        results.append(ReconciledOrder(order=order, status=verdict.status, details=verdict.details))
    return results


def group_orders(orders: Iterable[OrderRecord]) -> dict[GroupKey, list[OrderRecord]]:
    """Group by ``(sales_order, asset_type, model, warehouse)`` keeping first-seen order."""

    groups: dict[GroupKey, list[OrderRecord]] = {}
    for order in orders:
        groups.setdefault(order.group_key, []).append(order)
    return groups


def is_duplicate_sales_order(orders: Iterable[OrderRecord], sales_order: str | None) -> bool:
    wanted = normalize_serial(sales_order)
    if not wanted:
        return False
    return any(
        not order.is_deleted and normalize_serial(order.sales_order) == wanted
        for order in orders
    )
