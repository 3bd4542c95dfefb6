"""Physical audit scans.

:func:`match_scan` is the pure decision: which visible device does a scanned
token refer to, and is it where the operator expected it. :class:`AuditScanner`
wraps it with the permission check and the single write that records the
result on the device.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ..core.errors import describe
from ..core.permissions import IdentityContext, require_mutation_rights
from ..core.serials import normalize_serial
from ..schemas.audit import ScanReport
from ..schemas.common import ASSET_CHECK_MATCHED, SCAN_NOT_FOUND, found_in, utc_stamp
from ..schemas.device import DeviceRecord
from .datasource import DataSource
from .inflight import InFlightRegistry, in_flight
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanMatch:
    outcome: str
    device: Optional[DeviceRecord] = None

    @property
    def found(self) -> bool:
        return self.device is not None


def _refers_to(device: DeviceRecord, serial: str, raw: str) -> bool:
    if serial and normalize_serial(device.serial_number) == serial:
        return True
    return bool(raw) and str(device.id) == raw


def match_scan(
    token: str,
    candidates: Iterable[DeviceRecord],
    expected_warehouses: Iterable[str] | None = None,
) -> ScanMatch:
    """Resolve ``token`` against the visible devices, first match wins."""

    raw = (token or "").strip()
    serial = normalize_serial(raw)
    match = next((device for device in candidates if _refers_to(device, serial, raw)), None)
    if match is None:
        return ScanMatch(outcome=SCAN_NOT_FOUND)
    expected = set(expected_warehouses or ())
    if not expected or match.warehouse in expected:
        return ScanMatch(outcome=ASSET_CHECK_MATCHED, device=match)
    return ScanMatch(outcome=found_in(match.warehouse), device=match)


def apply_asset_check(devices: Iterable[DeviceRecord], ids: Iterable[int], value: str) -> list[DeviceRecord]:
    """Copies of ``devices`` with ``asset_check`` set for the confirmed ``ids`` only."""

    confirmed = set(ids)
    return [
        device.model_copy(update={"asset_check": value}) if device.id in confirmed else device
        for device in devices
    ]


class AuditScanner:
    def __init__(
        self,
        source: DataSource,
        *,
        policy: RetryPolicy | None = None,
        registry: InFlightRegistry | None = None,
    ) -> None:
        self.source = source
        self.policy = policy or RetryPolicy.from_settings()
        self.registry = registry if registry is not None else in_flight

    async def scan(
        self,
        token: str,
        candidates: Iterable[DeviceRecord],
        expected_warehouses: Iterable[str] | None,
        identity: IdentityContext | None,
    ) -> ScanReport:
        actor = require_mutation_rights(identity)
        match = match_scan(token, candidates, expected_warehouses)
        report = ScanReport(token=token, outcome=match.outcome)
        if not match.found:
            logger.info("scan.not_found", extra={"extra_data": {"token": token}})
            return report

        device_id = match.device.id
        report.device_id = device_id
        with self.registry.hold([device_id]) as (claimed, busy):
            if busy:
                report.error = f"Update already in progress for device {device_id}"
                logger.warning("scan.busy", extra={"extra_data": {"device_id": device_id}})
                return report
            fields = {
                "asset_check": match.outcome,
                "updated_at": utc_stamp(),
                "updated_by": actor,
            }
            result = await self.policy.run(
                lambda: self.source.update_device(device_id, fields),
                label=f"asset check for device {device_id}",
            )

        if result.ok:
            report.persisted = True
            logger.info(
                "scan.recorded",
                extra={"extra_data": {"device_id": device_id, "outcome": match.outcome}},
            )
        else:
            report.error = describe(result.error)
            logger.warning(
                "scan.persist_failed",
                extra={"extra_data": {"device_id": device_id, "error": report.error}},
            )
        return report
