from __future__ import annotations

from fastapi import APIRouter, Depends

from ..core.config import settings
from ..core.permissions import Identity
from ..deps.auth import require_identity
from ..schemas.audit import (
    AuditFilters,
    AuditWorkingSet,
    ClearReport,
    ClearRequest,
    ScannerSettings,
    ScanReport,
    ScanRequest,
)
from ..services.audit_clear import AuditClearWorkflow
from ..services.datasource import DataSource
from ..services.filters import audit_counts, audit_working_set, facet_values, filter_devices
from ..services.matcher import AuditScanner
from .dependencies import get_clear_workflow, get_data_source, get_scanner

router = APIRouter(prefix="/api/v1/audit", tags=["audit"])


async def _working_set(source: DataSource, filters: AuditFilters | None):
    orders = await source.list_orders()
    devices = await source.list_devices()
    return audit_working_set(devices, orders, filters)


@router.post("/devices", response_model=AuditWorkingSet)
async def api_audit_devices(
    filters: AuditFilters,
    source: DataSource = Depends(get_data_source),
    identity: Identity = Depends(require_identity),
):
    # Facets come from the unfiltered set so options do not vanish once picked.
    everything = await _working_set(source, None)
    visible = filter_devices(everything, filters)
    return AuditWorkingSet(devices=visible, counts=audit_counts(visible), facets=facet_values(everything))


@router.post("/scan", response_model=ScanReport)
async def api_audit_scan(
    payload: ScanRequest,
    source: DataSource = Depends(get_data_source),
    scanner: AuditScanner = Depends(get_scanner),
    identity: Identity = Depends(require_identity),
):
    candidates = await _working_set(source, payload.filters)
    return await scanner.scan(payload.token, candidates, payload.expected_warehouses, identity)


@router.post("/clear", response_model=ClearReport)
async def api_audit_clear(
    payload: ClearRequest,
    workflow: AuditClearWorkflow = Depends(get_clear_workflow),
    identity: Identity = Depends(require_identity),
):
    return await workflow.clear_all(payload.ids, identity)


@router.get("/scanner", response_model=ScannerSettings)
async def api_scanner_settings(identity: Identity = Depends(require_identity)):
    # Repeated triggers inside this window are collapsed by the client, not here.
    return ScannerSettings(debounce_ms=settings.SCAN_DEBOUNCE_MS)
