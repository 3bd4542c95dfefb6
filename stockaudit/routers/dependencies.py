from __future__ import annotations

from ..db.session import SessionLocal
from ..services.audit_clear import AuditClearWorkflow
from ..services.datasource import DataSource, SqlDataSource
from ..services.matcher import AuditScanner


def get_data_source() -> DataSource:
    return SqlDataSource(SessionLocal)


def get_scanner() -> AuditScanner:
    return AuditScanner(get_data_source())


def get_clear_workflow() -> AuditClearWorkflow:
    return AuditClearWorkflow(get_data_source())
