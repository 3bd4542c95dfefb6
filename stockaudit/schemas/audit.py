from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field, field_validator

from .common import SCAN_ERROR, coerce_timestamp
from .device import DeviceRecord


class AuditFilters(BaseModel):
    """The operator's filter selection on the audit screen.

    Each field names the accepted values; an empty set means "All".
    """

    warehouse: set[str] = Field(default_factory=set)
    asset_type: set[str] = Field(default_factory=set)
    model: set[str] = Field(default_factory=set)
    configuration: set[str] = Field(default_factory=set)
    product: set[str] = Field(default_factory=set)
    asset_status: set[str] = Field(default_factory=set)
    asset_group: set[str] = Field(default_factory=set)
    order_type: set[str] = Field(default_factory=set)
    updated_from: Optional[datetime] = None
    updated_to: Optional[datetime] = None
    search: str = ""

    @field_validator(
        "warehouse",
        "asset_type",
        "model",
        "configuration",
        "product",
        "asset_status",
        "asset_group",
        "order_type",
        mode="before",
    )
    @classmethod
    def _accept_all(cls, value):
        # "All" (or a bare string) is what the drop-downs send.
        if value is None:
            return set()
        if isinstance(value, str):
            value = [value]
        return {item for item in value if item and item != "All"}

    @field_validator("updated_from", "updated_to", mode="before")
    @classmethod
    def _dates(cls, value):
        return coerce_timestamp(value)


class AuditCounts(BaseModel):
    matched: int
    unmatched: int


class AuditWorkingSet(BaseModel):
    devices: list[DeviceRecord]
    counts: AuditCounts
    facets: dict[str, list[str]]


class ScannerSettings(BaseModel):
    """What barcode scanner clients need to know before sending scans."""

    debounce_ms: int


class ScanRequest(BaseModel):
    token: str
    filters: AuditFilters = Field(default_factory=AuditFilters)
    expected_warehouses: set[str] = Field(default_factory=set)


class ScanReport(BaseModel):
    """Outcome of one scan.

    ``outcome`` is the match decision and is never altered by a failed
    write; ``persisted``/``error`` describe the write that followed it.
    """

    token: str
    outcome: str
    device_id: Optional[int] = None
    persisted: bool = False
    error: Optional[str] = None

    @computed_field
    @property
    def status(self) -> str:
        """``Error`` when the write failed, otherwise the match outcome."""

        return SCAN_ERROR if self.error else self.outcome


class ClearRequest(BaseModel):
    ids: list[int] = Field(default_factory=list)


class ClearStatus(str, Enum):
    NOOP = "noop"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class ChunkState(str, Enum):
    PENDING = "pending"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class FailedBatch(BaseModel):
    ids: list[int]
    error: str
    transient: bool = True


class ChunkReport(BaseModel):
    index: int
    ids: list[int]
    state: ChunkState = ChunkState.PENDING
    attempts: int = 0
    error: Optional[str] = None


class ClearReport(BaseModel):
    status: ClearStatus
    message: str
    updated_ids: set[int] = Field(default_factory=set)
    failed_batches: list[FailedBatch] = Field(default_factory=list)
    chunks: list[ChunkReport] = Field(default_factory=list)

    @property
    def failed_ids(self) -> list[int]:
        return [item for batch in self.failed_batches for item in batch.ids]
