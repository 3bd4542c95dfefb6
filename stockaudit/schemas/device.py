from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ..core.serials import normalize_serial
from .common import MaterialType, coerce_timestamp


class DeviceRecord(BaseModel):
    """In-memory snapshot of a device row."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    serial_number: str = ""
    order_id: Optional[int] = None
    material_type: Optional[MaterialType] = None
    order_type: Optional[str] = None
    asset_type: Optional[str] = None
    model: Optional[str] = None
    configuration: Optional[str] = None
    product: Optional[str] = None
    asset_status: Optional[str] = None
    asset_group: Optional[str] = None
    warehouse: Optional[str] = None
    sales_order: Optional[str] = None
    deal_id: Optional[str] = None
    nucleus_id: Optional[str] = None
    school_name: Optional[str] = None
    asset_check: Optional[str] = None
    is_deleted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    @field_validator("serial_number", mode="before")
    @classmethod
    def _serial(cls, value):
        return "" if value is None else str(value)

    @field_validator("material_type", mode="before")
    @classmethod
    def _material(cls, value):
        return value or None

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _timestamps(cls, value):
        return coerce_timestamp(value)

    @property
    def identity_key(self) -> str:
        """Serial when present, otherwise the row id."""

        serial = normalize_serial(self.serial_number)
        return serial if serial else f"id:{self.id}"


class DeviceCreate(BaseModel):
    serial_number: str = ""
    order_id: Optional[int] = None
    material_type: Optional[MaterialType] = None
    order_type: Optional[str] = None
    asset_type: Optional[str] = None
    model: Optional[str] = None
    configuration: Optional[str] = None
    product: Optional[str] = None
    asset_status: Optional[str] = None
    asset_group: Optional[str] = None
    warehouse: Optional[str] = None
    sales_order: Optional[str] = None
    deal_id: Optional[str] = None
    nucleus_id: Optional[str] = None
    school_name: Optional[str] = None
    asset_check: Optional[str] = None
