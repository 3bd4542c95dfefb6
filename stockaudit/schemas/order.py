from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import MaterialType, VerdictStatus, coerce_timestamp


class OrderRecord(BaseModel):
    """In-memory snapshot of an order, as consumed by the reconciler."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    sales_order: Optional[str] = None
    order_type: Optional[str] = None
    asset_type: str = ""
    model: str = ""
    configuration: Optional[str] = None
    product: Optional[str] = None
    warehouse: str = ""
    quantity: int = Field(default=0, ge=0)
    material_type: MaterialType = MaterialType.INWARD
    serial_numbers: tuple[str, ...] = ()
    is_deleted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("serial_numbers", mode="before")
    @classmethod
    def _serials(cls, value):
        if value is None:
            return ()
        return tuple("" if item is None else str(item) for item in value)

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity(cls, value):
        return 0 if value is None else value

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _timestamps(cls, value):
        return coerce_timestamp(value)

    @property
    def group_key(self) -> tuple[Optional[str], str, str, str]:
        return (self.sales_order, self.asset_type, self.model, self.warehouse)


class Verdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: VerdictStatus
    details: str = Field(min_length=1)


class ReconciledOrder(BaseModel):
    order: OrderRecord
    status: VerdictStatus
    details: str


class OrderCreate(BaseModel):
    sales_order: Optional[str] = None
    order_type: Optional[str] = None
    asset_type: str
    model: str
    configuration: Optional[str] = None
    product: Optional[str] = None
    warehouse: str
    quantity: int = Field(ge=0)
    material_type: MaterialType = MaterialType.INWARD
    serial_numbers: list[str] = Field(default_factory=list)
    # Condition of each unit, by position; missing entries default to Fresh.
    asset_statuses: list[str] = Field(default_factory=list)
    deal_id: Optional[str] = None
    nucleus_id: Optional[str] = None
    school_name: Optional[str] = None


class StockSummaryRow(BaseModel):
    warehouse: str
    asset_type: str
    model: str
    inward: int
    outward: int
    stock: int


class OrderRegistration(BaseModel):
    """Result of registering an order together with its devices."""

    order: OrderRecord
    device_ids: list[int]
    duplicate_sales_order: bool = False
