from __future__ import annotations

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Text

from ..db.session import Base


class Device(Base):
    """A realized physical unit, optionally linked to the order that produced it.

    Several rows may describe the same unit over time (one per movement), so
    readers pick the latest row per serial before reasoning about stock.
    """

    __tablename__ = "devices"

    id = Column(Integer, primary_key=True, index=True)
    serial_number = Column(Text, nullable=False, default="", index=True)
    # Weak link: devices outlive edits to their order.
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True, index=True)
    material_type = Column(Text, nullable=True)
    order_type = Column(Text, nullable=True)
    asset_type = Column(Text, nullable=True)
    model = Column(Text, nullable=True)
    configuration = Column(Text, nullable=True)
    product = Column(Text, nullable=True)
    asset_status = Column(Text, nullable=True)
    asset_group = Column(Text, nullable=True)
    warehouse = Column(Text, nullable=True, index=True)
    sales_order = Column(Text, nullable=True)
    deal_id = Column(Text, nullable=True)
    nucleus_id = Column(Text, nullable=True)
    school_name = Column(Text, nullable=True)
    asset_check = Column(Text, nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(Text, nullable=True)
    updated_at = Column(Text, nullable=True)
    created_by = Column(Text, nullable=True)
    updated_by = Column(Text, nullable=True)
