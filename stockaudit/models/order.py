from __future__ import annotations

from sqlalchemy import JSON, Boolean, Column, Integer, Text

from ..db.session import Base


class Order(Base):
    """A requested movement of ``quantity`` units of one model in or out of a warehouse."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    sales_order = Column(Text, nullable=True, index=True)
    order_type = Column(Text, nullable=True)
    asset_type = Column(Text, nullable=False)
    model = Column(Text, nullable=False)
    configuration = Column(Text, nullable=True)
    product = Column(Text, nullable=True)
    warehouse = Column(Text, nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)
    material_type = Column(Text, nullable=False, default="Inward")
    serial_numbers = Column(JSON, nullable=False, default=list)
    deal_id = Column(Text, nullable=True)
    nucleus_id = Column(Text, nullable=True)
    school_name = Column(Text, nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=True)
    created_by = Column(Text, nullable=True)
    updated_by = Column(Text, nullable=True)
