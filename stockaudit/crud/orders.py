"""CRUD helpers for orders."""

from __future__ import annotations

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..models.order import Order
from ..schemas.common import utc_stamp


def list_orders(db: Session, include_deleted: bool = True) -> list[Order]:
    stmt = select(Order).order_by(desc(Order.created_at), Order.id)
    if not include_deleted:
        stmt = stmt.where(Order.is_deleted.is_(False))
    return db.execute(stmt).scalars().all()


def get_order(db: Session, order_id: int) -> Order | None:
    return db.get(Order, order_id)


def create_order(db: Session, payload: dict, actor: str | None = None, commit: bool = True) -> Order:
    data = payload.copy()
    for key in ("asset_type", "model", "warehouse"):
        value = (data.get(key) or "").strip()
        if not value:
            raise ValueError(f"{key} is required")
        data[key] = value
    if data.get("sales_order"):
        data["sales_order"] = data["sales_order"].strip() or None
    # Blank slots are kept: their position is reported back to the operator.
    data["serial_numbers"] = [(serial or "").strip() for serial in data.get("serial_numbers") or []]
    material = data.get("material_type") or "Inward"
    data["material_type"] = getattr(material, "value", material)
    now = utc_stamp()
    data.setdefault("created_at", now)
    data.setdefault("updated_at", now)
    data.setdefault("created_by", actor)
    data.setdefault("updated_by", actor)
    order = Order(**data)
    db.add(order)
    if not commit:
        db.flush()
        return order
    db.commit()
    db.refresh(order)
    return order


def set_order_deleted(db: Session, order: Order, deleted: bool, actor: str | None = None) -> Order:
    """Soft delete or restore; rows are never removed."""

    order.is_deleted = deleted
    order.updated_at = utc_stamp()
    order.updated_by = actor
    db.commit()
    db.refresh(order)
    return order
