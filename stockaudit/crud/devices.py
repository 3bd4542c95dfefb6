"""CRUD helpers for devices.

The audit engine only ever writes ``asset_check`` together with the
``updated_at``/``updated_by`` stamps; every other column is owned by the
order flows.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..core.errors import MutationNotAllowed
from ..models.device import Device
from ..schemas.common import utc_stamp

AUDIT_FIELDS = frozenset({"asset_check", "updated_at", "updated_by"})


def _audit_values(fields: dict) -> dict:
    unknown = set(fields) - AUDIT_FIELDS
    if unknown:
        raise MutationNotAllowed(f"Cannot update device fields: {', '.join(sorted(unknown))}")
    values = dict(fields)
    values.setdefault("updated_at", utc_stamp())
    return values


def list_devices(db: Session, order_id: int | None = None) -> list[Device]:
    stmt = select(Device).order_by(Device.id)
    if order_id is not None:
        stmt = stmt.where(Device.order_id == order_id)
    return db.execute(stmt).scalars().all()


def get_device(db: Session, device_id: int) -> Device | None:
    return db.get(Device, device_id)


def create_device(db: Session, payload: dict, actor: str | None = None, commit: bool = True) -> Device:
    data = payload.copy()
    data["serial_number"] = (data.get("serial_number") or "").strip()
    material = data.get("material_type")
    data["material_type"] = getattr(material, "value", material)
    now = utc_stamp()
    data.setdefault("created_at", now)
    data.setdefault("updated_at", now)
    data.setdefault("created_by", actor)
    data.setdefault("updated_by", actor)
    device = Device(**data)
    db.add(device)
    if not commit:
        db.flush()
        return device
    db.commit()
    db.refresh(device)
    return device


def update_device_fields(db: Session, device_id: int, fields: dict) -> Device | None:
    values = _audit_values(fields)
    device = db.get(Device, device_id)
    if device is None:
        return None
    for key, value in values.items():
        setattr(device, key, value)
    db.commit()
    db.refresh(device)
    return device


def update_devices_fields(db: Session, device_ids: Iterable[int], fields: dict) -> list[int]:
    """Write the audit fields on every existing id and return the ids confirmed."""

    values = _audit_values(fields)
    wanted = list(dict.fromkeys(device_ids))
    if not wanted:
        return []
    existing = db.execute(select(Device.id).where(Device.id.in_(wanted))).scalars().all()
    if existing:
        db.execute(update(Device).where(Device.id.in_(existing)).values(**values))
    db.commit()
    found = set(existing)
    return [device_id for device_id in wanted if device_id in found]
