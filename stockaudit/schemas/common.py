from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any


class MaterialType(str, Enum):
    INWARD = "Inward"
    OUTWARD = "Outward"


class EffectiveStatus(str, Enum):
    STOCK = "Stock"
    ASSIGNED = "Assigned"


class VerdictStatus(str, Enum):
    SUCCESS = "Success"
    FAILED = "Failed"
    PENDING = "Pending"


ASSET_CHECK_MATCHED = "Matched"
ASSET_CHECK_UNMATCHED = "Unmatched"
SCAN_NOT_FOUND = "Not Found"
SCAN_ERROR = "Error"
FOUND_IN_PREFIX = "Found in "


def found_in(warehouse: str | None) -> str:
    return f"{FOUND_IN_PREFIX}{warehouse or 'unknown warehouse'}"


def coerce_timestamp(value: Any) -> Any:
    """Blank or unparseable timestamps become ``None``; aware values are kept as-is."""

    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    return value


def utc_stamp() -> str:
    """Current UTC time as stored in the ``*_at`` text columns."""

    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def as_utc(value: datetime | None) -> datetime:
    """Comparable timestamp; missing values sort before everything else."""

    if value is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
