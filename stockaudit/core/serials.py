"""Serial number canonicalisation.

Every comparison of serials (declared vs. realized, scanned vs. expected)
goes through :func:`normalize_serial` first so that ``" c1 "`` and ``"C1"``
are the same unit.
"""

from __future__ import annotations

from typing import Iterable

__all__ = ["normalize_serial", "normalized_serials", "duplicate_serials"]


def normalize_serial(raw: str | None) -> str:
    """Trim surrounding whitespace and upper-case. ``None`` becomes ``""``."""

    if raw is None:
        return ""
    return str(raw).strip().upper()


def normalized_serials(values: Iterable[str | None]) -> list[str]:
    """Normalize every entry, keeping blanks so positions stay meaningful."""

    return [normalize_serial(value) for value in values or ()]


def duplicate_serials(values: Iterable[str]) -> list[str]:
    """Return values seen more than once, in order of first repetition. Blanks are ignored."""

    seen: set[str] = set()
    duplicates: list[str] = []
    for value in values:
        if not value:
            continue
        if value in seen:
            if value not in duplicates:
                duplicates.append(value)
            continue
        seen.add(value)
    return duplicates
