from __future__ import annotations

from contextlib import contextmanager
from typing import Iterable, Iterator


class InFlightRegistry:
    """Device ids with a write currently outstanding.

    A second writer for a busy id is turned away instead of racing the
    first one on ``asset_check``. Single event loop, so a plain set is enough.
    """

    def __init__(self) -> None:
        self._busy: set[int] = set()

    def is_busy(self, device_id: int) -> bool:
        return device_id in self._busy

    def claim(self, ids: Iterable[int]) -> tuple[list[int], list[int]]:
        """Mark free ids as busy. Returns ``(claimed, already_busy)``."""

        claimed: list[int] = []
        busy: list[int] = []
        for device_id in ids:
            if device_id in self._busy:
                busy.append(device_id)
                continue
            self._busy.add(device_id)
            claimed.append(device_id)
        return claimed, busy

    def release(self, ids: Iterable[int]) -> None:
        for device_id in ids:
            self._busy.discard(device_id)

    @contextmanager
    def hold(self, ids: Iterable[int]) -> Iterator[tuple[list[int], list[int]]]:
        claimed, busy = self.claim(ids)
        try:
            yield claimed, busy
        finally:
            self.release(claimed)

    def __len__(self) -> int:
        return len(self._busy)


in_flight = InFlightRegistry()
