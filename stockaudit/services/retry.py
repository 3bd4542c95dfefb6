from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from ..core.config import settings
from ..core.errors import DataSourceError, describe, is_transient

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryOutcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[BaseException] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with a fixed pause between attempts.

    Only errors accepted by ``is_retriable`` are retried; any other captured
    error ends the run on the spot. Captured errors are returned in the
    outcome so callers can aggregate partial failures; anything outside
    ``captures`` propagates.
    """

    attempts: int = 3
    backoff: float = 1.0
    is_retriable: Callable[[BaseException], bool] = field(default=is_transient)
    captures: tuple[type[BaseException], ...] = (DataSourceError,)

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be at least 1")
        if self.backoff < 0:
            raise ValueError("backoff must not be negative")

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(attempts=settings.AUDIT_MAX_ATTEMPTS, backoff=settings.AUDIT_BACKOFF_SECONDS)

    @classmethod
    def once(cls) -> "RetryPolicy":
        return cls(attempts=1, backoff=0)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        label: str = "operation",
        on_retry: Callable[[int, BaseException], None] | None = None,
    ) -> RetryOutcome[T]:
        attempt = 0
        while True:
            attempt += 1
            try:
                value = await operation()
            except self.captures as exc:
                if attempt >= self.attempts or not self.is_retriable(exc):
                    return RetryOutcome(error=exc, attempts=attempt)
                logger.warning(
                    "%s failed on attempt %s/%s: %s",
                    label,
                    attempt,
                    self.attempts,
                    describe(exc),
                )
                if on_retry is not None:
                    on_retry(attempt, exc)
                await asyncio.sleep(self.backoff)
                continue
            return RetryOutcome(value=value, attempts=attempt)
