"""Bulk reset of audit flags.

``clear_all`` walks the ids in fixed-size chunks, retrying each chunk a
bounded number of times. A chunk that keeps failing is recorded and the walk
moves on, so the caller gets back exactly which ids were reset and which
were not. Local state must only be updated for ``updated_ids``.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from ..core.config import settings
from ..core.errors import DataSourceError, PermanentDataSourceError, describe
from ..core.permissions import IdentityContext, require_mutation_rights
from ..schemas.audit import ChunkReport, ChunkState, ClearReport, ClearStatus, FailedBatch
from ..schemas.common import ASSET_CHECK_UNMATCHED, utc_stamp
from .datasource import DataSource
from .inflight import InFlightRegistry, in_flight
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


def chunked(ids: Sequence[int], size: int) -> list[list[int]]:
    if size < 1:
        raise ValueError("chunk size must be at least 1")
    return [list(ids[start:start + size]) for start in range(0, len(ids), size)]


def _summarize(total: int, updated: int, failed: int) -> tuple[ClearStatus, str]:
    if total == 0:
        return ClearStatus.NOOP, "Nothing to clear"
    if failed == 0:
        return ClearStatus.SUCCESS, f"Cleared {updated} asset checks"
    if updated == 0:
        return ClearStatus.FAILED, f"Failed to clear {failed} asset checks"
    return ClearStatus.PARTIAL, f"Cleared {updated} of {total} asset checks; {failed} failed"


class AuditClearWorkflow:
    def __init__(
        self,
        source: DataSource,
        *,
        chunk_size: int | None = None,
        policy: RetryPolicy | None = None,
        registry: InFlightRegistry | None = None,
    ) -> None:
        self.source = source
        if chunk_size is None:
            chunk_size = settings.AUDIT_CHUNK_SIZE
        if chunk_size < 1:
            raise ValueError("chunk size must be at least 1")
        self.chunk_size = chunk_size
        self.policy = policy or RetryPolicy.from_settings()
        self.registry = registry if registry is not None else in_flight

    def _fields(self, actor: str) -> dict:
        return {
            "asset_check": ASSET_CHECK_UNMATCHED,
            "updated_at": utc_stamp(),
            "updated_by": actor,
        }

    async def clear_all(self, ids: Iterable[int], identity: IdentityContext | None) -> ClearReport:
        wanted = list(dict.fromkeys(ids))
        if not wanted:
            status, message = _summarize(0, 0, 0)
            return ClearReport(status=status, message=message)

        actor = require_mutation_rights(identity)
        fields = self._fields(actor)
        logger.info(
            "audit_clear.start",
            extra={"extra_data": {"ids": len(wanted), "chunk_size": self.chunk_size}},
        )

        updated: set[int] = set()
        failed: list[FailedBatch] = []
        chunks: list[ChunkReport] = []

        if len(wanted) == 1:
            chunk = ChunkReport(index=0, ids=wanted)
            chunks.append(chunk)
            await self._clear_single(chunk, fields, updated, failed)
        else:
            for index, chunk_ids in enumerate(chunked(wanted, self.chunk_size)):
                chunk = ChunkReport(index=index, ids=chunk_ids)
                chunks.append(chunk)
                await self._clear_chunk(chunk, fields, updated, failed)

        failed_count = sum(len(batch.ids) for batch in failed)
        status, message = _summarize(len(wanted), len(updated), failed_count)
        logger.info(
            "audit_clear.done",
            extra={
                "extra_data": {
                    "status": status.value,
                    "updated": len(updated),
                    "failed": failed_count,
                    "failed_batches": len(failed),
                }
            },
        )
        return ClearReport(
            status=status,
            message=message,
            updated_ids=updated,
            failed_batches=failed,
            chunks=chunks,
        )

    async def _clear_single(
        self,
        chunk: ChunkReport,
        fields: dict,
        updated: set[int],
        failed: list[FailedBatch],
    ) -> None:
        device_id = chunk.ids[0]
        with self.registry.hold(chunk.ids) as (claimed, busy):
            if busy:
                self._reject_busy(chunk, busy, failed)
                return
            chunk.attempts = 1
            try:
                await self.source.update_device(device_id, fields)
            except DataSourceError as exc:
                chunk.state = ChunkState.EXHAUSTED
                chunk.error = describe(exc)
                failed.append(FailedBatch(ids=list(chunk.ids), error=chunk.error, transient=exc.transient))
                logger.error(
                    "audit_clear.single_failed",
                    extra={"extra_data": {"device_id": device_id, "error": chunk.error}},
                )
                return
        chunk.state = ChunkState.SUCCEEDED
        updated.add(device_id)

    async def _clear_chunk(
        self,
        chunk: ChunkReport,
        fields: dict,
        updated: set[int],
        failed: list[FailedBatch],
    ) -> None:
        with self.registry.hold(chunk.ids) as (claimed, busy):
            if busy:
                self._reject_busy(chunk, busy, failed)
            if not claimed:
                return

            async def attempt() -> list[int]:
                chunk.attempts += 1
                outcome = await self.source.update_devices(claimed, fields)
                if outcome.error is not None:
                    raise outcome.error
                return outcome.updated_ids

            def retrying(attempt_no: int, exc: BaseException) -> None:
                chunk.state = ChunkState.RETRYING

            result = await self.policy.run(
                attempt,
                label=f"audit clear chunk {chunk.index}",
                on_retry=retrying,
            )

        if not result.ok:
            chunk.state = ChunkState.EXHAUSTED
            chunk.error = describe(result.error)
            failed.append(FailedBatch(ids=claimed, error=chunk.error, transient=result.error.transient))
            logger.error(
                "audit_clear.chunk_exhausted",
                extra={
                    "extra_data": {
                        "chunk": chunk.index,
                        "ids": len(claimed),
                        "attempts": chunk.attempts,
                        "error": chunk.error,
                    }
                },
            )
            return

        confirmed = set(result.value or ()) & set(claimed)
        updated.update(confirmed)
        chunk.state = ChunkState.SUCCEEDED
        missing = [device_id for device_id in claimed if device_id not in confirmed]
        if missing:
            error = PermanentDataSourceError(f"{len(missing)} devices were not confirmed by the data source")
            failed.append(FailedBatch(ids=missing, error=describe(error), transient=False))

    def _reject_busy(self, chunk: ChunkReport, busy: list[int], failed: list[FailedBatch]) -> None:
        error = f"Update already in progress for devices {', '.join(str(item) for item in busy)}"
        failed.append(FailedBatch(ids=list(busy), error=error, transient=True))
        if len(busy) == len(chunk.ids):
            chunk.state = ChunkState.EXHAUSTED
            chunk.error = error
        logger.warning("audit_clear.busy", extra={"extra_data": {"chunk": chunk.index, "ids": busy}})
