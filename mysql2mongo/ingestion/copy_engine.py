"""Streaming copy of one table from the row source into the document sink."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Set

from mysql2mongo.core.errors import CopyError, CopyErrorKind
from mysql2mongo.core.logging import get_logger
from mysql2mongo.schemas.tables import TableSpec
from mysql2mongo.schemas.window import RunWindow
from .base import DocumentSink, RowSource
from .flow import HIGH_WATERMARK, LOW_WATERMARK, WatermarkGate
from .mysql_source import build_select

log = get_logger("ingestion.copy_engine")

ProgressCallback = Callable[[int, int], None]

MAX_FAILURE_SAMPLES = 100


class WriteFailurePolicy(str, Enum):
    RECORD = "record"  # log, count as acknowledged, keep copying
    ABORT = "abort"  # finish in-flight writes, then fail the table


@dataclass
class RowFailure:
    document_id: Any
    error: str


@dataclass
class CopyResult:
    """Outcome of one table copy.

    Every failed write is counted in ``failed_count``; only the first
    ``max_failure_samples`` of them are kept in ``failed_rows``.
    """

    table: str
    rows_copied: int
    failed_count: int = 0
    failed_rows: List[RowFailure] = field(default_factory=list)
    max_failure_samples: int = MAX_FAILURE_SAMPLES

    @property
    def rows_written(self) -> int:
        return self.rows_copied - self.failed_count

    def record_failure(self, document_id: Any, error: str) -> None:
        self.failed_count += 1
        if len(self.failed_rows) < self.max_failure_samples:
            self.failed_rows.append(RowFailure(document_id=document_id, error=error))


class CopyEngine:
    """Copies a table's rows inside a window with bounded in-flight writes.

    Rows are pulled from the source one at a time and each one is handed to
    the sink as an independent task. The source is only pulled while the
    :class:`WatermarkGate` is open, so memory is bounded by the watermark
    rather than by the table size. A copy finishes once the source is
    exhausted and every dispatched write has settled.
    """

    def __init__(
        self,
        source: RowSource,
        sink: DocumentSink,
        high_watermark: int = HIGH_WATERMARK,
        low_watermark: int = LOW_WATERMARK,
        write_failure_policy: WriteFailurePolicy = WriteFailurePolicy.RECORD,
        progress_every: int = 10_000,
        on_progress: Optional[ProgressCallback] = None,
        max_failure_samples: int = MAX_FAILURE_SAMPLES,
    ):
        self.source = source
        self.sink = sink
        self.high_watermark = high_watermark
        self.low_watermark = low_watermark
        self.write_failure_policy = WriteFailurePolicy(write_failure_policy)
        self.progress_every = progress_every
        self.on_progress = on_progress
        self.max_failure_samples = max_failure_samples
        # Gate of the copy in progress (or the last one); exposes emitted/acknowledged
        self.gate: Optional[WatermarkGate] = None
        self._tasks: Set[asyncio.Task] = set()

    async def copy_table(self, spec: TableSpec, window: RunWindow) -> CopyResult:
        gate = WatermarkGate(self.high_watermark, self.low_watermark)
        self.gate = gate
        result = CopyResult(table=spec.name, rows_copied=0, max_failure_samples=self.max_failure_samples)
        statement = build_select(spec, window)

        log.info(f"Copying table={spec.name} window=[{window}]")
        log.debug(f"Query for {spec.name}: {statement}")

        rows = self.source.stream(statement)
        try:
            while True:
                row = await self._next_row(spec, rows, gate)
                if row is None:
                    break

                document_id = row[spec.primary_key_column]
                gate.emit()
                self._dispatch(spec.name, document_id, row, gate, result)
                self._report(gate)

                if gate.paused:
                    log.debug(f"Pausing {spec.name} reader with {gate.in_flight} writes in flight")
                    await gate.wait_resumed()

                if self.write_failure_policy is WriteFailurePolicy.ABORT and result.failed_count:
                    log.warning(f"Stopping {spec.name} reader after a failed write")
                    break
        finally:
            await rows.aclose()

        await gate.wait_drained()
        result.rows_copied = gate.emitted
        self._report(gate, force=True)

        if result.failed_count:
            log.warning(f"Table {spec.name}: {result.failed_count} of {gate.emitted} rows failed to write")
            if self.write_failure_policy is WriteFailurePolicy.ABORT:
                first = result.failed_rows[0]
                raise CopyError(
                    CopyErrorKind.SINK_WRITE_FAILURE,
                    spec.name,
                    RuntimeError(f"document {first.document_id!r}: {first.error}"),
                )

        log.info(f"Done copying {spec.name} | rows={result.rows_copied}")
        return result

    async def _next_row(self, spec: TableSpec, rows, gate: WatermarkGate) -> Optional[dict]:
        """Pull one row; only failures of the pull itself are read failures."""
        try:
            return await anext(rows)
        except StopAsyncIteration:
            return None
        except Exception as exc:  # noqa: BLE001
            log.error(f"Reading table {spec.name} failed after {gate.emitted} rows: {exc}")
            # Writes already dispatched are left to settle; nothing more is read
            await gate.wait_drained()
            raise CopyError(CopyErrorKind.SOURCE_READ_FAILURE, spec.name, exc) from exc

    def _dispatch(self, collection: str, document_id: Any, row: dict, gate: WatermarkGate, result: CopyResult) -> None:
        task = asyncio.create_task(self._upsert(collection, document_id, row, gate, result))
        # Strong reference until the task finishes
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _upsert(self, collection: str, document_id: Any, row: dict, gate: WatermarkGate, result: CopyResult) -> None:
        try:
            await self.sink.upsert(collection, document_id, row)
        except Exception as exc:  # noqa: BLE001
            if result.failed_count < result.max_failure_samples:
                log.warning(f"Upsert failed for {collection} _id={document_id!r}: {exc}")
            result.record_failure(document_id, str(exc))
        finally:
            gate.acknowledge()
            if self.on_progress:
                self.on_progress(gate.acknowledged, gate.emitted)

    def _report(self, gate: WatermarkGate, force: bool = False) -> None:
        if self.on_progress:
            self.on_progress(gate.acknowledged, gate.emitted)
        if force or (self.progress_every and gate.emitted % self.progress_every == 0):
            log.info(f"Processing {gate.acknowledged}/{gate.emitted} rows")
