"""Run orchestration: resolve the window and copy every table in turn."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from mysql2mongo.core.checkpoints import CheckpointStore
from mysql2mongo.core.errors import CopyError, RunError
from mysql2mongo.core.logging import get_logger
from mysql2mongo.ingestion.copy_engine import CopyEngine, CopyResult
from mysql2mongo.schemas.tables import TableSpec
from mysql2mongo.schemas.window import Checkpoint, RunMode, RunWindow, resolve_window

log = get_logger("sync_service")


@dataclass
class SyncReport:
    mode: RunMode
    window: RunWindow
    results: Dict[str, CopyResult] = field(default_factory=dict)
    checkpoint: Optional[Checkpoint] = None

    @property
    def rows_copied(self) -> int:
        return sum(r.rows_copied for r in self.results.values())

    @property
    def failed_rows(self) -> int:
        return sum(r.failed_count for r in self.results.values())


class SyncService:
    """Copies a list of tables sequentially for one run mode.

    Responsibilities:
    - Resolve the run window (from the checkpoint in incremental mode)
    - Copy tables one at a time; the source cursor is never shared
    - Stop the run at the first failed table
    - Advance the checkpoint only after every table succeeded
    """

    def __init__(self, engine: CopyEngine, checkpoints: Optional[CheckpointStore] = None):
        self.engine = engine
        self.checkpoints = checkpoints

    async def run(
        self,
        mode: RunMode,
        tables: List[TableSpec],
        explicit_from: Optional[datetime] = None,
        explicit_to: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> SyncReport:
        mode = RunMode(mode)
        with log.contextualize(run_mode=mode.value):
            return await self._run(mode, tables, explicit_from, explicit_to, now)

    async def _run(
        self,
        mode: RunMode,
        tables: List[TableSpec],
        explicit_from: Optional[datetime],
        explicit_to: Optional[datetime],
        now: Optional[datetime],
    ) -> SyncReport:
        checkpoint = None
        if mode is RunMode.INCREMENTAL:
            if self.checkpoints is None:
                raise ValueError("incremental runs need a checkpoint store")
            checkpoint = await self.checkpoints.load()
            log.info(f"Last run checkpoint: {checkpoint.date if checkpoint else 'none'}")

        window = resolve_window(mode, explicit_from, explicit_to, checkpoint, now)
        report = SyncReport(mode=mode, window=window)
        log.info(f"Starting {mode.value} run | tables={len(tables)} | copying {window}")

        for spec in tables:
            # Upsert tasks created inside inherit the table in their context
            with log.contextualize(table=spec.name):
                try:
                    report.results[spec.name] = await self.engine.copy_table(spec, window)
                except CopyError as exc:
                    log.error(f"Run aborted at table {spec.name}: {exc}")
                    raise RunError(spec.name, exc) from exc

        if mode is RunMode.INCREMENTAL:
            # The window end was captured before copying started
            report.checkpoint = Checkpoint(date=window.end)
            await self.checkpoints.save(report.checkpoint)

        log.info(
            f"Run finished | mode={mode.value} tables={len(report.results)} "
            f"rows={report.rows_copied} failed_rows={report.failed_rows}"
        )
        return report
