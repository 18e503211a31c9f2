"""Run modes, time windows and checkpoints."""

from __future__ import annotations

from datetime import datetime, time, timedelta
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, model_validator


class RunMode(str, Enum):
    FULL_TABLE = "fulltable"
    PERIOD = "period"
    INCREMENTAL = "incremental"


class Checkpoint(BaseModel):
    """Timestamp marking the end of the last successful incremental run."""

    date: datetime


class RunWindow(BaseModel):
    """Inclusive [start, end] range, or unbounded when both ends are absent."""

    model_config = ConfigDict(frozen=True)

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @model_validator(mode="after")
    def _fully_bounded_or_unbounded(self) -> "RunWindow":
        if (self.start is None) != (self.end is None):
            raise ValueError("window must have both start and end, or neither")
        return self

    @classmethod
    def unbounded(cls) -> "RunWindow":
        return cls()

    @property
    def is_bounded(self) -> bool:
        return self.start is not None

    def __str__(self) -> str:
        if not self.is_bounded:
            return "all rows"
        return f"{self.start:%Y-%m-%d %H:%M:%S} to {self.end:%Y-%m-%d %H:%M:%S}"


def yesterday_bounds(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Yesterday 00:00:00 and 23:59:59 relative to ``now``."""
    day = ((now or datetime.now()) - timedelta(days=1)).date()
    return datetime.combine(day, time.min), datetime.combine(day, time(23, 59, 59))


def resolve_window(
    mode: RunMode,
    explicit_from: Optional[datetime] = None,
    explicit_to: Optional[datetime] = None,
    checkpoint: Optional[Checkpoint] = None,
    now: Optional[datetime] = None,
) -> RunWindow:
    """Compute the effective window for a run.

    - FULL_TABLE: unbounded, the copy query carries no filter.
    - PERIOD: exactly the caller's bounds; a missing bound falls back to
      yesterday's start/end of day.
    - INCREMENTAL: from the checkpoint (or yesterday 00:00:00) to ``now``,
      captured once here and never re-evaluated.
    """
    mode = RunMode(mode)
    now = (now or datetime.now()).replace(microsecond=0)
    default_from, default_to = yesterday_bounds(now)

    if mode is RunMode.FULL_TABLE:
        return RunWindow.unbounded()

    if mode is RunMode.PERIOD:
        return RunWindow(
            start=explicit_from if explicit_from is not None else default_from,
            end=explicit_to if explicit_to is not None else default_to,
        )

    if mode is RunMode.INCREMENTAL:
        start = checkpoint.date if checkpoint is not None else default_from
        return RunWindow(start=start, end=now)

    raise ValueError(f"Unsupported run mode: {mode}")
