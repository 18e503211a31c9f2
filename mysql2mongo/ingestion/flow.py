"""Hysteresis gate bounding the number of in-flight upserts."""

from __future__ import annotations

import asyncio

HIGH_WATERMARK = 10_000
LOW_WATERMARK = 5_000


class WatermarkGate:
    """Tracks rows read vs. rows acknowledged and decides when the reader pauses.

    The reader calls :meth:`emit` for every row it hands to the sink and
    then awaits :meth:`wait_resumed`. Each finished write (successful or
    not) calls :meth:`acknowledge`. The gate closes once more than
    ``high`` writes are outstanding and reopens only when fewer than
    ``low`` remain, so a steady throughput mismatch does not make the
    reader flap between paused and running.

    ``emitted`` and ``acknowledged`` are public so callers can render
    progress while a copy runs.
    """

    def __init__(self, high: int = HIGH_WATERMARK, low: int = LOW_WATERMARK):
        if low < 1:
            # A zero low watermark would never reopen the gate
            raise ValueError("low watermark must be at least 1")
        if low > high:
            raise ValueError(f"low watermark ({low}) must not exceed high watermark ({high})")
        self.high = high
        self.low = low
        self.emitted = 0
        self.acknowledged = 0
        self.paused = False
        self.pauses = 0
        self._resumed = asyncio.Event()
        self._resumed.set()
        self._drained = asyncio.Event()
        self._drained.set()

    @property
    def in_flight(self) -> int:
        return self.emitted - self.acknowledged

    def emit(self) -> None:
        self.emitted += 1
        self._drained.clear()
        if not self.paused and self.in_flight > self.high:
            self.paused = True
            self.pauses += 1
            self._resumed.clear()

    def acknowledge(self) -> None:
        if self.acknowledged >= self.emitted:
            raise RuntimeError("acknowledged more rows than were emitted")
        self.acknowledged += 1
        if self.paused and self.in_flight < self.low:
            self.paused = False
            self._resumed.set()
        if self.in_flight == 0:
            self._drained.set()

    async def wait_resumed(self) -> None:
        await self._resumed.wait()

    async def wait_drained(self) -> None:
        """Return once every emitted row has been acknowledged."""
        await self._drained.wait()
