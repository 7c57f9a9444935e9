from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass, field
from typing import Protocol

from pkibench.config import PacingMode, RunConfig


class Pacer(Protocol):
    async def wait(self) -> None:
        ...


def slot_interval_ms(rate: int) -> int:
    return max(1, math.floor(1000 / max(1, rate)))


def pacing_interval_ms(rate: int, concurrency: int) -> int:
    return slot_interval_ms(rate) * concurrency


@dataclass(frozen=True, slots=True)
class WorkerPacer:
    rate: int
    concurrency: int

    @property
    def interval_sec(self) -> float:
        return pacing_interval_ms(self.rate, self.concurrency) / 1000.0

    async def wait(self) -> None:
        await asyncio.sleep(self.interval_sec)


@dataclass(slots=True)
class SharedTicker:
    rate: int
    _next_slot: float | None = field(default=None, init=False)

    @property
    def interval_sec(self) -> float:
        return slot_interval_ms(self.rate) / 1000.0

    def reserve(self, now: float | None = None) -> float:
        now = time.perf_counter() if now is None else now
        if self._next_slot is None or self._next_slot < now:
            self._next_slot = now
        slot = self._next_slot
        self._next_slot = slot + self.interval_sec
        return slot

    async def wait(self) -> None:
        slot = self.reserve()
        delay = slot - time.perf_counter()
        if delay > 0:
            await asyncio.sleep(delay)


def pacer_for(config: RunConfig) -> Pacer | None:
    if config.pacing is PacingMode.NONE:
        return None
    rate = config.rate if config.rate is not None else 1
    if config.pacing is PacingMode.SHARED:
        return SharedTicker(rate)
    return WorkerPacer(rate, config.concurrency)
