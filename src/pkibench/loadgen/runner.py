from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

from pkibench.config import RunConfig
from pkibench.loadgen.client import send_request
from pkibench.loadgen.pacing import Pacer, pacer_for
from pkibench.metrics import MetricsAggregator

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RunResult:
    run_id: str
    aggregator: MetricsAggregator
    wall_seconds: float


ProgressCallback = Callable[[int, int], Awaitable[None]]


def _new_run_id() -> str:
    return uuid.uuid4().hex


async def run_load(
    config: RunConfig,
    transport: httpx.AsyncBaseTransport | None = None,
    progress: ProgressCallback | None = None,
) -> RunResult:
    run_id = config.run_id or _new_run_id()
    aggregator = MetricsAggregator()
    pacer = pacer_for(config)
    limits = httpx.Limits(
        max_connections=config.concurrency,
        max_keepalive_connections=config.concurrency,
    )
    logger.info(
        "Run %s: %s %s for %ss with %d workers",
        run_id,
        config.workload.value,
        config.target.url,
        config.duration_sec,
        config.concurrency,
    )
    started_mono = time.perf_counter()
    stop_at = started_mono + config.duration_sec
    async with httpx.AsyncClient(
        transport=transport,
        limits=limits,
        timeout=config.target.timeout_sec,
    ) as client:
        workers = [
            asyncio.create_task(_worker(client, config, aggregator, pacer, stop_at))
            for _ in range(config.concurrency)
        ]
        reporter = None
        if progress:
            reporter = asyncio.create_task(_report_progress(aggregator, progress, stop_at))
        try:
            await asyncio.gather(*workers)
        finally:
            # Only reached with live workers if one of them raised.
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            if reporter is not None:
                reporter.cancel()
                await asyncio.gather(reporter, return_exceptions=True)
    wall_seconds = time.perf_counter() - started_mono
    logger.info(
        "Run %s finished in %.2fs: %d ok, %d failed",
        run_id,
        wall_seconds,
        aggregator.successes,
        aggregator.failures,
    )
    return RunResult(run_id=run_id, aggregator=aggregator, wall_seconds=wall_seconds)


async def _worker(
    client: httpx.AsyncClient,
    config: RunConfig,
    aggregator: MetricsAggregator,
    pacer: Pacer | None,
    stop_at: float,
) -> None:
    while time.perf_counter() < stop_at:
        if pacer is not None:
            await pacer.wait()
            if time.perf_counter() >= stop_at:
                break
        outcome = await send_request(client, config.target)
        aggregator.record(outcome)


async def _report_progress(
    aggregator: MetricsAggregator,
    progress: ProgressCallback,
    stop_at: float,
) -> None:
    while time.perf_counter() < stop_at:
        await asyncio.sleep(min(1.0, max(0.0, stop_at - time.perf_counter())))
        await progress(aggregator.successes, aggregator.failures)
