from __future__ import annotations

import asyncio
import json
import time

import httpx

from pkibench.config import PacingMode, RunConfig, issue_run_config, ocsp_run_config
from pkibench.loadgen.client import send_request
from pkibench.loadgen.runner import run_load
from pkibench.metrics import ErrorType, build_report


def _issue_config(duration_sec: int = 1, concurrency: int = 4, timeout_ms: int = 1000) -> RunConfig:
    return issue_run_config(
        token="s.test",
        base_url="http://vault.test",
        duration_sec=duration_sec,
        concurrency=concurrency,
        timeout_ms=timeout_ms,
    )


def test_issue_run_all_success() -> None:
    seen: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        await asyncio.sleep(0.01)
        return httpx.Response(200, json={"data": {"certificate": "-----BEGIN CERTIFICATE-----"}})

    config = _issue_config()
    started = time.perf_counter()
    result = asyncio.run(run_load(config, transport=httpx.MockTransport(handler)))
    elapsed = time.perf_counter() - started

    agg = result.aggregator
    assert agg.successes > 0
    assert agg.failures == 0
    assert len(agg.latencies()) == agg.successes
    assert agg.attempts == len(seen)
    assert all(latency >= 9.0 for latency in agg.latencies())
    assert result.wall_seconds >= config.duration_sec
    assert elapsed >= config.duration_sec

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/v1/pki_int/issue/example-dot-com"
    assert request.headers["X-Vault-Token"] == "s.test"
    assert json.loads(request.content) == {"common_name": "localhost"}


def test_non_success_status_never_counts() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.005)
        return httpx.Response(503, text="sealed")

    result = asyncio.run(run_load(_issue_config(), transport=httpx.MockTransport(handler)))
    report = build_report(result.aggregator, result.wall_seconds)
    assert report.successes == 0
    assert report.failures == report.total > 0
    assert report.latency is None
    assert report.peak_rate == 0
    assert report.failures_by_type == {ErrorType.STATUS: report.failures}


def test_timeouts_fail_within_budget() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200)

    config = _issue_config(duration_sec=1, concurrency=2, timeout_ms=200)
    result = asyncio.run(run_load(config, transport=httpx.MockTransport(handler)))
    agg = result.aggregator
    assert agg.successes == 0
    assert agg.failures >= 2
    assert agg.failures_by_type() == {ErrorType.TIMEOUT: agg.failures}
    # Last attempts start just before the deadline and run out their timeout.
    assert config.duration_sec <= result.wall_seconds < config.duration_sec + 0.2 + 0.5


def test_single_timeout_is_bounded() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200)

    target = _issue_config(timeout_ms=100).target

    async def once():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            started = time.perf_counter()
            outcome = await send_request(client, target)
            return outcome, time.perf_counter() - started

    outcome, elapsed = asyncio.run(once())
    assert not outcome.success
    assert outcome.error_type is ErrorType.TIMEOUT
    assert outcome.latency_ms is None
    assert elapsed < 0.1 + 0.25


def test_transport_errors_are_failures() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.001)
        raise httpx.ConnectError("connection refused", request=request)

    result = asyncio.run(run_load(_issue_config(concurrency=2), transport=httpx.MockTransport(handler)))
    agg = result.aggregator
    assert agg.successes == 0
    assert agg.failures > 0
    assert agg.failures_by_type() == {ErrorType.CONNECT: agg.failures}


def test_ocsp_run_is_paced() -> None:
    seen: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"\x30\x03\x0a\x01\x00")

    config = ocsp_run_config(
        payload=b"\x30\x00",
        base_url="http://vault.test/",
        duration_sec=2,
        concurrency=2,
        rate=10,
    )
    result = asyncio.run(run_load(config, transport=httpx.MockTransport(handler)))
    agg = result.aggregator
    # Each worker sleeps 200ms before every attempt: at most 10 per worker in 2s.
    assert 0 < agg.successes <= 20
    assert agg.failures == 0
    assert result.wall_seconds >= config.duration_sec

    request = seen[0]
    assert request.url.path == "/v1/pki_int/ocsp"
    assert request.headers["Content-Type"] == "application/ocsp-request"
    assert request.headers["Accept"] == "application/ocsp-response"
    assert "X-Vault-Token" not in request.headers
    assert request.content == b"\x30\x00"


def test_shared_ticker_run_stays_near_rate() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"ok")

    config = ocsp_run_config(
        payload=b"\x30\x00",
        duration_sec=1,
        concurrency=5,
        rate=20,
        pacing=PacingMode.SHARED,
    )
    result = asyncio.run(run_load(config, transport=httpx.MockTransport(handler)))
    # Slots every 50ms from t=0, none claimed after the deadline.
    assert 10 <= result.aggregator.successes <= 25


def test_progress_callback_sees_counts() -> None:
    calls: list[tuple[int, int]] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.01)
        return httpx.Response(200)

    async def progress(ok: int, failed: int) -> None:
        calls.append((ok, failed))

    asyncio.run(
        run_load(_issue_config(duration_sec=2, concurrency=1), transport=httpx.MockTransport(handler), progress=progress)
    )
    assert calls
    assert calls[-1][0] > 0


class SlowBody(httpx.AsyncByteStream):
    def __init__(self, gap_sec: float) -> None:
        self.gap_sec = gap_sec

    async def __aiter__(self):
        yield b"\x30\x82"
        await asyncio.sleep(self.gap_sec)
        yield b"\x01\x00"


def _send_once(handler, timeout_ms: int):
    target = _issue_config(timeout_ms=timeout_ms).target

    async def once():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await send_request(client, target)

    return asyncio.run(once())


def test_latency_includes_body_drain() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, stream=SlowBody(0.3))

    outcome = _send_once(handler, timeout_ms=2000)
    assert outcome.success
    assert outcome.latency_ms is not None
    assert outcome.latency_ms >= 290.0


def test_timeout_covers_body_drain() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, stream=SlowBody(1.0))

    started = time.perf_counter()
    outcome = _send_once(handler, timeout_ms=200)
    elapsed = time.perf_counter() - started
    assert not outcome.success
    assert outcome.error_type is ErrorType.TIMEOUT
    assert outcome.latency_ms is None
    assert elapsed < 0.2 + 0.5


def test_crashed_worker_stops_the_others() -> None:
    calls = 0
    cancelled: list[str] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls == 1:
            await asyncio.sleep(0.05)
            raise RuntimeError("handler bug")
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.append(request.url.path)
            raise
        return httpx.Response(200)

    config = _issue_config(duration_sec=5, concurrency=3, timeout_ms=20_000)

    async def scenario() -> list[str]:
        try:
            await run_load(config, transport=httpx.MockTransport(handler))
        except RuntimeError:
            return list(cancelled)
        raise AssertionError("run_load should have raised")

    started = time.perf_counter()
    seen_cancelled = asyncio.run(scenario())
    assert len(seen_cancelled) == 2
    assert time.perf_counter() - started < 2.0
