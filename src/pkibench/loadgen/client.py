from __future__ import annotations

import asyncio
import logging
import time

import httpx

from pkibench.config import TargetConfig
from pkibench.metrics import ErrorType, RequestOutcome

logger = logging.getLogger(__name__)


async def send_request(client: httpx.AsyncClient, target: TargetConfig) -> RequestOutcome:
    start_mono = time.perf_counter()
    try:
        status_code, ok = await asyncio.wait_for(
            _round_trip(client, target),
            timeout=target.timeout_sec,
        )
        latency_ms = (time.perf_counter() - start_mono) * 1000.0
    except (asyncio.TimeoutError, httpx.TimeoutException):
        err = ErrorType.TIMEOUT
    except httpx.ConnectError:
        err = ErrorType.CONNECT
    except httpx.ReadError:
        err = ErrorType.READ
    except httpx.HTTPError:
        err = ErrorType.OTHER
    else:
        if ok:
            return RequestOutcome(
                success=True,
                completed_at=time.time(),
                latency_ms=latency_ms,
                status_code=status_code,
            )
        logger.debug("%s %s -> HTTP %d", target.method, target.url, status_code)
        return RequestOutcome(
            success=False,
            completed_at=time.time(),
            status_code=status_code,
            error_type=ErrorType.STATUS,
        )
    logger.debug("%s %s failed: %s", target.method, target.url, err.value)
    return RequestOutcome(success=False, completed_at=time.time(), error_type=err)


async def _round_trip(client: httpx.AsyncClient, target: TargetConfig) -> tuple[int, bool]:
    async with client.stream(
        target.method,
        target.url,
        headers=target.headers,
        content=target.body,
        timeout=target.timeout_sec,
    ) as resp:
        # Drained on every status so the connection can be reused.
        await resp.aread()
        return resp.status_code, resp.is_success
