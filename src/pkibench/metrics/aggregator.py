from __future__ import annotations

import threading
import time
from collections import Counter

from pkibench.metrics.models import ErrorType, RequestOutcome


class MetricsAggregator:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._successes = 0
        self._failures = 0
        self._latencies: list[float] = []
        self._per_second: Counter[int] = Counter()
        self._failures_by_type: Counter[ErrorType] = Counter()

    def record_success(self, latency_ms: float, at: float | None = None) -> None:
        second = int(time.time() if at is None else at)
        with self._lock:
            self._successes += 1
            self._latencies.append(latency_ms)
            self._per_second[second] += 1

    def record_failure(self, error_type: ErrorType = ErrorType.OTHER) -> None:
        with self._lock:
            self._failures += 1
            self._failures_by_type[error_type] += 1

    def record(self, outcome: RequestOutcome) -> None:
        if outcome.success and outcome.latency_ms is not None:
            self.record_success(outcome.latency_ms, at=outcome.completed_at)
        else:
            self.record_failure(outcome.error_type or ErrorType.OTHER)

    @property
    def successes(self) -> int:
        return self._successes

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def attempts(self) -> int:
        with self._lock:
            return self._successes + self._failures

    def latencies(self) -> list[float]:
        with self._lock:
            return list(self._latencies)

    def per_second(self) -> dict[int, int]:
        with self._lock:
            return dict(self._per_second)

    def failures_by_type(self) -> dict[ErrorType, int]:
        with self._lock:
            return dict(self._failures_by_type)

    def peak_rate(self) -> int:
        with self._lock:
            return max(self._per_second.values(), default=0)
