from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class ErrorType(str, Enum):
    STATUS = "status"
    TIMEOUT = "timeout"
    CONNECT = "connect"
    READ = "read"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class RequestOutcome:
    success: bool
    completed_at: float
    latency_ms: float | None = None
    status_code: int | None = None
    error_type: ErrorType | None = None


@dataclass(frozen=True, slots=True)
class LatencySummary:
    p50_ms: float
    p95_ms: float
    p99_ms: float
    max_ms: float


@dataclass(frozen=True, slots=True)
class RunReport:
    total: int
    successes: int
    failures: int
    wall_seconds: float
    steady_rate: float
    peak_rate: int
    latency: LatencySummary | None
    failures_by_type: Mapping[ErrorType, int] = field(default_factory=dict)

    @property
    def per_hour(self) -> float:
        return self.steady_rate * 3600

    def to_dict(self) -> Mapping[str, Any]:
        latency = None
        if self.latency is not None:
            latency = {
                "p50_ms": self.latency.p50_ms,
                "p95_ms": self.latency.p95_ms,
                "p99_ms": self.latency.p99_ms,
                "max_ms": self.latency.max_ms,
            }
        return {
            "total": self.total,
            "successes": self.successes,
            "failures": self.failures,
            "wall_seconds": self.wall_seconds,
            "steady_rate": self.steady_rate,
            "per_hour": self.per_hour,
            "peak_rate": self.peak_rate,
            "latency": latency,
            "failures_by_type": {k.value: v for k, v in self.failures_by_type.items()},
        }
