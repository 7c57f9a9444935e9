from __future__ import annotations

from pkibench.metrics.aggregator import MetricsAggregator
from pkibench.metrics.models import ErrorType, LatencySummary, RequestOutcome, RunReport
from pkibench.metrics.report import (
    build_report,
    format_banner,
    format_report,
    percentile,
    summarize_latencies,
)

__all__ = [
    "ErrorType",
    "LatencySummary",
    "MetricsAggregator",
    "RequestOutcome",
    "RunReport",
    "build_report",
    "format_banner",
    "format_report",
    "percentile",
    "summarize_latencies",
]
