from __future__ import annotations

from typing import Sequence

import numpy as np

from pkibench.config import RunConfig, Workload
from pkibench.metrics.aggregator import MetricsAggregator
from pkibench.metrics.models import LatencySummary, RunReport

NO_DATA = "No successful requests; no latency stats."

_TITLES = {
    Workload.ISSUE: "Vault PKI Issuance Load Test",
    Workload.OCSP: "Vault OCSP Response Time Load Test",
}


def percentile(sorted_values: Sequence[float], p: float) -> float | None:
    """Linearly interpolated percentile of an ascending sequence.

    The rank is ``(p / 100) * (n - 1)``; fractional ranks blend the two
    neighbouring samples. Returns ``None`` when there are no samples.
    """
    if len(sorted_values) == 0:
        return None
    return float(np.percentile(sorted_values, p, method="linear"))


def summarize_latencies(latencies: Sequence[float]) -> LatencySummary | None:
    if not latencies:
        return None
    ordered = sorted(latencies)
    p50, p95, p99 = (percentile(ordered, p) for p in (50, 95, 99))
    return LatencySummary(p50_ms=p50, p95_ms=p95, p99_ms=p99, max_ms=ordered[-1])


def build_report(aggregator: MetricsAggregator, wall_seconds: float) -> RunReport:
    successes = aggregator.successes
    failures = aggregator.failures
    steady = successes / wall_seconds if wall_seconds > 0 else 0.0
    return RunReport(
        total=successes + failures,
        successes=successes,
        failures=failures,
        wall_seconds=wall_seconds,
        steady_rate=steady,
        peak_rate=aggregator.peak_rate(),
        latency=summarize_latencies(aggregator.latencies()),
        failures_by_type=aggregator.failures_by_type(),
    )


def format_banner(config: RunConfig) -> str:
    lines = [_TITLES[config.workload], f"Endpoint:     {config.target.url}"]
    for label, value in config.details.items():
        lines.append(f"{label + ':':<14}{value}")
    lines.append(f"Duration:     {config.duration_sec}s")
    lines.append(f"Concurrency:  {config.concurrency}")
    if config.rate is not None:
        lines.append(f"Rate:         {config.rate} req/sec (total, {config.pacing.value} pacing)")
    lines.append(f"Timeout:      {config.target.timeout_sec * 1000:.0f}ms")
    return "\n".join(lines) + "\n"


def format_report(report: RunReport, workload: Workload) -> str:
    unit = "certs" if workload is Workload.ISSUE else "req"
    ok_label = "Successful issues:" if workload is Workload.ISSUE else "Successful:"
    lines = [
        "Results",
        "-------",
        f"{'Total requests:':<20}{report.total}",
        f"{ok_label:<20}{report.successes}",
        f"{'Failed:':<20}{report.failures}",
        f"{'Wall time:':<20}{report.wall_seconds:.2f}s",
        "",
    ]
    steady = f"{report.steady_rate:.2f} {unit}/sec"
    if workload is Workload.ISSUE:
        steady += f" ({report.per_hour:.0f} certs/hour)"
    lines.append(f"{'Steady-state rate:':<20}{steady}")
    lines.append(f"{'Peak 1s rate:':<20}{report.peak_rate} {unit}/sec")
    lines.append("")
    if report.failures_by_type:
        lines.append("Failures by type")
        for error_type, count in sorted(report.failures_by_type.items(), key=lambda kv: kv[0].value):
            lines.append(f"{error_type.value}: {count}")
        lines.append("")
    if report.latency is None:
        lines.append(NO_DATA)
    else:
        lines.extend(
            [
                "Latency (successful)",
                f"p50: {report.latency.p50_ms:.1f} ms",
                f"p95: {report.latency.p95_ms:.1f} ms",
                f"p99: {report.latency.p99_ms:.1f} ms",
                f"max: {report.latency.max_ms:.1f} ms",
            ]
        )
    return "\n".join(lines) + "\n"
