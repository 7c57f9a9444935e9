from __future__ import annotations

from pkibench.config.models import PacingMode, RunConfig, TargetConfig, Workload
from pkibench.config.workloads import (
    issue_endpoint,
    issue_run_config,
    ocsp_endpoint,
    ocsp_run_config,
    token_from_env,
)

__all__ = [
    "PacingMode",
    "RunConfig",
    "TargetConfig",
    "Workload",
    "issue_endpoint",
    "issue_run_config",
    "ocsp_endpoint",
    "ocsp_run_config",
    "token_from_env",
]
