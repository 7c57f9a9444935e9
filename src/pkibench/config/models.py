from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

TOKEN_HEADER = "X-Vault-Token"


class Workload(str, Enum):
    ISSUE = "issue"
    OCSP = "ocsp"


class PacingMode(str, Enum):
    NONE = "none"
    WORKER = "worker"
    SHARED = "shared"


@dataclass(frozen=True, slots=True)
class TargetConfig:
    url: str
    method: str = "POST"
    timeout_sec: float = 10.0
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""


@dataclass(frozen=True, slots=True)
class RunConfig:
    target: TargetConfig
    workload: Workload
    duration_sec: int = 120
    concurrency: int = 10
    rate: int | None = None
    pacing: PacingMode = PacingMode.NONE
    run_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    notes: str = ""
    # Display-only details for the run banner (cn, cert paths, ...).
    details: Mapping[str, str] = field(default_factory=dict)

    def to_metadata(self) -> Mapping[str, Any]:
        headers = {
            name: ("<redacted>" if name.lower() == TOKEN_HEADER.lower() else value)
            for name, value in self.target.headers.items()
        }
        return {
            "run_id": self.run_id or "",
            "created_at": self.created_at.isoformat(),
            "workload": self.workload.value,
            "duration_sec": self.duration_sec,
            "concurrency": self.concurrency,
            "rate": self.rate,
            "pacing": self.pacing.value,
            "notes": self.notes,
            "details": dict(self.details),
            "target": {
                "url": self.target.url,
                "method": self.target.method,
                "timeout_sec": self.target.timeout_sec,
                "headers": headers,
                "body_bytes": len(self.target.body),
            },
        }
