from __future__ import annotations

import json
import os
from typing import Mapping

import httpx

from pkibench.config.models import TOKEN_HEADER, PacingMode, RunConfig, TargetConfig, Workload
from pkibench.errors import ConfigError

DEFAULT_URL = "http://127.0.0.1:8200"
DEFAULT_MOUNT = "pki_int"
DEFAULT_ROLE = "example-dot-com"
DEFAULT_CN = "localhost"
DEFAULT_DURATION_SEC = 120
DEFAULT_CONCURRENCY = 10
DEFAULT_ISSUE_TIMEOUT_MS = 10_000
DEFAULT_OCSP_TIMEOUT_MS = 5_000
DEFAULT_OCSP_RATE = 20
DEFAULT_TOKEN_ENV = "VAULT_TOKEN"

OCSP_REQUEST_TYPE = "application/ocsp-request"
OCSP_RESPONSE_TYPE = "application/ocsp-response"


def issue_endpoint(base_url: str, mount: str, role: str) -> str:
    return f"{_strip_base(base_url)}/v1/{mount}/issue/{role}"


def ocsp_endpoint(base_url: str, mount: str) -> str:
    return f"{_strip_base(base_url)}/v1/{mount}/ocsp"


def token_from_env(name: str = DEFAULT_TOKEN_ENV, environ: Mapping[str, str] | None = None) -> str:
    env = os.environ if environ is None else environ
    token = env.get(name, "")
    if not token:
        msg = f"Missing {name} env var."
        raise ConfigError(msg)
    return token


def issue_run_config(
    token: str,
    base_url: str = DEFAULT_URL,
    mount: str = DEFAULT_MOUNT,
    role: str = DEFAULT_ROLE,
    common_name: str = DEFAULT_CN,
    duration_sec: int = DEFAULT_DURATION_SEC,
    concurrency: int = DEFAULT_CONCURRENCY,
    timeout_ms: int = DEFAULT_ISSUE_TIMEOUT_MS,
    notes: str = "",
) -> RunConfig:
    if not token:
        msg = "An issuance run needs a Vault token"
        raise ConfigError(msg)
    _validate_common(duration_sec, concurrency, timeout_ms)
    url = _validate_url(issue_endpoint(base_url, mount, role))
    body = json.dumps({"common_name": common_name}).encode()
    target = TargetConfig(
        url=url,
        timeout_sec=timeout_ms / 1000.0,
        headers={TOKEN_HEADER: token, "Content-Type": "application/json"},
        body=body,
    )
    return RunConfig(
        target=target,
        workload=Workload.ISSUE,
        duration_sec=duration_sec,
        concurrency=concurrency,
        rate=None,
        pacing=PacingMode.NONE,
        notes=notes,
        details={"CN": common_name},
    )


def ocsp_run_config(
    payload: bytes,
    base_url: str = DEFAULT_URL,
    mount: str = DEFAULT_MOUNT,
    duration_sec: int = DEFAULT_DURATION_SEC,
    concurrency: int = DEFAULT_CONCURRENCY,
    rate: int = DEFAULT_OCSP_RATE,
    timeout_ms: int = DEFAULT_OCSP_TIMEOUT_MS,
    pacing: PacingMode = PacingMode.WORKER,
    notes: str = "",
    details: Mapping[str, str] | None = None,
) -> RunConfig:
    if not payload:
        msg = "OCSP request payload is empty"
        raise ConfigError(msg)
    if pacing is PacingMode.NONE:
        msg = "OCSP runs are rate-paced; choose worker or shared pacing"
        raise ConfigError(msg)
    _validate_common(duration_sec, concurrency, timeout_ms)
    url = _validate_url(ocsp_endpoint(base_url, mount))
    target = TargetConfig(
        url=url,
        timeout_sec=timeout_ms / 1000.0,
        headers={"Content-Type": OCSP_REQUEST_TYPE, "Accept": OCSP_RESPONSE_TYPE},
        body=payload,
    )
    return RunConfig(
        target=target,
        workload=Workload.OCSP,
        duration_sec=duration_sec,
        concurrency=concurrency,
        rate=rate,
        pacing=pacing,
        notes=notes,
        details=dict(details or {}),
    )


def _strip_base(base_url: str) -> str:
    return base_url.rstrip("/")


def _validate_common(duration_sec: int, concurrency: int, timeout_ms: int) -> None:
    if duration_sec <= 0:
        msg = f"Duration must be positive, got {duration_sec}"
        raise ConfigError(msg)
    if concurrency <= 0:
        msg = f"Concurrency must be positive, got {concurrency}"
        raise ConfigError(msg)
    if timeout_ms <= 0:
        msg = f"Timeout must be positive, got {timeout_ms}ms"
        raise ConfigError(msg)


def _validate_url(url: str) -> str:
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        msg = f"Invalid target URL {url!r}: {exc}"
        raise ConfigError(msg) from exc
    if parsed.scheme not in ("http", "https") or not parsed.host:
        msg = f"Target URL must be http(s) with a host, got {url!r}"
        raise ConfigError(msg)
    return url
