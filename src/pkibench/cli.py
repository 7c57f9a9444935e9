from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Sequence

from pkibench.config import (
    PacingMode,
    RunConfig,
    issue_run_config,
    ocsp_endpoint,
    ocsp_run_config,
    token_from_env,
)
from pkibench.config import workloads as defaults
from pkibench.errors import PkiBenchError
from pkibench.loadgen.runner import run_load
from pkibench.metrics import build_report, format_banner, format_report
from pkibench.payload import build_ocsp_request

logger = logging.getLogger("pkibench")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pkibench",
        description="Throughput and latency load tests for Vault PKI issuance and OCSP",
    )
    sub = parser.add_subparsers(dest="workload", required=True)

    issue = sub.add_parser("issue", help="Certificate issuance throughput (closed loop)")
    _add_common(issue, default_timeout_ms=defaults.DEFAULT_ISSUE_TIMEOUT_MS)
    issue.add_argument("--role", default=defaults.DEFAULT_ROLE)
    issue.add_argument("--cn", default=defaults.DEFAULT_CN, help="Common name to request")
    issue.add_argument(
        "--token-env",
        default=defaults.DEFAULT_TOKEN_ENV,
        help="Environment variable holding the Vault token",
    )

    ocsp = sub.add_parser("ocsp", help="OCSP response time at a target rate")
    _add_common(ocsp, default_timeout_ms=defaults.DEFAULT_OCSP_TIMEOUT_MS, url_aliases=("--vault",))
    ocsp.add_argument("--cert", required=True, help="Certificate whose status is queried")
    ocsp.add_argument("--issuer", required=True, help="Issuer certificate (PEM)")
    ocsp.add_argument(
        "--rate",
        type=int,
        default=defaults.DEFAULT_OCSP_RATE,
        help="Total requests per second across all workers",
    )
    ocsp.add_argument(
        "--pacing",
        choices=[PacingMode.WORKER.value, PacingMode.SHARED.value],
        default=PacingMode.WORKER.value,
    )
    ocsp.add_argument("--openssl", default="openssl", help="openssl executable")
    return parser


def _add_common(
    parser: argparse.ArgumentParser,
    default_timeout_ms: int,
    url_aliases: Sequence[str] = (),
) -> None:
    parser.add_argument("--url", *url_aliases, dest="url", default=defaults.DEFAULT_URL)
    parser.add_argument("--mount", default=defaults.DEFAULT_MOUNT)
    parser.add_argument("--duration", type=int, default=defaults.DEFAULT_DURATION_SEC)
    parser.add_argument("--concurrency", type=int, default=defaults.DEFAULT_CONCURRENCY)
    parser.add_argument("--timeout-ms", type=int, default=default_timeout_ms)
    parser.add_argument("--notes", default="")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )


def build_config(args: argparse.Namespace) -> RunConfig:
    if args.workload == "issue":
        return issue_run_config(
            token=token_from_env(args.token_env),
            base_url=args.url,
            mount=args.mount,
            role=args.role,
            common_name=args.cn,
            duration_sec=args.duration,
            concurrency=args.concurrency,
            timeout_ms=args.timeout_ms,
            notes=args.notes,
        )
    payload = build_ocsp_request(
        args.cert,
        args.issuer,
        ocsp_endpoint(args.url, args.mount),
        openssl=args.openssl,
    )
    return ocsp_run_config(
        payload=payload,
        base_url=args.url,
        mount=args.mount,
        duration_sec=args.duration,
        concurrency=args.concurrency,
        rate=args.rate,
        timeout_ms=args.timeout_ms,
        pacing=PacingMode(args.pacing),
        notes=args.notes,
        details={"Cert": args.cert, "Issuer": args.issuer},
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format=LOG_FORMAT, stream=sys.stderr)
    try:
        config = build_config(args)
        if not args.json:
            print(format_banner(config))
        result = asyncio.run(run_load(config))
    except PkiBenchError as exc:
        logger.error("Fatal: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return 130
    except Exception:
        logger.exception("Fatal: unexpected error")
        return 1

    report = build_report(result.aggregator, result.wall_seconds)
    if args.json:
        payload = {
            "run": {**config.to_metadata(), "run_id": result.run_id},
            "report": report.to_dict(),
        }
        print(json.dumps(payload, indent=2))
    else:
        print(format_report(report, config.workload), end="")
    return 0


if __name__ == "__main__":
    sys.exit(main())
