import argparse
import json
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List

import pandas as pd
import structlog

from dnsprobe.config import load_config
from dnsprobe.errors import ConfigError
from dnsprobe.job import ProbeJob
from dnsprobe.log import bootstrap_logging, setup_logging
from dnsprobe.models import ResultRecord
from dnsprobe.registry import Registry, default_registry
from reporting.assembler import Assemble

"""
The command-line interface for the DNS probe.
It mirrors the flow of the API:
  1) Build and validate every monitor up front (all problems reported together)
  2) Run one tick of every job, concurrently
  3) Assemble the records into a single JSON-safe response using Assemble.build()
"""

log = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_DOWN = 1
EXIT_CONFIG = 2


# Parse the command-line arguments
def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Active DNS health probe")
    p.add_argument("servers", nargs="*", help="DNS servers for an ad-hoc check (e.g. 8.8.8.8, tcp://dns.google)")
    p.add_argument("-c", "--config", help="YAML file with `monitors:`; runs every monitor once")
    p.add_argument("--target", help="Name to query (ad-hoc mode)")
    p.add_argument("--query-type", default="ANY", help="Query type (default ANY)")
    p.add_argument("--record-type", help="Expected record type: a, aaaa, cname or txt")
    p.add_argument("--value", help="Expected record value")
    p.add_argument("--timeout", type=float, default=5.0, help="Timeout per query (seconds)")
    p.add_argument("--tls", action="store_true", help="Use DNS over TLS for tcp:// servers")
    p.add_argument("--workers", type=int, default=16, help="Jobs run in parallel")
    p.add_argument("--json", dest="as_json", action="store_true", help="Output JSON")
    p.add_argument("--log-level", default=None, help="Log level (default from config / LOG_LEVEL)")

    # Included in response["meta"] so you can track CLI output versions.
    p.add_argument("--version", default="0.1", help="Version string included in output meta")

    return p.parse_args(argv)


def adhoc_monitor(args: argparse.Namespace) -> Dict[str, Any]:
    """Monitor entry equivalent to the command-line flags."""
    return {
        "type": "dns",
        "id": "adhoc",
        "dns_servers": list(args.servers),
        "target": args.target or "",
        "query_type": args.query_type,
        "timeout": args.timeout,
        "ssl": {"enabled": bool(args.tls)},
        "check": {"response": {"record_type": args.record_type, "value": args.value}},
    }


def build_jobs(registry: Registry, monitors: List[Dict[str, Any]]) -> List[ProbeJob]:
    """
    Build every monitor's jobs.

    Raises:
        ConfigError: with the problems of every monitor, not just the first.
    """
    jobs: List[ProbeJob] = []
    for probe in registry.create_all(monitors):
        jobs.extend(probe.jobs)
    return jobs


def run_once(jobs: List[ProbeJob], timeout: float, workers: int = 16) -> List[ResultRecord]:
    """One tick of each job. Records come back in job order."""
    if not jobs:
        return []
    deadline = time.time() + timeout
    with ThreadPoolExecutor(max_workers=max(1, min(workers, len(jobs)))) as ex:
        return list(ex.map(lambda j: j.run(deadline=deadline), jobs))


def results_frame(records: List[ResultRecord]) -> pd.DataFrame:
    rows = []
    for r in records:
        total = (r.rtt.get("total") or {}).get("us")
        rows.append(
            {
                "monitor": r.monitor_id,
                "url": r.url,
                "status": r.status,
                "rcode": r.rcode or "",
                "answers": ", ".join(f"{a.record_type}:{a.value}" for a in r.answers),
                "rtt_ms": round(total / 1000, 2) if total is not None else None,
                "error": r.error.message if r.error else "",
            }
        )
    return pd.DataFrame(rows, columns=["monitor", "url", "status", "rcode", "answers", "rtt_ms", "error"])


def print_human(records: List[ResultRecord], summary: Dict[str, Any]) -> None:
    if not records:
        print("No checks.")
        return
    print(results_frame(records).to_string(index=False))
    print(
        f"\nChecks: {summary.get('checks', 0)} | "
        f"Up: {summary.get('up', 0)} | "
        f"Down: {summary.get('down', 0)}"
    )


def main(argv: List[str] | None = None) -> int:
    """
    CLI entrypoint.

    Returns:
        0 when every check is up, 1 when any is down, 2 on configuration errors.
    """
    args = parse_args(argv)
    bootstrap_logging(args.log_level)

    try:
        if args.config:
            config = load_config(args.config)
            monitors = config.probe_configs()
        else:
            config = load_config()
            monitors = [adhoc_monitor(args)]

        setup_logging(args.log_level or config.logging.level, config.logging.format)
        jobs = build_jobs(default_registry(), monitors)
    except ConfigError as e:
        for err in e.errors:
            print(f"Invalid configuration: {err}")
        return EXIT_CONFIG

    # one shared deadline, long enough for the slowest job
    window = max((j.config.timeout for j in jobs), default=args.timeout)
    records = run_once(jobs, window, workers=args.workers)
    response = Assemble().build(records, meta={"version": args.version, "source": "cli"})

    if args.as_json:
        print(json.dumps(response, indent=2))
    else:
        print_human(records, response["summary"])

    return EXIT_DOWN if response["summary"]["down"] else EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
