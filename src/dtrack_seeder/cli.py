"""Seed or trim a Dependency-Track instance to a target project count."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from .bootstrap import authenticate
from .client import DependencyTrackClient
from .config import SeederConfig, load_config
from .controller import ConvergenceController, ReconciliationResult
from .errors import SeederError
from .manifests import load_manifests
from .readiness import DEFAULT_TICK_SECONDS, wait_until_ready
from .utils.logging import configure_logging

logger = logging.getLogger("dtrack_seeder.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dtrack-seeder", description=__doc__)
    parser.add_argument("--url", help="Dependency-Track URL")
    parser.add_argument("--pass", dest="password", help="Dependency-Track admin password")
    parser.add_argument("--count", dest="project_count", type=int, help="Target project count")
    parser.add_argument("--boms", dest="bom_dir", type=Path, help="BOMs file path")
    parser.add_argument(
        "--wait",
        action="store_true",
        default=None,
        help="Wait for BOM processing to complete",
    )
    parser.add_argument(
        "--poll-interval", help="Interval for polling completion status (e.g. 1s, 500ms)"
    )
    parser.add_argument("--wait-timeout", help="Wait timeout (e.g. 5m)")
    parser.add_argument("--delay", help="Delay between upload requests (e.g. 250ms)")
    parser.add_argument(
        "--concurrency", type=int, help="Maximum number of uploads in flight at once"
    )
    parser.add_argument(
        "--skip-failed",
        action="store_true",
        default=None,
        help="Record failed uploads and keep going instead of aborting",
    )
    parser.add_argument(
        "--ready-timeout", help="How long to wait for the server to come up (e.g. 1m)"
    )
    parser.add_argument("--config", type=Path, help="Optional YAML file with run settings")
    parser.add_argument("--dry-run", action="store_true", help="Print config and exit")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level",
    )
    return parser


def _overrides(args: argparse.Namespace) -> dict[str, object]:
    return {
        "url": args.url,
        "password": args.password,
        "project_count": args.project_count,
        "bom_dir": args.bom_dir,
        "wait": args.wait,
        "poll_interval": args.poll_interval,
        "wait_timeout": args.wait_timeout,
        "delay": args.delay,
        "concurrency": args.concurrency,
        "skip_failed": args.skip_failed,
        "ready_timeout": args.ready_timeout,
    }


async def run(
    config: SeederConfig,
    *,
    client: DependencyTrackClient | None = None,
    ready_tick: float = DEFAULT_TICK_SECONDS,
) -> ReconciliationResult:
    """Load BOMs, wait for the server, authenticate and reconcile."""

    config.validate_for_run()
    manifests = load_manifests(config.bom_dir)  # type: ignore[arg-type]

    base_client = client or DependencyTrackClient(
        config.url, timeout_seconds=config.request_timeout
    )
    async with base_client:
        logger.info("waiting for dtrack to be ready")
        await wait_until_ready(base_client, timeout=config.ready_timeout, tick=ready_tick)
        api_client = await authenticate(base_client, config.password)

    async with api_client:
        controller = ConvergenceController(api_client, manifests, config.dispatch_settings())
        return await controller.reconcile(config.project_count)


def _summary(result: ReconciliationResult) -> dict[str, object]:
    summary: dict[str, object] = {
        "action": result.action,
        "current_count": result.current_count,
        "desired_count": result.desired_count,
        "attempted": result.attempted,
        "failed": result.failed,
        "deleted": result.deleted,
        "elapsed_seconds": round(result.elapsed, 3),
    }
    if result.elapsed_with_completion is not None:
        summary["elapsed_with_completion_seconds"] = round(result.elapsed_with_completion, 3)
        completions = [o.completion for o in result.outcomes if o.completion is not None]
        summary["completions"] = {
            state: sum(1 for c in completions if c.state.value == state)
            for state in ("done", "timed_out", "failed")
        }
    return summary


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(getattr(logging, args.log_level.upper(), logging.INFO))

    try:
        config = load_config(args.config, _overrides(args))
    except SeederError as exc:
        logger.error("invalid configuration: %s", exc.describe())
        return 1

    if args.dry_run:
        print(json.dumps(config.as_dict(), indent=2, sort_keys=True))
        return 0

    try:
        result = asyncio.run(run(config))
    except SeederError as exc:
        logger.error("%s failed: %s", exc.error_type, exc.describe())
        return 1
    except KeyboardInterrupt:
        logger.warning("interrupted")
        return 130

    print(json.dumps(_summary(result), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
