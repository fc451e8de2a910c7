#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys

from phim_backend.jobs.queue import QUEUE_NAMES
from phim_backend.jobs.scheduler import prepare_queues

from scripts._common import add_common_args, configure_logging, load_env_and_pipeline


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="run_workers",
        description="Drain the crawl/sync job queues and keep periodic discovery scheduled.",
    )
    parser.add_argument(
        "--queue",
        action="append",
        choices=QUEUE_NAMES,
        default=[],
        help="Queue to work (repeatable; default: all).",
    )
    parser.add_argument("--no-schedule", action="store_true", help="Skip stale-job recovery and periodic discovery registration.")
    add_common_args(parser)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.verbose)
    pipeline = load_env_and_pipeline()
    try:
        if not args.no_schedule:
            prepare_queues(pipeline.jobs, pipeline.orchestrator)
        pipeline.worker_pool().run_forever(args.queue or QUEUE_NAMES)
    finally:
        pipeline.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
