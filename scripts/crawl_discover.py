#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys

from scripts._common import add_common_args, configure_logging, load_env_and_pipeline


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="crawl_discover",
        description="Discover one list page of a source and queue detail fetches for every item.",
    )
    parser.add_argument("source", help="Source code (ophim, kkphim).")
    parser.add_argument("--page", type=int, default=1, help="List page (default: 1).")
    parser.add_argument("--queue", action="store_true", help="Queue a discovery job instead of running inline.")
    add_common_args(parser)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.verbose)
    pipeline = load_env_and_pipeline()
    try:
        if args.queue:
            job_id = pipeline.orchestrator.enqueue_discover(args.source, args.page)
            print(f"QUEUED discover source={args.source} page={args.page} job_id={job_id}")
            return 0
        result = pipeline.orchestrator.discover(args.source, args.page)
        print(f"DISCOVER summary source={args.source} page={args.page} total={result.total} upserted={result.upserted}")
        return 0
    finally:
        pipeline.close()


if __name__ == "__main__":
    raise SystemExit(main())
