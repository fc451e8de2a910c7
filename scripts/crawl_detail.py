#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys

from scripts._common import add_common_args, configure_logging, load_env_and_pipeline


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="crawl_detail",
        description="Fetch one item's detail payload and queue a sync if it changed.",
    )
    parser.add_argument("source", help="Source code (ophim, kkphim).")
    parser.add_argument("external_id", help="Item id at the source (usually its slug).")
    parser.add_argument("--queue", action="store_true", help="Queue a detail job instead of running inline.")
    add_common_args(parser)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.verbose)
    pipeline = load_env_and_pipeline()
    try:
        if args.queue:
            job_id = pipeline.orchestrator.enqueue_detail(args.source, args.external_id)
            print(f"QUEUED detail source={args.source} external_id={args.external_id} job_id={job_id}")
            return 0
        result = pipeline.orchestrator.fetch_detail(args.source, args.external_id)
        if not result.ok:
            print(f"DETAIL failed source={args.source} external_id={args.external_id} error={result.error}", file=sys.stderr)
            return 1
        print(
            f"DETAIL summary source={args.source} external_id={args.external_id} "
            f"source_item_id={result.source_item_id} changed={result.changed}"
        )
        return 0
    finally:
        pipeline.close()


if __name__ == "__main__":
    raise SystemExit(main())
