#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys

from phim_backend.jobs.queue import SYNC_QUEUE

from scripts._common import add_common_args, configure_logging, load_env_and_pipeline


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sync_source_item",
        description="Sync crawled source items into the catalog (match, merge, write).",
    )
    parser.add_argument("source_item_id", type=int, nargs="+", help="source_items.id (one or more).")
    parser.add_argument("--queue", action="store_true", help="Queue sync jobs instead of running inline.")
    add_common_args(parser)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.verbose)
    pipeline = load_env_and_pipeline()
    missing = 0
    try:
        for source_item_id in args.source_item_id:
            if args.queue:
                job_id = pipeline.jobs.enqueue(SYNC_QUEUE, {"source_item_id": source_item_id})
                print(f"QUEUED sync source_item_id={source_item_id} job_id={job_id}")
                continue
            result = pipeline.sync.sync_source_item(source_item_id)
            if result is None:
                missing += 1
                print(f"NOT FOUND source_item_id={source_item_id}", file=sys.stderr)
                continue
            print(f"SYNCED source_item_id={source_item_id} movie_id={result.movie_id} matched_by={result.matched_by}")
    finally:
        pipeline.close()
    return 1 if missing else 0


if __name__ == "__main__":
    raise SystemExit(main())
