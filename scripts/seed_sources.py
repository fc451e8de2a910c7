#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys

from phim_backend.db.connection import Database
from phim_backend.db.store import PostgresStoreProvider
from phim_backend.ingestion.crawl_orchestrator import seed_sources
from phim_backend.utils.env import load_env

from scripts._common import add_common_args, configure_logging


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="seed_sources",
        description="Create the ophim/kkphim rows in sources. Existing rows keep their base_url.",
    )
    add_common_args(parser)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.verbose)
    load_env()
    database = Database(max_connections=2)
    try:
        codes = seed_sources(PostgresStoreProvider(database))
    finally:
        database.close()
    print(f"SEEDED sources={','.join(codes)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
