from __future__ import annotations

import argparse
import logging

from phim_backend.runtime import Pipeline, build_pipeline
from phim_backend.utils.env import load_env


def add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def load_env_and_pipeline() -> Pipeline:
    load_env()
    return build_pipeline()
