"""Command line interface for running a demo hand-off transfer."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

import orjson

from handoff.config import initialize_environment
from handoff.errors import ConfigurationError
from handoff.logging_setup import configure_logging
from handoff.orchestrator import run_transfer

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the command line interface."""
    p = argparse.ArgumentParser(
        description="Bounded producer/consumer hand-off with sentinel shutdown")
    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level (DEBUG, INFO, WARNING, ERROR). Defaults to $LOG_LEVEL or INFO.",
    )
    p.add_argument("--capacity", type=int, default=None,
                   help="Buffer capacity (env HANDOFF_CAPACITY)")
    p.add_argument("--producers", type=int, default=None,
                   help="Number of producers (env HANDOFF_PRODUCERS)")
    p.add_argument("--consumers", type=int, default=None,
                   help="Number of consumers (env HANDOFF_CONSUMERS)")
    p.add_argument("--items", type=int, default=None, dest="items_per_producer",
                   help="Items generated per producer (env HANDOFF_ITEMS_PER_PRODUCER)")
    p.add_argument("--sentinel", type=int, default=None,
                   help="Poison-pill value, outside the produced range (env HANDOFF_SENTINEL)")
    p.add_argument("--poll-timeout", type=float, default=None,
                   help="Consumer poll interval in seconds (env HANDOFF_POLL_TIMEOUT)")
    p.add_argument("--join-timeout", type=float, default=None,
                   help="Per-worker join limit in seconds (env HANDOFF_JOIN_TIMEOUT)")
    p.add_argument("--produce-delay", type=float, default=None,
                   help="Simulated work per produced item (env HANDOFF_PRODUCE_DELAY)")
    p.add_argument("--consume-delay", type=float, default=None,
                   help="Simulated work per consumed item (env HANDOFF_CONSUME_DELAY)")
    p.add_argument("--json", action="store_true",
                   help="Print the transfer result as JSON on stdout")
    return p


_OVERRIDES = (
    "capacity",
    "producers",
    "consumers",
    "items_per_producer",
    "sentinel",
    "poll_timeout",
    "join_timeout",
    "produce_delay",
    "consume_delay",
)


def main(argv: Optional[List[str]] = None) -> int:
    """Run a transfer using environment config overridden by command line arguments."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = initialize_environment()
        overrides = {
            name: getattr(args, name)
            for name in _OVERRIDES
            if getattr(args, name) is not None
        }
        config = replace(config, **overrides).validate()
        result, _ = run_transfer(config)
    except ConfigurationError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2
    except KeyboardInterrupt:
        logger.warning("Interrupted.")
        return 130

    if args.json:
        sys.stdout.write(orjson.dumps(result.as_dict(), option=orjson.OPT_INDENT_2).decode())
        sys.stdout.write("\n")
    else:
        print(f"Final destination: {result.destination}")
        print(f"Items transferred: {len(result.destination)}")
    return 0 if result.complete else 1
