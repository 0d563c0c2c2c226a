"""
Relay entry point.

Usage:
    python -m fleetsync.relay                     # finds relay.yaml
    python -m fleetsync.relay --config relay.yaml
"""

import argparse
import asyncio
import sys

from fleetsync.common.config import RelaySettings
from fleetsync.common.exceptions import FleetSyncError
from fleetsync.common.logging_setup import set_log_level

from .service import run_relay


def main():
    parser = argparse.ArgumentParser(description="fleetsync relay")
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to relay YAML settings (default: FLEETSYNC_CONFIG or relay.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (debug) logging",
    )
    args = parser.parse_args()

    if args.verbose:
        set_log_level("DEBUG")

    settings = RelaySettings.load(args.config)

    try:
        asyncio.run(run_relay(settings))
    except FleetSyncError:
        sys.exit(1)


if __name__ == "__main__":
    main()
