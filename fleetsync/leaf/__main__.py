"""
Leaf entry point.

Usage:
    python -m fleetsync.leaf                    # finds leaf.yaml
    python -m fleetsync.leaf --config leaf.yaml
"""

import argparse
import asyncio

from fleetsync.common.config import LeafSettings
from fleetsync.common.logging_setup import set_log_level

from .service import serve


def main():
    parser = argparse.ArgumentParser(description="fleetsync leaf")
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to leaf YAML settings (default: FLEETSYNC_CONFIG or leaf.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (debug) logging",
    )
    args = parser.parse_args()

    if args.verbose:
        set_log_level("DEBUG")

    asyncio.run(serve(LeafSettings.load(args.config)))


if __name__ == "__main__":
    main()
