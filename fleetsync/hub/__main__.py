"""
Hub entry point.

Usage:
    python -m fleetsync.hub                 # settings from environment/.env
    python -m fleetsync.hub --port 9000
"""

import argparse

import uvicorn

from fleetsync.common.logging_setup import set_log_level
from fleetsync.hub.main import create_app
from fleetsync.hub.settings import get_settings


def main():
    parser = argparse.ArgumentParser(description="fleetsync configuration hub")
    parser.add_argument("--host", help="Bind address (default from settings)")
    parser.add_argument("--port", type=int, help="Bind port (default from settings)")
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args()

    if args.verbose:
        set_log_level("DEBUG")

    settings = get_settings()
    app = create_app(settings)

    uvicorn.run(
        app,
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level="debug" if args.verbose else "info",
    )


if __name__ == "__main__":
    main()
