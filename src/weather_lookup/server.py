"""Run the HTTP API under uvicorn."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

import uvicorn

from .api import create_app
from .config import load_settings
from .exceptions import ConfigError
from .log_setup import setup_logger


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse server arguments; anything unset falls back to settings."""
    parser = argparse.ArgumentParser(description="Serve the weather lookup API.")
    parser.add_argument("--host", default=None, help="Bind address (HOST).")
    parser.add_argument("--port", type=int, default=None, help="Listen port (PORT).")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Start with verbose diagnostics enabled (DEBUG_MODE).",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Load settings once and serve until interrupted."""
    args = parse_args(argv)
    logger = setup_logger()

    try:
        settings = load_settings()
    except ConfigError as exc:
        logger.error("Configuration failure: %s", exc)
        return 2

    overrides = {
        "host": args.host,
        "port": args.port,
        "debug_mode": True if args.debug else None,
    }
    settings = settings.model_copy(
        update={key: value for key, value in overrides.items() if value is not None}
    )
    logger.setLevel(settings.log_level.upper())

    app = create_app(settings, logger=logger)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
