"""One-shot CLI: look up a postal code and print the normalized result."""

from __future__ import annotations

import argparse
import json
import sys
import uuid
from collections.abc import Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import load_settings
from .exceptions import ConfigError, WeatherLookupError
from .log_setup import setup_logger
from .proxy import ProxyConfig
from .weather import NormalizedWeatherResult, WeatherFetcher

EXIT_CODES = {400: 3, 404: 4, 503: 5, 500: 6}


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(description="Look up current weather by postal code.")
    parser.add_argument("postal_code", help="Postal code (at least 4 digits).")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Include raw upstream data and error details.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Print the result as JSON instead of a table.",
    )
    return parser.parse_args(argv)


def _print_result(console: Console, result: NormalizedWeatherResult) -> None:
    table = Table(title=f"Weather for {result.postal_code}")
    table.add_column("Field")
    table.add_column("Value", overflow="fold")

    rows = [
        ("Municipality", result.municipio),
        ("Province", result.provincia),
        ("Temperature", result.temperatura),
        ("Sky", result.descripcion),
        ("Humidity", result.humedad),
        ("Wind", result.viento),
        ("Pressure", result.presion),
    ]
    if result.temperaturas is not None:
        rows.append(("Max / Min", f"{result.temperaturas.maxima} / {result.temperaturas.minima}"))
    rows.append(("Source", result.data_source))
    if result.proxy_info is not None:
        rows.append(("Transport", result.proxy_info.transport_kind))
    if result.processing_time:
        rows.append(("Upstream time", result.processing_time))
    for label, value in rows:
        table.add_row(label, value)
    console.print(table)
    if result.note:
        console.print(f"[yellow]{escape(result.note)}[/yellow]")
    if result.error_details:
        console.print(f"Details: {escape(result.error_details)}")


def main(argv: Sequence[str] | None = None) -> int:
    """Run a single lookup."""
    args = parse_args(argv)
    logger = setup_logger()
    console = Console()
    request_id = uuid.uuid4().hex[:8]

    try:
        settings = load_settings()
    except ConfigError as exc:
        logger.error("Configuration failure: %s", exc)
        return 2

    fetcher = WeatherFetcher(settings, ProxyConfig.from_settings(settings), logger)
    try:
        result = fetcher.get_weather(
            args.postal_code, verbose=args.verbose, request_id=request_id
        )
    except WeatherLookupError as exc:
        console.print(f"[red]{escape(exc.message)}[/red]")
        if exc.suggestion:
            console.print(escape(exc.suggestion))
        if args.verbose and exc.details:
            console.print(f"Details: {escape(exc.details)}")
        return EXIT_CODES.get(exc.http_status, 1)

    if args.as_json:
        console.print_json(json.dumps(result.to_payload(), ensure_ascii=False))
    else:
        _print_result(console, result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
