"""Command-line interface argument parsing for the Gadget Console.

This module provides the CLI argument parser that handles:
- Inventory service URL override
- Console bind host and port
- Log level override
- Session file location
- Environment file path
"""

from __future__ import annotations

import argparse
from pathlib import Path


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: Optional list of arguments to parse. If None, uses sys.argv.

    Returns:
        Parsed arguments namespace with the following attributes:
        - api_url: Inventory service base URL
        - host: Console bind host
        - port: Console bind port
        - log_level: Logging level
        - session_file: Path to the persisted session file
        - env_file: Path to .env file
    """
    parser = argparse.ArgumentParser(
        description="Gadget Console - browser console for the gadget inventory service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--api-url",
        default=None,
        help="Inventory service base URL (overrides GADGET_CONSOLE_API_URL)",
    )

    parser.add_argument(
        "--host",
        default=None,
        help="Host for the console to bind (overrides GADGET_CONSOLE_HOST)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the console to listen on (overrides GADGET_CONSOLE_PORT)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (overrides GADGET_CONSOLE_LOG_LEVEL)",
    )

    parser.add_argument(
        "--session-file",
        type=Path,
        default=None,
        help="Where to persist the login token (default: ~/.gadget-console/session.json)",
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: ./.env)",
    )

    return parser.parse_args(args)


__all__ = ["parse_args"]
