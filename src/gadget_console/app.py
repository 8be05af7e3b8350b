"""Core application runner for the Gadget Console.

Parses arguments, bootstraps the application context, and serves the web
console with uvicorn in the foreground. The context's startup (credential
restore and first fetch) and shutdown (closing the HTTP client) run inside
the FastAPI lifespan, on the same event loop as request handling.
"""

from __future__ import annotations

import uvicorn

from gadget_console.bootstrap import bootstrap
from gadget_console.cli import parse_args
from gadget_console.dashboard import create_app
from gadget_console.logging import get_logger

logger = get_logger(__name__)


def main(args: list[str] | None = None) -> int:
    """Main entry point for the application.

    Args:
        args: Optional list of command-line arguments.

    Returns:
        Exit code for the application.
    """
    parsed = parse_args(args)
    context = bootstrap(parsed)
    config = context.config

    app = create_app(context)

    logger.info("Gadget console listening on http://%s:%s", config.host, config.port)
    try:
        uvicorn.run(
            app,
            host=config.host,
            port=config.port,
            log_level="warning",
            access_log=False,
        )
    except OSError as e:
        logger.error("Could not start console on %s:%s: %s", config.host, config.port, e)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


__all__ = ["main"]
