"""Bootstrap and dependency wiring for the Gadget Console.

This module provides the startup and initialization logic, including:
- Configuration loading with CLI overrides
- Logging setup
- Session store, inventory client, transition engine and controller assembly

The bootstrap module acts as the composition root. Session and collection
state live in the ``AppContext`` it returns rather than in module globals.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from typing import Any

import httpx

from gadget_console.config import Config, load_config
from gadget_console.controller import DashboardController
from gadget_console.logging import get_logger, setup_logging
from gadget_console.rest_client import GadgetRestClient, RetryConfig
from gadget_console.session import SessionStore
from gadget_console.transitions import TransitionEngine

logger = get_logger(__name__)


class AppContext:
    """Container for all bootstrapped dependencies.

    Lifecycle:
        ``start()`` restores the persisted credential and, if one exists,
        fetches the inventory. ``close()`` releases the HTTP connection pool.
        Logout is a controller operation and does not end the context.
    """

    def __init__(
        self,
        config: Config,
        session: SessionStore,
        client: GadgetRestClient,
        controller: DashboardController,
    ) -> None:
        """Initialize the application context.

        Args:
            config: Application configuration.
            session: Persisted credential store.
            client: Inventory REST client.
            controller: Dashboard controller built on ``client``.
        """
        self.config = config
        self.session = session
        self.client = client
        self.controller = controller

    @property
    def engine(self) -> TransitionEngine:
        """Get the transition engine owned by the controller."""
        return self.controller.engine

    async def start(self) -> None:
        """Restore the saved session, fetching the inventory if logged in."""
        await self.controller.restore()

    async def close(self) -> None:
        """Close the inventory client."""
        await self.client.close()


def apply_cli_overrides(config: Config, parsed: argparse.Namespace) -> Config:
    """Apply CLI argument overrides to the configuration.

    Args:
        config: Base configuration loaded from environment.
        parsed: Parsed command-line arguments.

    Returns:
        New Config instance with CLI overrides applied.
    """
    overrides: dict[str, Any] = {}

    if parsed.api_url:
        overrides["api_url"] = parsed.api_url.rstrip("/")
    if parsed.host:
        overrides["host"] = parsed.host
    if parsed.port:
        overrides["port"] = parsed.port
    if parsed.log_level:
        overrides["log_level"] = parsed.log_level
    if parsed.session_file:
        overrides["session_file"] = parsed.session_file

    if overrides:
        return replace(config, **overrides)
    return config


def create_context(
    config: Config,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AppContext:
    """Wire the session store, client, engine and controller.

    Args:
        config: Application configuration.
        transport: Optional httpx transport for the inventory client.

    Returns:
        A ready AppContext. Nothing has been fetched yet.
    """
    session = SessionStore(config.resolved_session_file)
    client = GadgetRestClient(
        base_url=config.api_url,
        token_provider=lambda: session.token,
        timeout=httpx.Timeout(config.http_timeout, read=config.http_timeout * 3),
        retry_config=RetryConfig(max_retries=config.max_retries),
        transport=transport,
    )
    engine = TransitionEngine(client)
    controller = DashboardController(session, client, engine)
    return AppContext(config=config, session=session, client=client, controller=controller)


def bootstrap(parsed: argparse.Namespace) -> AppContext:
    """Load configuration, configure logging, and build the context.

    Args:
        parsed: Parsed command-line arguments.

    Returns:
        The application context.
    """
    config = load_config(parsed.env_file)
    config = apply_cli_overrides(config, parsed)

    setup_logging(config.log_level, json_format=config.log_json)

    logger.info("Using inventory service at %s", config.api_url)
    logger.debug("Session file: %s", config.resolved_session_file)

    return create_context(config)


__all__ = [
    "AppContext",
    "apply_cli_overrides",
    "bootstrap",
    "create_context",
]
