"""FastAPI application factory for the console.

The application renders Jinja2 pages through a ``PageRenderer`` stored on
``app.state.pages`` and serves the routes in
``gadget_console.dashboard.routes``. Its lifespan runs the application
context's startup (credential restore and first fetch) and shutdown.

Custom Jinja2 filters:
    format_probability: Formats the mission success metric.
        Example: 87.5 -> "87.5%", 90.0 -> "90%", None -> "n/a"
    action_label: Button label for moving a gadget to a target status.
        Example: GadgetStatus.DESTROYED -> "Self-Destruct"
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI
from fastapi.responses import HTMLResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape

from gadget_console.dashboard.routes import create_routes
from gadget_console.types import GadgetStatus

if TYPE_CHECKING:
    from gadget_console.bootstrap import AppContext

TEMPLATES_DIR = Path(__file__).parent / "templates"


def format_probability(value: float | None) -> str:
    """Format a mission success probability for display.

    Args:
        value: Percentage from the service, or None.

    Returns:
        The percentage with a trailing "%", without a redundant ".0".

    Examples:
        >>> format_probability(87.5)
        '87.5%'
        >>> format_probability(90.0)
        '90%'
        >>> format_probability(None)
        'n/a'
    """
    if value is None:
        return "n/a"
    if float(value).is_integer():
        return f"{int(value)}%"
    return f"{value:g}%"


def action_label(target: GadgetStatus) -> str:
    """Return the button label for a transition to ``target``."""
    match target:
        case GadgetStatus.AVAILABLE:
            return "Make Available"
        case GadgetStatus.DEPLOYED:
            return "Deploy"
        case GadgetStatus.DECOMMISSIONED:
            return "Decommission"
        case GadgetStatus.DESTROYED:
            return "Self-Destruct"


class PageRenderer:
    """Renders console pages from an async Jinja2 environment."""

    def __init__(self, templates_dir: Path) -> None:
        """Build the template environment and register the console filters.

        Args:
            templates_dir: Directory holding the page templates.
        """
        # Gadget names and server error text are operator/server supplied
        self._env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            enable_async=True,
        )
        self._env.filters["format_probability"] = format_probability
        self._env.filters["action_label"] = action_label

    async def render(self, name: str, **context: Any) -> HTMLResponse:
        """Render template ``name`` with ``context`` into an HTML response."""
        template = self._env.get_template(name)
        return HTMLResponse(content=await template.render_async(**context))


def create_app(context: AppContext, *, templates_dir: Path | None = None) -> FastAPI:
    """Create and configure the FastAPI console application.

    Args:
        context: The bootstrapped application context.
        templates_dir: Optional custom templates directory. Defaults to
            the templates/ directory within this package.

    Returns:
        A configured FastAPI application ready to serve the console.
    """

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        await context.start()
        try:
            yield
        finally:
            await context.close()

    app = FastAPI(
        title="Gadget Console",
        description="Operator console for the gadget inventory service",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.pages = PageRenderer(templates_dir or TEMPLATES_DIR)
    app.state.context = context
    app.include_router(create_routes(context.controller))
    return app
