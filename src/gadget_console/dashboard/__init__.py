"""Web console for the gadget inventory.

This module provides the browser-facing side of the console: a FastAPI
application factory, route handlers, request models, and Jinja2 templates.
Every route delegates to ``DashboardController``; nothing here holds state
of its own beyond CSRF tokens.

Key components:
- create_app: Application factory wired to an AppContext
- create_routes: Router factory bound to a DashboardController
"""

from gadget_console.dashboard.app import create_app
from gadget_console.dashboard.routes import create_routes

# NOTE: Update this list when adding new exports to this module.
__all__ = [
    "create_app",
    "create_routes",
]
