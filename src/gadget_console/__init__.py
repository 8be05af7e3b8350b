"""Gadget Console - operator console for the gadget inventory service."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("gadget-console")
except PackageNotFoundError:
    # Package is not installed (e.g., running from source without pip install)
    __version__ = "0.0.0.dev0"

# Re-export core public API
from gadget_console.app import main
from gadget_console.controller import DashboardController
from gadget_console.transitions import TransitionEngine

# NOTE: Update this list when adding new exports to this module.
__all__ = [
    "__version__",
    "DashboardController",
    "TransitionEngine",
    "main",
]
