"""Abstract interface to the gadget inventory service."""

from __future__ import annotations

from abc import ABC, abstractmethod

from gadget_console.types import Gadget, GadgetStatus


class GadgetRepository(ABC):
    """Abstract interface for inventory operations.

    This allows swapping the HTTP client for a fake in tests. Implementations
    raise the errors in ``gadget_console.errors``; they never return partial
    results.
    """

    @abstractmethod
    async def register(self, username: str, password: str) -> str:
        """Create an account and return its bearer token."""
        pass

    @abstractmethod
    async def login(self, username: str, password: str) -> str:
        """Authenticate and return a bearer token."""
        pass

    @abstractmethod
    async def list_gadgets(self, status: GadgetStatus | None = None) -> list[Gadget]:
        """Fetch gadgets, optionally filtered server-side by status."""
        pass

    @abstractmethod
    async def create_gadget(self, name: str) -> None:
        """Create a gadget named ``name``."""
        pass

    @abstractmethod
    async def update_status(self, gadget_id: str, status: GadgetStatus) -> None:
        """Move a gadget to a non-destroyed status."""
        pass

    @abstractmethod
    async def request_destruction(self, gadget_id: str) -> str:
        """Have the service issue a fresh confirmation code for ``gadget_id``."""
        pass

    @abstractmethod
    async def confirm_destruction(self, gadget_id: str, confirmation_code: str) -> None:
        """Submit an operator-entered confirmation code."""
        pass


__all__ = ["GadgetRepository"]
