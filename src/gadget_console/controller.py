"""Dashboard controller: the console's in-memory view of the inventory.

The controller owns the gadget collection, the active status filter, and the
loading/error flags. It never edits a gadget in place. Every successful
mutation (create, status change, confirmed self-destruct) is followed by a
full re-fetch, and the fetched list replaces the collection wholesale.

All ``GadgetConsoleError`` failures stop here. They are logged and stored as
a single human-readable ``error`` that the operator can dismiss.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from gadget_console.errors import (
    AuthFailure,
    GadgetConsoleError,
    NetworkFailure,
    ServerRejection,
    TransitionRejected,
)
from gadget_console.logging import get_logger
from gadget_console.repository import GadgetRepository
from gadget_console.session import SessionStore
from gadget_console.transitions import PendingDestruction, TransitionEngine, allowed_targets
from gadget_console.types import Gadget, GadgetStatus, StatusFilter, StatusStyle, status_style

logger = get_logger(__name__)


@dataclass(frozen=True)
class MutationResult:
    """Outcome of a controller operation.

    Post-condition: when ``succeeded`` is True for a create, status change or
    confirmed self-destruct, the collection was discarded and re-fetched;
    ``refreshed`` says whether that re-fetch itself succeeded.

    Attributes:
        succeeded: Whether the requested operation was accepted.
        refreshed: Whether the collection was reloaded afterwards.
        message: Error text when ``succeeded`` is False.
        pending: The pending self-destruct created by a destroy request.
    """

    succeeded: bool
    refreshed: bool = False
    message: str | None = None
    pending: PendingDestruction | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "succeeded": self.succeeded,
            "refreshed": self.refreshed,
            "message": self.message,
            "pending_gadget_id": self.pending.gadget_id if self.pending else None,
        }


@dataclass(frozen=True)
class GadgetView:
    """A gadget plus what the console offers for it."""

    gadget: Gadget
    allowed_targets: tuple[GadgetStatus, ...]
    style: StatusStyle
    pending: PendingDestruction | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            **self.gadget.to_dict(),
            "allowedTargets": [t.value for t in self.allowed_targets],
            "pendingDestruction": _pending_to_dict(self.pending) if self.pending else None,
        }


@dataclass(frozen=True)
class ConsoleState:
    """Immutable snapshot of the controller for rendering."""

    authenticated: bool
    status_filter: StatusFilter
    loading: bool
    error: str | None
    gadgets: tuple[GadgetView, ...] = ()
    pending_destructions: tuple[PendingDestruction, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "authenticated": self.authenticated,
            "filter": self.status_filter.value,
            "loading": self.loading,
            "error": self.error,
            "gadgets": [view.to_dict() for view in self.gadgets],
            "pendingDestructions": [_pending_to_dict(p) for p in self.pending_destructions],
        }


def _pending_to_dict(pending: PendingDestruction) -> dict[str, Any]:
    return {
        "gadgetId": pending.gadget_id,
        "issuedCode": pending.issued_code,
        "enteredCode": pending.entered_code,
        "phase": pending.phase.value,
        "error": pending.last_error,
    }


def _describe(error: GadgetConsoleError, action: str) -> str:
    """Build the operator-facing message for a failed ``action``.

    Auth and transition failures already carry operator-facing text; the
    rest are prefixed with the action that failed.
    """
    if isinstance(error, (AuthFailure, TransitionRejected)):
        return error.message
    return f"{action}: {error.message}"


def _contacted_server(error: GadgetConsoleError) -> bool:
    """Check if the failed call may have changed server state."""
    if isinstance(error, (ServerRejection, NetworkFailure)):
        return True
    return isinstance(error, TransitionRejected) and error.status_code is not None


class DashboardController:
    """Orchestrates the repository client and transition engine.

    Session boundaries bump an internal epoch. Any response that arrives for
    an older epoch is dropped, so a fetch started before logout can never
    repopulate the collection for the next account.
    """

    def __init__(
        self,
        session: SessionStore,
        repository: GadgetRepository,
        engine: TransitionEngine | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            session: Credential store.
            repository: Inventory client.
            engine: Transition engine. Defaults to one built on ``repository``.
        """
        self._session = session
        self._repository = repository
        self._engine = engine or TransitionEngine(repository)
        self._gadgets: list[Gadget] = []
        self._filter = StatusFilter.ALL
        self._error: str | None = None
        self._in_flight = 0
        self._epoch = 0

    @property
    def engine(self) -> TransitionEngine:
        """Get the transition engine."""
        return self._engine

    @property
    def gadgets(self) -> list[Gadget]:
        """Current collection, in service order."""
        return list(self._gadgets)

    @property
    def status_filter(self) -> StatusFilter:
        """Active status filter."""
        return self._filter

    @property
    def error(self) -> str | None:
        """Current error message, if any."""
        return self._error

    @property
    def loading(self) -> bool:
        """Check if any service call is in flight."""
        return self._in_flight > 0

    @property
    def authenticated(self) -> bool:
        """Check if a session credential is present."""
        return self._session.is_authenticated

    @asynccontextmanager
    async def _busy(self) -> AsyncIterator[None]:
        self._in_flight += 1
        try:
            yield
        finally:
            self._in_flight -= 1

    def _fail(
        self, error: GadgetConsoleError, action: str, epoch: int | None = None
    ) -> MutationResult:
        message = _describe(error, action)
        # An error from an ended session is not shown to the next one
        if epoch is None or epoch == self._epoch:
            self._error = message
        logger.warning("%s", message, extra={"operation": action})
        return MutationResult(succeeded=False, message=message)

    def _find(self, gadget_id: str) -> Gadget | None:
        for gadget in self._gadgets:
            if gadget.id == gadget_id:
                return gadget
        return None

    # Session lifecycle

    async def restore(self) -> bool:
        """Restore a persisted credential and, if present, fetch immediately.

        An expired credential is not pre-validated; it surfaces as a fetch
        error.

        Returns:
            True if a credential was restored.
        """
        token = self._session.load()
        if token is None:
            logger.info("No saved session; login required")
            return False
        logger.info("Restored saved session")
        await self.refresh()
        return True

    def _start_session(self, token: str) -> None:
        self._epoch += 1
        self._gadgets = []
        self._engine.clear()
        self._session.set(token)
        self._error = None

    async def login(self, username: str, password: str) -> MutationResult:
        """Log in, store the credential, and fetch the inventory."""
        epoch = self._epoch
        try:
            async with self._busy():
                token = await self._repository.login(username, password)
        except GadgetConsoleError as e:
            return self._fail(e, "Login failed", epoch)
        self._start_session(token)
        refreshed = await self.refresh()
        return MutationResult(succeeded=True, refreshed=refreshed)

    async def register(self, username: str, password: str) -> MutationResult:
        """Register, which logs in exactly like ``login``."""
        epoch = self._epoch
        try:
            async with self._busy():
                token = await self._repository.register(username, password)
        except GadgetConsoleError as e:
            return self._fail(e, "Registration failed", epoch)
        self._start_session(token)
        refreshed = await self.refresh()
        return MutationResult(succeeded=True, refreshed=refreshed)

    def logout(self) -> MutationResult:
        """Clear the credential, the collection and every pending self-destruct."""
        self._epoch += 1
        self._session.clear()
        self._gadgets = []
        self._engine.clear()
        self._filter = StatusFilter.ALL
        self._error = None
        logger.info("Logged out")
        return MutationResult(succeeded=True)

    # Collection

    async def refresh(self) -> bool:
        """Replace the collection with a fresh fetch under the active filter.

        A failed fetch keeps the previous collection. A fetch whose session or
        filter changed while it was in flight is discarded.

        Returns:
            True if the collection was replaced.
        """
        if not self._session.is_authenticated:
            return False

        epoch = self._epoch
        status_filter = self._filter
        query = status_filter.query_value
        try:
            async with self._busy():
                gadgets = await self._repository.list_gadgets(
                    GadgetStatus(query) if query is not None else None
                )
        except GadgetConsoleError as e:
            self._fail(e, "Failed to fetch gadgets", epoch)
            return False

        if epoch != self._epoch or status_filter is not self._filter:
            logger.debug("Discarding stale gadget list (%s items)", len(gadgets))
            return False

        self._gadgets = gadgets
        return True

    async def set_filter(self, status_filter: StatusFilter | str) -> MutationResult:
        """Change the status filter and re-fetch with it as a query constraint."""
        if not isinstance(status_filter, StatusFilter):
            if not StatusFilter.is_valid(status_filter):
                self._error = f"Unknown status filter: {status_filter}"
                return MutationResult(succeeded=False, message=self._error)
            status_filter = StatusFilter(status_filter)
        self._filter = status_filter
        refreshed = await self.refresh()
        return MutationResult(
            succeeded=refreshed,
            refreshed=refreshed,
            message=None if refreshed else self._error,
        )

    async def create_gadget(self, name: str) -> MutationResult:
        """Create a gadget and re-fetch."""
        name = name.strip()
        if not name:
            self._error = "Gadget name is required"
            return MutationResult(succeeded=False, message=self._error)
        epoch = self._epoch
        try:
            async with self._busy():
                await self._repository.create_gadget(name)
        except GadgetConsoleError as e:
            return self._fail(e, "Failed to add gadget", epoch)
        refreshed = await self.refresh()
        return MutationResult(succeeded=True, refreshed=refreshed)

    # Transitions

    async def transition(self, gadget_id: str, target: GadgetStatus | str) -> MutationResult:
        """Request a status change.

        A Destroyed target opens a self-destruct prompt instead of changing
        anything; the result carries the pending record and no re-fetch runs.
        """
        if not isinstance(target, GadgetStatus):
            if not GadgetStatus.is_valid(target):
                self._error = f"Unknown status: {target}"
                return MutationResult(succeeded=False, message=self._error)
            target = GadgetStatus(target)

        gadget = self._find(gadget_id)
        if gadget is None:
            self._error = f"Gadget {gadget_id} is not in the current list"
            return MutationResult(succeeded=False, message=self._error)

        epoch = self._epoch
        action = (
            "Failed to request self-destruct"
            if target is GadgetStatus.DESTROYED
            else "Failed to update gadget"
        )
        try:
            async with self._busy():
                pending = await self._engine.request_transition(gadget, target)
        except GadgetConsoleError as e:
            if target is not GadgetStatus.DESTROYED and _contacted_server(e):
                await self.refresh()
            return self._fail(e, action, epoch)

        if pending is not None:
            if epoch != self._epoch:
                self._engine.cancel_destruction(gadget_id)
                return MutationResult(succeeded=False, message="Session ended")
            return MutationResult(succeeded=True, pending=pending)

        refreshed = await self.refresh()
        return MutationResult(succeeded=True, refreshed=refreshed)

    async def request_destruction(self, gadget_id: str) -> MutationResult:
        """Open a self-destruct prompt for a gadget."""
        return await self.transition(gadget_id, GadgetStatus.DESTROYED)

    def enter_code(self, gadget_id: str, code: str) -> MutationResult:
        """Record operator input for a pending self-destruct."""
        try:
            self._engine.set_entered_code(gadget_id, code)
        except GadgetConsoleError as e:
            return self._fail(e, "Self-destruct failed")
        return MutationResult(succeeded=True)

    async def confirm_destruction(
        self, gadget_id: str, code: str | None = None
    ) -> MutationResult:
        """Submit the entered code; on success the collection is re-fetched."""
        epoch = self._epoch
        try:
            async with self._busy():
                await self._engine.confirm_destruction(gadget_id, code)
        except GadgetConsoleError as e:
            if isinstance(e, NetworkFailure):
                await self.refresh()
            return self._fail(e, "Self-destruct failed", epoch)
        refreshed = await self.refresh()
        return MutationResult(succeeded=True, refreshed=refreshed)

    def cancel_destruction(self, gadget_id: str) -> MutationResult:
        """Dismiss a self-destruct prompt. No service call is made."""
        return MutationResult(succeeded=self._engine.cancel_destruction(gadget_id))

    def dismiss_error(self) -> None:
        """Clear the current error message."""
        self._error = None

    def snapshot(self) -> ConsoleState:
        """Build an immutable view of the current state."""
        pending = {p.gadget_id: p for p in self._engine.pending_destructions()}
        views = tuple(
            GadgetView(
                gadget=gadget,
                allowed_targets=allowed_targets(gadget.status),
                style=status_style(gadget.status),
                pending=pending.get(gadget.id),
            )
            for gadget in self._gadgets
        )
        return ConsoleState(
            authenticated=self._session.is_authenticated,
            status_filter=self._filter,
            loading=self.loading,
            error=self._error,
            gadgets=views,
            pending_destructions=tuple(pending.values()),
        )


__all__ = [
    "ConsoleState",
    "DashboardController",
    "GadgetView",
    "MutationResult",
]
