"""Status transitions and the two-phase self-destruct protocol.

Legal transitions, by current status:

    Available       -> Deployed, Decommissioned, Destroyed
    Deployed        -> Decommissioned, Destroyed
    Decommissioned  -> (terminal)
    Destroyed       -> (terminal)

Moving to ``Destroyed`` never goes through the status-update endpoint. It
runs a per-gadget state machine instead:

    Idle --request_destruction--> CodeRequested --confirm--> Confirming
      ^                              |    ^                      |
      |                              |    +------ rejected ------+
      +----------- cancel -----------+                           |
      +------------------------- accepted -----------------------+

The confirmation code is issued and checked by the inventory service only.
The engine relays whatever the operator typed and never submits the issued
code on its own. Idle is represented by the absence of a
``PendingDestruction`` for the gadget.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum

from gadget_console.errors import (
    DestructionInProgress,
    GadgetConsoleError,
    NoPendingDestruction,
    ServerRejection,
    TransitionRejected,
)
from gadget_console.logging import get_logger
from gadget_console.repository import GadgetRepository
from gadget_console.types import Gadget, GadgetStatus

logger = get_logger(__name__)

CONFIRMATION_REJECTED_MESSAGE = "Self-destruct confirmation rejected"
CODE_REQUIRED_MESSAGE = "Enter the confirmation code"


def allowed_targets(status: GadgetStatus) -> tuple[GadgetStatus, ...]:
    """Return the statuses an operator may move a gadget to from ``status``.

    Args:
        status: Current gadget status.

    Returns:
        Allowed targets in display order. Empty for terminal statuses.
    """
    match status:
        case GadgetStatus.AVAILABLE:
            return (GadgetStatus.DEPLOYED, GadgetStatus.DECOMMISSIONED, GadgetStatus.DESTROYED)
        case GadgetStatus.DEPLOYED:
            return (GadgetStatus.DECOMMISSIONED, GadgetStatus.DESTROYED)
        case GadgetStatus.DECOMMISSIONED:
            return ()
        case GadgetStatus.DESTROYED:
            return ()


def is_terminal(status: GadgetStatus) -> bool:
    """Check if no transitions are offered from ``status``."""
    return not allowed_targets(status)


def can_transition(current: GadgetStatus, target: GadgetStatus) -> bool:
    """Check if ``target`` is offered from ``current``."""
    return target in allowed_targets(current)


class DestructionPhase(StrEnum):
    """Phase of a pending self-destruct. Idle has no record at all."""

    CODE_REQUESTED = "code_requested"
    CONFIRMING = "confirming"


@dataclass
class PendingDestruction:
    """A self-destruct awaiting operator confirmation.

    Attributes:
        gadget_id: The gadget targeted for destruction.
        issued_code: Code returned by the service for this request cycle.
        entered_code: What the operator has typed so far.
        phase: CODE_REQUESTED while waiting for input, CONFIRMING while the
            code is being checked by the service.
        last_error: Message from the most recent rejected confirmation.
        generation: Per-gadget request counter, used to drop superseded codes.
    """

    gadget_id: str
    issued_code: str
    entered_code: str = ""
    phase: DestructionPhase = DestructionPhase.CODE_REQUESTED
    last_error: str | None = None
    generation: int = 0


class TransitionEngine:
    """Drives status changes and the self-destruct protocol.

    Holds at most one PendingDestruction per gadget. All methods run on the
    event loop; state is only touched between awaits, so no lock is needed.
    """

    def __init__(self, repository: GadgetRepository) -> None:
        """Initialize the engine.

        Args:
            repository: Inventory client used for every server call.
        """
        self._repository = repository
        self._pending: dict[str, PendingDestruction] = {}
        # Number of destruction requests started per gadget
        self._generations: dict[str, int] = {}

    async def request_transition(
        self, gadget: Gadget, target: GadgetStatus
    ) -> PendingDestruction | None:
        """Request that ``gadget`` move to ``target``.

        Args:
            gadget: The gadget as last fetched from the service.
            target: Requested status.

        Returns:
            The new PendingDestruction when ``target`` is Destroyed, otherwise
            None. A None return does not mean the status changed; callers
            re-fetch to learn the result.

        Raises:
            TransitionRejected: If ``target`` is not offered from the gadget's
                status, or the service refuses the change.
        """
        ctx_logger = logger.with_context(
            operation="transition", gadget_id=gadget.id, status=target.value
        )
        if not can_transition(gadget.status, target):
            ctx_logger.warning("Refusing %s -> %s", gadget.status.value, target.value)
            raise TransitionRejected(
                f"Cannot move {gadget.name or gadget.id} from {gadget.status.value} "
                f"to {target.value}",
                gadget_id=gadget.id,
            )

        if target is GadgetStatus.DESTROYED:
            return await self.request_destruction(gadget.id)

        try:
            await self._repository.update_status(gadget.id, target)
        except ServerRejection as e:
            ctx_logger.warning("Status change rejected: %s", e.message)
            raise TransitionRejected(
                e.server_message or f"Failed to update gadget to {target.value}",
                gadget_id=gadget.id,
                status_code=e.status_code,
            ) from e

        ctx_logger.info("Status change accepted")
        return None

    async def request_destruction(self, gadget_id: str) -> PendingDestruction:
        """Idle -> CodeRequested: have the service issue a fresh code.

        A request for a gadget that already has a pending record supersedes
        it. When two requests for the same gadget overlap, a response from an
        older request never replaces the code from a newer one.

        Args:
            gadget_id: Gadget to destroy.

        Returns:
            The PendingDestruction now current for the gadget.

        Raises:
            DestructionInProgress: If a confirmation for the gadget is in
                flight, either before the request or once the code arrives.
            GadgetConsoleError: If the service does not issue a code. Any
                existing pending record is left as it was.
        """
        self._refuse_while_confirming(gadget_id)
        generation = self._generations.get(gadget_id, 0) + 1
        self._generations[gadget_id] = generation

        code = await self._repository.request_destruction(gadget_id)

        self._refuse_while_confirming(gadget_id)
        current = self._pending.get(gadget_id)
        if current is not None and current.generation > generation:
            logger.info(
                "Discarding confirmation code from superseded request",
                extra={"operation": "request_destruction", "gadget_id": gadget_id},
            )
            return current

        pending = PendingDestruction(
            gadget_id=gadget_id, issued_code=code, generation=generation
        )
        self._pending[gadget_id] = pending
        logger.info(
            "Confirmation code issued",
            extra={"operation": "request_destruction", "gadget_id": gadget_id},
        )
        return pending

    def _refuse_while_confirming(self, gadget_id: str) -> None:
        current = self._pending.get(gadget_id)
        if current is not None and current.phase is DestructionPhase.CONFIRMING:
            raise DestructionInProgress(gadget_id)

    def set_entered_code(self, gadget_id: str, code: str) -> None:
        """Record what the operator has typed into the confirmation prompt.

        Raises:
            NoPendingDestruction: If no destruction is pending for the gadget.
        """
        pending = self._pending.get(gadget_id)
        if pending is None:
            raise NoPendingDestruction(gadget_id)
        pending.entered_code = code

    async def confirm_destruction(self, gadget_id: str, code: str | None = None) -> None:
        """CodeRequested -> Confirming -> Idle or back to CodeRequested.

        Args:
            gadget_id: Gadget whose destruction is pending.
            code: Operator-entered code. Defaults to the recorded entered code.

        Raises:
            NoPendingDestruction: If nothing is pending for the gadget.
            DestructionInProgress: If a confirmation is already in flight.
            TransitionRejected: If the code is empty or the service rejects it.
                The pending record keeps its issued code and gets ``last_error``.
            NetworkFailure: If the service could not be reached.
        """
        pending = self._pending.get(gadget_id)
        if pending is None:
            raise NoPendingDestruction(gadget_id)
        if pending.phase is DestructionPhase.CONFIRMING:
            raise DestructionInProgress(gadget_id)

        entered = (code if code is not None else pending.entered_code).strip()
        if not entered:
            pending.last_error = CODE_REQUIRED_MESSAGE
            raise TransitionRejected(CODE_REQUIRED_MESSAGE, gadget_id=gadget_id)

        pending.entered_code = entered
        pending.phase = DestructionPhase.CONFIRMING
        pending.last_error = None

        succeeded = False
        try:
            await self._repository.confirm_destruction(gadget_id, entered)
            succeeded = True
        except ServerRejection as e:
            message = e.server_message or CONFIRMATION_REJECTED_MESSAGE
            if self._pending.get(gadget_id) is pending:
                pending.entered_code = ""
                pending.last_error = message
            logger.warning(
                "Self-destruct confirmation rejected (status %s)",
                e.status_code,
                extra={"operation": "confirm_destruction", "gadget_id": gadget_id},
            )
            raise TransitionRejected(message, gadget_id=gadget_id, status_code=e.status_code) from e
        except GadgetConsoleError as e:
            if self._pending.get(gadget_id) is pending:
                pending.last_error = e.message
            raise
        finally:
            if not succeeded and self._pending.get(gadget_id) is pending:
                pending.phase = DestructionPhase.CODE_REQUESTED

        # A destroyed gadget has no prompt, whichever record is current
        self._pending.pop(gadget_id, None)
        logger.info(
            "Self-destruct confirmed",
            extra={"operation": "confirm_destruction", "gadget_id": gadget_id},
        )

    def cancel_destruction(self, gadget_id: str) -> bool:
        """CodeRequested -> Idle without contacting the service.

        Returns:
            True if a pending record was discarded, False if none existed.
        """
        pending = self._pending.pop(gadget_id, None)
        if pending is None:
            return False
        logger.info(
            "Self-destruct cancelled",
            extra={"operation": "cancel_destruction", "gadget_id": gadget_id},
        )
        return True

    def get_pending(self, gadget_id: str) -> PendingDestruction | None:
        """Return a copy of the pending record for a gadget, if any."""
        pending = self._pending.get(gadget_id)
        return replace(pending) if pending is not None else None

    def pending_destructions(self) -> list[PendingDestruction]:
        """Return copies of all pending records."""
        return [replace(p) for p in self._pending.values()]

    def clear(self) -> None:
        """Drop every pending record (session boundary)."""
        self._pending.clear()


__all__ = [
    "DestructionPhase",
    "PendingDestruction",
    "TransitionEngine",
    "allowed_targets",
    "can_transition",
    "is_terminal",
]
