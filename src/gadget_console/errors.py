"""Exception types for the gadget console.

Every failure the console can hit while talking to the inventory service is
one of these. The dashboard controller catches ``GadgetConsoleError`` at its
boundary and turns it into a dismissible message; nothing here is allowed to
reach the web layer as an unhandled exception.

The taxonomy:
- AuthFailure: bad credentials at login/register
- NetworkFailure: transport-level failure, no response received
- ServerRejection: non-2xx response, with the server's ``error`` text if any
- RateLimitError: a ServerRejection raised once 429 retries are exhausted
- TransitionRejected: the server refused a status change or a destroy confirmation
- ValidationError: the server answered 2xx with a payload we cannot parse
- NoPendingDestruction / DestructionInProgress: local destroy-protocol misuse
"""

from __future__ import annotations


class GadgetConsoleError(Exception):
    """Base class for all console errors.

    Attributes:
        message: Human-readable message suitable for showing the operator.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthFailure(GadgetConsoleError):
    """Raised when login or registration is refused by the service."""

    pass


class NetworkFailure(GadgetConsoleError):
    """Raised when the request never produced a response (DNS, connect, timeout)."""

    pass


class ServerRejection(GadgetConsoleError):
    """Raised for a non-2xx response.

    Attributes:
        status_code: HTTP status returned by the service.
        server_message: The ``error`` field from the response body, if present.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        server_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.server_message = server_message


class RateLimitError(ServerRejection):
    """Raised when rate limit is exceeded and all retries are exhausted."""

    pass


class TransitionRejected(GadgetConsoleError):
    """Raised when the service refuses a status change or destroy confirmation.

    Also raised locally when a transition is not offered from the gadget's
    current status, in which case ``status_code`` is None.

    Attributes:
        gadget_id: The gadget the transition targeted.
        status_code: HTTP status, or None for a locally refused transition.
    """

    def __init__(
        self,
        message: str,
        gadget_id: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.gadget_id = gadget_id
        self.status_code = status_code


class ValidationError(GadgetConsoleError):
    """Raised when data from the inventory service fails validation.

    Example:
        >>> raise ValidationError("Gadget record is missing 'id'")
    """

    pass


class NoPendingDestruction(GadgetConsoleError):
    """Raised when confirming a destruction that was never requested or was cancelled."""

    def __init__(self, gadget_id: str) -> None:
        super().__init__(f"No self-destruct sequence is pending for gadget {gadget_id}")
        self.gadget_id = gadget_id


class DestructionInProgress(GadgetConsoleError):
    """Raised when a confirmation is in flight and another confirm or destroy request arrives."""

    def __init__(self, gadget_id: str) -> None:
        super().__init__(f"A self-destruct confirmation is already in progress for {gadget_id}")
        self.gadget_id = gadget_id


__all__ = [
    "AuthFailure",
    "DestructionInProgress",
    "GadgetConsoleError",
    "NetworkFailure",
    "NoPendingDestruction",
    "RateLimitError",
    "ServerRejection",
    "TransitionRejected",
    "ValidationError",
]
