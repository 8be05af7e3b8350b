"""Type definitions and enums for the gadget console.

This module provides the closed status enumeration, the status filter used
for server-side list queries, and the ``Gadget`` record parsed from the
inventory service.

Usage:
    from gadget_console.types import GadgetStatus, StatusFilter

    # GadgetStatus inherits from StrEnum, so direct comparison works
    if gadget.status == GadgetStatus.DEPLOYED:
        ...

    GadgetStatus.is_valid("Available")  # True
    StatusFilter.ALL.query_value  # None (no ?status= constraint)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Literal

from gadget_console.errors import ValidationError


class GadgetStatus(StrEnum):
    """Lifecycle status of a gadget.

    Values match the inventory service's wire format exactly.

    Values:
        AVAILABLE: Initial state, set server-side at creation ("Available")
        DEPLOYED: Out in the field ("Deployed")
        DESTROYED: Terminal, reached only through the destroy protocol ("Destroyed")
        DECOMMISSIONED: Terminal ("Decommissioned")
    """

    AVAILABLE = "Available"
    DEPLOYED = "Deployed"
    DESTROYED = "Destroyed"
    DECOMMISSIONED = "Decommissioned"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Check if a string value is a valid gadget status.

        Args:
            value: The string value to validate.

        Returns:
            True if the value matches a valid status.
        """
        return value in cls._value2member_map_

    @classmethod
    def values(cls) -> frozenset[str]:
        """Return all valid status string values as a frozenset."""
        return frozenset(member.value for member in cls)


class StatusFilter(StrEnum):
    """Filter applied to the gadget list.

    ``ALL`` is the only value that is not also a ``GadgetStatus``; it means
    "send no status constraint".
    """

    ALL = "All"
    AVAILABLE = "Available"
    DEPLOYED = "Deployed"
    DESTROYED = "Destroyed"
    DECOMMISSIONED = "Decommissioned"

    @property
    def query_value(self) -> str | None:
        """Value for the ``status`` query parameter, or None for ``ALL``."""
        if self is StatusFilter.ALL:
            return None
        return self.value

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Check if a string value is a valid filter."""
        return value in cls._value2member_map_


# Keep in sync with GadgetStatus; used by pydantic request models.
GadgetStatusLiteral = Literal["Available", "Deployed", "Destroyed", "Decommissioned"]
StatusFilterLiteral = Literal["All", "Available", "Deployed", "Destroyed", "Decommissioned"]


@dataclass(frozen=True)
class StatusStyle:
    """Display label and badge colour classes for a status."""

    label: str
    css_class: str


def status_style(status: GadgetStatus) -> StatusStyle:
    """Return the badge style for a status.

    Args:
        status: The gadget status.

    Returns:
        StatusStyle for the status. Every member of GadgetStatus is covered.
    """
    match status:
        case GadgetStatus.AVAILABLE:
            return StatusStyle(label="Available", css_class="status-available")
        case GadgetStatus.DEPLOYED:
            return StatusStyle(label="Deployed", css_class="status-deployed")
        case GadgetStatus.DESTROYED:
            return StatusStyle(label="Destroyed", css_class="status-destroyed")
        case GadgetStatus.DECOMMISSIONED:
            return StatusStyle(label="Decommissioned", css_class="status-decommissioned")


@dataclass(frozen=True)
class Gadget:
    """A gadget as reported by the inventory service.

    All fields except ``name`` are server-assigned. The console never edits a
    Gadget in place; a fresh list fetch replaces the whole collection.
    """

    id: str
    name: str
    codename: str
    status: GadgetStatus
    mission_success_probability: float | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> Gadget:
        """Create a Gadget from inventory service response data.

        Args:
            data: Raw gadget object from the service.

        Returns:
            Gadget instance.

        Raises:
            ValidationError: If the id is missing or the status is unknown.
        """
        if not isinstance(data, dict):
            raise ValidationError(f"Expected a gadget object, got {type(data).__name__}")

        gadget_id = data.get("id")
        if gadget_id is None or gadget_id == "":
            raise ValidationError("Gadget record is missing 'id'")

        raw_status = data.get("status", "")
        if not isinstance(raw_status, str) or not GadgetStatus.is_valid(raw_status):
            raise ValidationError(
                f"Gadget {gadget_id} has unknown status {raw_status!r}. "
                f"Valid values: {', '.join(sorted(GadgetStatus.values()))}"
            )

        probability = data.get("missionSuccessProbability")
        if probability is not None:
            try:
                probability = float(probability)
            except (TypeError, ValueError):
                raise ValidationError(
                    f"Gadget {gadget_id} has non-numeric missionSuccessProbability "
                    f"{probability!r}"
                ) from None

        return cls(
            id=str(gadget_id),
            name=str(data.get("name", "")),
            codename=str(data.get("codename", "")),
            status=GadgetStatus(raw_status),
            mission_success_probability=probability,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire representation."""
        return {
            "id": self.id,
            "name": self.name,
            "codename": self.codename,
            "status": self.status.value,
            "missionSuccessProbability": self.mission_success_probability,
        }
