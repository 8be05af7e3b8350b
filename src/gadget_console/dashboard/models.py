"""Pydantic request/response models for console API endpoints.

Models are grouped by feature:

- Session models: CredentialsRequest
- Inventory models: FilterRequest, CreateGadgetRequest, TransitionRequest
- Self-destruct models: EnterCodeRequest, ConfirmDestructionRequest
- Response models: ActionResponse
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from gadget_console.types import GadgetStatusLiteral, StatusFilterLiteral

# NOTE: Update this list when adding new models to this module.
__all__: list[str] = [
    "CredentialsRequest",
    "FilterRequest",
    "CreateGadgetRequest",
    "TransitionRequest",
    "EnterCodeRequest",
    "ConfirmDestructionRequest",
    "ActionResponse",
]


class CredentialsRequest(BaseModel):
    """Request model for login and registration."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1)
    # Passwords are relayed verbatim
    password: str = Field(min_length=1, json_schema_extra={"format": "password"})


class FilterRequest(BaseModel):
    """Request model for changing the status filter."""

    status: StatusFilterLiteral


class CreateGadgetRequest(BaseModel):
    """Request model for creating a gadget.

    Blank names are rejected by the controller, not here, so the operator
    sees the same message from every entry point.
    """

    name: str


class TransitionRequest(BaseModel):
    """Request model for a status transition.

    A ``Destroyed`` target opens the self-destruct prompt.
    """

    status: GadgetStatusLiteral


class EnterCodeRequest(BaseModel):
    """Request model for recording typed confirmation input."""

    code: str


class ConfirmDestructionRequest(BaseModel):
    """Request model for confirming a self-destruct.

    ``code`` is what the operator typed. When omitted, the last recorded
    entry is used.
    """

    code: str | None = None


class ActionResponse(BaseModel):
    """Response model for every state-changing endpoint."""

    succeeded: bool
    refreshed: bool
    message: str | None
    state: dict[str, Any]
