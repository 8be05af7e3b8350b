"""Shared pytest fixtures for Gadget Console tests.

``FakeGadgetRepository`` is an in-memory stand-in for the inventory service.
It issues and checks confirmation codes the same way the real service does,
records every call it receives, and can be told to fail the next call to a
given method::

    repo = FakeGadgetRepository()
    repo.fail_next["list_gadgets"] = NetworkFailure("List gadgets timed out")
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from gadget_console.bootstrap import AppContext
from gadget_console.config import Config
from gadget_console.controller import DashboardController
from gadget_console.errors import AuthFailure, GadgetConsoleError, ServerRejection
from gadget_console.repository import GadgetRepository
from gadget_console.session import SessionStore
from gadget_console.transitions import TransitionEngine
from gadget_console.types import Gadget, GadgetStatus

INVALID_CODE_MESSAGE = "Invalid confirmation code"


class FakeGadgetRepository(GadgetRepository):
    """In-memory inventory service.

    Attributes:
        calls: Every call as ``(method, args)`` in arrival order.
        fail_next: Method name to error raised by that method's next call.
        list_gate: When set, ``list_gadgets`` waits on it before answering.
    """

    def __init__(self, codes: Iterator[str] | None = None) -> None:
        self.accounts: dict[str, str] = {}
        self.records: list[dict[str, Any]] = []
        self.issued: dict[str, str] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.fail_next: dict[str, GadgetConsoleError] = {}
        self.list_gate: asyncio.Event | None = None
        self.closed = False
        self._codes = codes or (str(n) for n in range(4471, 10000))
        self._next_id = 1

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        error = self.fail_next.pop(method, None)
        if error is not None:
            raise error

    def calls_to(self, method: str) -> list[tuple[Any, ...]]:
        """Return the arguments of every call to ``method``."""
        return [args for name, args in self.calls if name == method]

    def add(
        self,
        name: str,
        status: GadgetStatus = GadgetStatus.AVAILABLE,
        probability: float = 87.5,
    ) -> str:
        """Seed a gadget directly and return its id."""
        gadget_id = f"g-{self._next_id}"
        self._next_id += 1
        self.records.append(
            {
                "id": gadget_id,
                "name": name,
                "codename": f"The {name}",
                "status": status.value,
                "missionSuccessProbability": probability,
            }
        )
        return gadget_id

    def status_of(self, gadget_id: str) -> GadgetStatus:
        """Return the server-side status of a gadget."""
        for record in self.records:
            if record["id"] == gadget_id:
                return GadgetStatus(record["status"])
        raise KeyError(gadget_id)

    def _find(self, gadget_id: str) -> dict[str, Any]:
        for record in self.records:
            if record["id"] == gadget_id:
                return record
        raise ServerRejection(
            "Gadget request failed with status 404: Gadget not found",
            404,
            "Gadget not found",
        )

    async def register(self, username: str, password: str) -> str:
        self._record("register", username, password)
        if username in self.accounts:
            raise AuthFailure("Username already exists")
        self.accounts[username] = password
        return f"token-{username}"

    async def login(self, username: str, password: str) -> str:
        self._record("login", username, password)
        if self.accounts.get(username) != password:
            raise AuthFailure("Invalid credentials")
        return f"token-{username}"

    async def list_gadgets(self, status: GadgetStatus | None = None) -> list[Gadget]:
        self._record("list_gadgets", status)
        snapshot = [
            dict(record)
            for record in self.records
            if status is None or record["status"] == status.value
        ]
        if self.list_gate is not None:
            await self.list_gate.wait()
        return [Gadget.from_api_response(record) for record in snapshot]

    async def create_gadget(self, name: str) -> None:
        self._record("create_gadget", name)
        self.add(name)

    async def update_status(self, gadget_id: str, status: GadgetStatus) -> None:
        self._record("update_status", gadget_id, status)
        self._find(gadget_id)["status"] = status.value

    async def request_destruction(self, gadget_id: str) -> str:
        self._record("request_destruction", gadget_id)
        self._find(gadget_id)
        code = next(self._codes)
        self.issued[gadget_id] = code
        return code

    async def confirm_destruction(self, gadget_id: str, confirmation_code: str) -> None:
        self._record("confirm_destruction", gadget_id, confirmation_code)
        record = self._find(gadget_id)
        if self.issued.get(gadget_id) != confirmation_code:
            raise ServerRejection(
                f"Self-destruct failed with status 400: {INVALID_CODE_MESSAGE}",
                400,
                INVALID_CODE_MESSAGE,
            )
        del self.issued[gadget_id]
        record["status"] = GadgetStatus.DESTROYED.value

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def repository() -> FakeGadgetRepository:
    """Provide an empty in-memory inventory service."""
    return FakeGadgetRepository()


@pytest.fixture
def session_file(tmp_path: Path) -> Path:
    """Provide a session file path inside a temporary directory."""
    return tmp_path / "state" / "session.json"


@pytest.fixture
def session(session_file: Path) -> SessionStore:
    """Provide a session store with no saved credential."""
    return SessionStore(session_file)


@pytest.fixture
def engine(repository: FakeGadgetRepository) -> TransitionEngine:
    """Provide a transition engine bound to the fake service."""
    return TransitionEngine(repository)


@pytest.fixture
def controller(
    session: SessionStore,
    repository: FakeGadgetRepository,
    engine: TransitionEngine,
) -> DashboardController:
    """Provide a logged-out controller bound to the fake service."""
    return DashboardController(session, repository, engine)


def create_test_context(
    repository: FakeGadgetRepository,
    session_file: Path,
) -> AppContext:
    """Build an AppContext around the fake service.

    The fake stands in for the REST client, including ``close()``.
    """
    config = Config(session_file=session_file)
    session = SessionStore(session_file)
    controller = DashboardController(session, repository)
    return AppContext(
        config=config,
        session=session,
        client=repository,  # type: ignore[arg-type]
        controller=controller,
    )
