"""Persisted session credential.

The console keeps exactly one bearer token. It is written to a small JSON
file so a restarted console comes back logged in, and removed on logout.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

from gadget_console.logging import get_logger

logger = get_logger(__name__)

# Key under which the token is stored in the session file
TOKEN_KEY = "token"


class SessionStore:
    """Single credential slot backed by a JSON file.

    The in-memory value is authoritative for the running process; the file is
    read once by ``load()`` at startup and rewritten on every ``set()`` or
    ``clear()``.

    Example:
        store = SessionStore(Path("~/.gadget-console/session.json").expanduser())
        token = store.load()
        if token is None:
            store.set("abc123")
    """

    def __init__(self, path: Path) -> None:
        """Initialize the session store.

        Args:
            path: Location of the session file. Parent directories are
                created on first write.
        """
        self._path = path
        self._token: str | None = None

    @property
    def path(self) -> Path:
        """Get the session file path."""
        return self._path

    @property
    def token(self) -> str | None:
        """Current credential, or None when logged out."""
        return self._token

    @property
    def is_authenticated(self) -> bool:
        """Check if a credential is present."""
        return self._token is not None

    def load(self) -> str | None:
        """Restore the credential from disk.

        A missing file means logged out. An unreadable or malformed file is
        also treated as logged out, with a warning.

        Returns:
            The restored token, or None.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            self._token = None
            return None
        except OSError as e:
            logger.warning("Could not read session file %s: %s", self._path, e)
            self._token = None
            return None

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Ignoring malformed session file %s: %s", self._path, e)
            self._token = None
            return None

        token = data.get(TOKEN_KEY) if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            self._token = None
            return None

        self._token = token
        logger.debug("Restored session credential from %s", self._path)
        return token

    def set(self, token: str) -> None:
        """Store a new credential and persist it.

        Args:
            token: Bearer token returned by login or registration.

        Raises:
            ValueError: If the token is empty.
        """
        if not token:
            raise ValueError("Session token must not be empty")
        self._token = token
        self._write({TOKEN_KEY: token})

    def clear(self) -> None:
        """Forget the credential and delete the session file."""
        self._token = None
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass
        logger.debug("Cleared session credential")

    def _write(self, data: dict[str, str]) -> None:
        """Atomically replace the session file with ``data``."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=".session-", suffix=".tmp", dir=str(self._path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


__all__ = ["SessionStore", "TOKEN_KEY"]
