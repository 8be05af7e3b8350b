"""Configuration loading from environment variables.

Every setting is read from a ``GADGET_CONSOLE_*`` variable (a ``.env`` file is
honored through python-dotenv). A value that fails validation is replaced by
its default and a warning is logged; configuration never aborts startup.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Prefix shared by every environment variable this module reads
ENV_PREFIX = "GADGET_CONSOLE_"

# Valid log levels
VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

# Port validation bounds
MIN_PORT = 1
MAX_PORT = 65535

DEFAULT_API_URL = "https://imf-gadgets-api-ztqw.onrender.com"
DEFAULT_SESSION_FILE = Path("~/.gadget-console/session.json")
DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_MAX_RETRIES = 4
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment.

    This dataclass is frozen (immutable) to prevent accidental modification
    after creation.
    """

    # Inventory service
    api_url: str = DEFAULT_API_URL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT  # connect/write/pool; read gets 3x
    max_retries: int = DEFAULT_MAX_RETRIES  # retries on HTTP 429

    # Persisted credential
    session_file: Path = DEFAULT_SESSION_FILE

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Local console server
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    @property
    def resolved_session_file(self) -> Path:
        """Session file path with ``~`` expanded."""
        return self.session_file.expanduser()


def _env(name: str) -> str | None:
    """Read ``GADGET_CONSOLE_<name>``, treating an empty value as unset."""
    value = os.getenv(f"{ENV_PREFIX}{name}", "").strip()
    return value or None


def _parse_int(
    value: str,
    name: str,
    default: int,
    minimum: int,
    maximum: int | None = None,
) -> int:
    """Parse an integer setting that must lie within ``[minimum, maximum]``.

    Args:
        value: Raw string from the environment.
        name: Variable name, used in the warning.
        default: Returned when ``value`` is not an integer or out of range.
        minimum: Smallest accepted value.
        maximum: Largest accepted value, or None for no upper bound.

    Returns:
        The parsed integer, or ``default``.
    """
    try:
        parsed = int(value)
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid integer, using default %d", name, value, default
        )
        return default

    if parsed < minimum or (maximum is not None and parsed > maximum):
        bounds = f">= {minimum}" if maximum is None else f"{minimum}-{maximum}"
        logging.warning(
            "Invalid %s: %d is out of range (%s), using default %d", name, parsed, bounds, default
        )
        return default
    return parsed


def _parse_port(value: str, name: str, default: int) -> int:
    """Parse a TCP port number (MIN_PORT-MAX_PORT)."""
    return _parse_int(value, name, default, MIN_PORT, MAX_PORT)


def _parse_positive_float(value: str, name: str, default: float) -> float:
    """Parse a strictly positive float, falling back to ``default``."""
    try:
        parsed = float(value)
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid number, using default %s", name, value, default
        )
        return default
    if parsed <= 0:
        logging.warning("Invalid %s: %s is not positive, using default %s", name, parsed, default)
        return default
    return parsed


def _validate_log_level(value: str, default: str = "INFO") -> str:
    """Validate and normalize a log level string.

    Args:
        value: The log level string to validate.
        default: The default value to use if invalid.

    Returns:
        The validated log level (uppercase), or the default if invalid.
    """
    normalized = value.upper()
    if normalized in VALID_LOG_LEVELS:
        return normalized
    logging.warning(
        "Invalid %sLOG_LEVEL: '%s' is not valid, using default '%s'. Valid values: %s",
        ENV_PREFIX,
        value,
        default,
        ", ".join(sorted(VALID_LOG_LEVELS)),
    )
    return default


def _validate_api_url(value: str, default: str = DEFAULT_API_URL) -> str:
    """Validate the inventory service base URL.

    Only http and https URLs are accepted. A trailing slash is stripped.
    """
    value = value.strip()
    if value.startswith(("http://", "https://")):
        return value.rstrip("/")
    logging.warning(
        "Invalid %sAPI_URL: '%s' must start with http:// or https://, using default '%s'",
        ENV_PREFIX,
        value,
        default,
    )
    return default


def _parse_bool(value: str) -> bool:
    """Parse a string as a boolean.

    Returns:
        True if value is "true", "1", or "yes" (case-insensitive), False otherwise.
    """
    return value.lower() in ("true", "1", "yes")


def load_config(env_file: Path | None = None) -> Config:
    """Load configuration from environment variables.

    Args:
        env_file: Optional path to .env file. If not provided,
                  looks for .env in current directory.

    Returns:
        Config object with loaded values. Unset variables keep the Config
        defaults; invalid ones fall back to them with a warning.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    config = Config()

    api_url = _env("API_URL")
    http_timeout = _env("HTTP_TIMEOUT")
    max_retries = _env("MAX_RETRIES")
    session_file = _env("SESSION_FILE")
    log_level = _env("LOG_LEVEL")
    port = _env("PORT")

    return Config(
        api_url=_validate_api_url(api_url) if api_url else config.api_url,
        http_timeout=(
            _parse_positive_float(http_timeout, f"{ENV_PREFIX}HTTP_TIMEOUT", config.http_timeout)
            if http_timeout
            else config.http_timeout
        ),
        max_retries=(
            _parse_int(max_retries, f"{ENV_PREFIX}MAX_RETRIES", config.max_retries, 0)
            if max_retries
            else config.max_retries
        ),
        session_file=Path(session_file) if session_file else config.session_file,
        log_level=_validate_log_level(log_level) if log_level else config.log_level,
        log_json=_parse_bool(_env("LOG_JSON") or ""),
        host=_env("HOST") or config.host,
        port=_parse_port(port, f"{ENV_PREFIX}PORT", config.port) if port else config.port,
    )
