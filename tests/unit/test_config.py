"""Tests for configuration module."""

import logging
import os
from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

from gadget_console.config import (
    DEFAULT_API_URL,
    DEFAULT_SESSION_FILE,
    MAX_PORT,
    MIN_PORT,
    VALID_LOG_LEVELS,
    Config,
    _parse_bool,
    _parse_int,
    _parse_port,
    _parse_positive_float,
    _validate_api_url,
    _validate_log_level,
    load_config,
)

ENV_VARS = (
    "GADGET_CONSOLE_API_URL",
    "GADGET_CONSOLE_HTTP_TIMEOUT",
    "GADGET_CONSOLE_MAX_RETRIES",
    "GADGET_CONSOLE_SESSION_FILE",
    "GADGET_CONSOLE_LOG_LEVEL",
    "GADGET_CONSOLE_LOG_JSON",
    "GADGET_CONSOLE_HOST",
    "GADGET_CONSOLE_PORT",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Clear console env vars and point dotenv at an empty file."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("")
    return env_file


class TestConfig:
    """Tests for Config dataclass."""

    def test_defaults(self) -> None:
        """Test that Config defaults match the documented values."""
        config = Config()
        assert config.api_url == DEFAULT_API_URL
        assert config.http_timeout == 10.0
        assert config.max_retries == 4
        assert config.session_file == DEFAULT_SESSION_FILE
        assert config.log_level == "INFO"
        assert config.log_json is False
        assert config.host == "127.0.0.1"
        assert config.port == 8080

    def test_frozen(self) -> None:
        """Test that Config cannot be modified after creation."""
        config = Config()
        with pytest.raises(FrozenInstanceError):
            config.port = 9000  # type: ignore[misc]

    def test_resolved_session_file_expands_home(self) -> None:
        """Test that a leading ~ in the session file is expanded."""
        config = Config(session_file=Path("~/session.json"))
        assert config.resolved_session_file == Path.home() / "session.json"


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_without_env(self, clean_env: Path) -> None:
        """Test that load_config returns defaults when nothing is set."""
        config = load_config(clean_env)
        assert config == Config()

    def test_reads_env(self, clean_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that every GADGET_CONSOLE_ variable is read."""
        monkeypatch.setenv("GADGET_CONSOLE_API_URL", "http://localhost:3000/")
        monkeypatch.setenv("GADGET_CONSOLE_HTTP_TIMEOUT", "2.5")
        monkeypatch.setenv("GADGET_CONSOLE_MAX_RETRIES", "0")
        monkeypatch.setenv("GADGET_CONSOLE_SESSION_FILE", "/tmp/gc/session.json")
        monkeypatch.setenv("GADGET_CONSOLE_LOG_LEVEL", "debug")
        monkeypatch.setenv("GADGET_CONSOLE_LOG_JSON", "yes")
        monkeypatch.setenv("GADGET_CONSOLE_HOST", "0.0.0.0")
        monkeypatch.setenv("GADGET_CONSOLE_PORT", "9090")

        config = load_config(clean_env)

        assert config.api_url == "http://localhost:3000"
        assert config.http_timeout == 2.5
        assert config.max_retries == 0
        assert config.session_file == Path("/tmp/gc/session.json")
        assert config.log_level == "DEBUG"
        assert config.log_json is True
        assert config.host == "0.0.0.0"
        assert config.port == 9090

    def test_reads_env_file(self, clean_env: Path) -> None:
        """Test that values from the .env file are applied."""
        clean_env.write_text("GADGET_CONSOLE_PORT=8181\n")
        try:
            config = load_config(clean_env)
        finally:
            # load_dotenv writes straight into os.environ
            os.environ.pop("GADGET_CONSOLE_PORT", None)
        assert config.port == 8181

    def test_invalid_values_fall_back(
        self, clean_env: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that invalid values fall back to their defaults."""
        monkeypatch.setenv("GADGET_CONSOLE_API_URL", "ftp://example.com")
        monkeypatch.setenv("GADGET_CONSOLE_PORT", "99999")
        monkeypatch.setenv("GADGET_CONSOLE_LOG_LEVEL", "LOUD")
        monkeypatch.setenv("GADGET_CONSOLE_HTTP_TIMEOUT", "-1")

        config = load_config(clean_env)

        assert config.api_url == DEFAULT_API_URL
        assert config.port == 8080
        assert config.log_level == "INFO"
        assert config.http_timeout == 10.0


class TestParsers:
    """Tests for the value parsing helpers."""

    def test_parse_int(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that bad integers fall back to the default with a warning."""
        assert _parse_int("5", "X", 1, minimum=1) == 5
        with caplog.at_level(logging.WARNING):
            assert _parse_int("0", "X", 1, minimum=1) == 1
            assert _parse_int("abc", "X", 1, minimum=1) == 1
        assert "out of range (>= 1)" in caplog.text
        assert "not a valid integer" in caplog.text

    def test_parse_int_allows_zero_minimum(self) -> None:
        """Test that zero is accepted when the minimum is zero."""
        assert _parse_int("0", "X", 4, minimum=0) == 0
        assert _parse_int("-1", "X", 4, minimum=0) == 4
        assert _parse_int("many", "X", 4, minimum=0) == 4

    def test_parse_int_upper_bound(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that values above the maximum fall back to the default."""
        with caplog.at_level(logging.WARNING):
            assert _parse_int("11", "X", 3, minimum=1, maximum=10) == 3
        assert "out of range (1-10)" in caplog.text

    def test_parse_port(self) -> None:
        """Test that ports outside 1-65535 fall back to the default."""
        assert _parse_port(str(MIN_PORT), "P", 8080) == MIN_PORT
        assert _parse_port(str(MAX_PORT), "P", 8080) == MAX_PORT
        assert _parse_port("0", "P", 8080) == 8080
        assert _parse_port(str(MAX_PORT + 1), "P", 8080) == 8080
        assert _parse_port("http", "P", 8080) == 8080

    def test_parse_positive_float(self) -> None:
        """Test that non-positive or non-numeric floats fall back to the default."""
        assert _parse_positive_float("0.5", "T", 10.0) == 0.5
        assert _parse_positive_float("0", "T", 10.0) == 10.0
        assert _parse_positive_float("fast", "T", 10.0) == 10.0

    def test_validate_log_level(self) -> None:
        """Test that log levels are upper-cased and unknown ones become INFO."""
        for level in VALID_LOG_LEVELS:
            assert _validate_log_level(level.lower()) == level
        assert _validate_log_level("TRACE") == "INFO"

    def test_validate_api_url(self) -> None:
        """Test that the API URL is trimmed and must use http or https."""
        assert _validate_api_url(" https://x.example.com/ ") == "https://x.example.com"
        assert _validate_api_url("x.example.com") == DEFAULT_API_URL

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("true", True), ("1", True), ("YES", True), ("false", False), ("", False)],
    )
    def test_parse_bool(self, value: str, expected: bool) -> None:
        """Test that boolean strings are parsed case-insensitively."""
        assert _parse_bool(value) is expected
