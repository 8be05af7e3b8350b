"""Tests for CLI parsing, bootstrap wiring and the application runner."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest

from gadget_console.app import main
from gadget_console.bootstrap import AppContext, apply_cli_overrides, bootstrap, create_context
from gadget_console.cli import parse_args
from gadget_console.config import Config


class TestParseArgs:
    """Tests for parse_args."""

    def test_defaults(self) -> None:
        """Test that no flags leave every override unset."""
        parsed = parse_args([])
        assert parsed.api_url is None
        assert parsed.host is None
        assert parsed.port is None
        assert parsed.log_level is None
        assert parsed.session_file is None
        assert parsed.env_file is None

    def test_all_flags(self) -> None:
        """Test that every flag is parsed into its attribute."""
        parsed = parse_args(
            [
                "--api-url",
                "http://localhost:3000",
                "--host",
                "0.0.0.0",
                "--port",
                "9000",
                "--log-level",
                "DEBUG",
                "--session-file",
                "/tmp/s.json",
                "--env-file",
                "/tmp/.env",
            ]
        )
        assert parsed.api_url == "http://localhost:3000"
        assert parsed.host == "0.0.0.0"
        assert parsed.port == 9000
        assert parsed.log_level == "DEBUG"
        assert parsed.session_file == Path("/tmp/s.json")
        assert parsed.env_file == Path("/tmp/.env")

    def test_invalid_log_level_exits(self) -> None:
        """Test that an unknown log level is rejected by argparse."""
        with pytest.raises(SystemExit):
            parse_args(["--log-level", "LOUD"])


class TestApplyCliOverrides:
    """Tests for apply_cli_overrides."""

    def test_no_overrides_returns_same_config(self) -> None:
        """Test that a config is returned unchanged when no flag is set."""
        config = Config()
        assert apply_cli_overrides(config, parse_args([])) is config

    def test_overrides(self) -> None:
        """Test that flags replace the matching config values."""
        config = apply_cli_overrides(
            Config(),
            parse_args(["--api-url", "http://localhost:3000/", "--port", "9000"]),
        )
        assert config.api_url == "http://localhost:3000"
        assert config.port == 9000
        assert config.host == "127.0.0.1"


class TestCreateContext:
    """Tests for create_context wiring."""

    def test_client_reads_token_from_session(self, tmp_path: Path) -> None:
        """Test that the REST client takes its bearer token from the session store."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        config = Config(api_url="http://inventory.test", session_file=tmp_path / "s.json")
        context = create_context(config, transport=httpx.MockTransport(handler))

        async def run() -> None:
            context.session.set("abc")
            await context.controller.refresh()
            await context.close()

        asyncio.run(run())

        assert isinstance(context, AppContext)
        assert context.engine is context.controller.engine
        assert seen[0].headers["Authorization"] == "Bearer abc"
        assert str(seen[0].url) == "http://inventory.test/gadgets"

    def test_retry_and_timeout_from_config(self, tmp_path: Path) -> None:
        """Test that retry count and HTTP timeout come from the config."""
        config = Config(http_timeout=2.0, max_retries=1, session_file=tmp_path / "s.json")
        context = create_context(config)

        assert context.client.retry_config.max_retries == 1
        assert context.client.timeout == httpx.Timeout(2.0, read=6.0)

    def test_start_restores_session(self, tmp_path: Path) -> None:
        """Test that starting the context restores a saved session."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[])

        session_file = tmp_path / "s.json"
        session_file.write_text('{"token": "saved"}')
        context = create_context(
            Config(session_file=session_file), transport=httpx.MockTransport(handler)
        )

        async def run() -> None:
            await context.start()
            await context.close()

        asyncio.run(run())

        assert context.controller.authenticated


class TestBootstrap:
    """Tests for bootstrap."""

    def test_bootstrap_applies_env_and_cli(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that bootstrap combines env settings with CLI overrides."""
        monkeypatch.delenv("GADGET_CONSOLE_API_URL", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("")
        parsed = parse_args(
            [
                "--env-file",
                str(env_file),
                "--session-file",
                str(tmp_path / "s.json"),
                "--api-url",
                "http://localhost:3000",
            ]
        )

        with patch("gadget_console.bootstrap.setup_logging") as mock_setup:
            context = bootstrap(parsed)

        mock_setup.assert_called_once()
        assert context.client.base_url == "http://localhost:3000"
        assert context.session.path == tmp_path / "s.json"


class TestMain:
    """Tests for the main entry point."""

    def test_main_runs_uvicorn(self, tmp_path: Path) -> None:
        """Test that main serves the app on the configured host and port."""
        context = create_context(Config(session_file=tmp_path / "s.json"))
        with (
            patch("gadget_console.app.bootstrap", return_value=context),
            patch("gadget_console.app.uvicorn.run") as mock_run,
        ):
            assert main([]) == 0

        mock_run.assert_called_once()
        assert mock_run.call_args.kwargs["host"] == "127.0.0.1"
        assert mock_run.call_args.kwargs["port"] == 8080

    def test_main_returns_error_when_port_is_taken(self, tmp_path: Path) -> None:
        """Test that main returns 1 when the port cannot be bound."""
        context = create_context(Config(session_file=tmp_path / "s.json"))
        with (
            patch("gadget_console.app.bootstrap", return_value=context),
            patch(
                "gadget_console.app.uvicorn.run",
                MagicMock(side_effect=OSError("Address already in use")),
            ),
        ):
            assert main([]) == 1
