"""Tests for the Google MCP server and entry point.

Tests cover:
- Server creation and FastMCP instance
- Tool registration (3 auth tools) and annotations
- Server lifespan startup and shutdown
- Command line parsing and environment validation
"""

from __future__ import annotations

import logging
import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from google_mcp.auth.manager import AuthManager, AuthState, AuthStatus
from google_mcp.auth.scopes import GMAIL_READONLY_SCOPE
from google_mcp.server import SERVER_NAME, _make_lifespan, create_server

AUTH_TOOLS = ["google_login", "google_logout", "google_get_auth_status"]

REQUIRED_ENV = {
    "GOOGLE_CLIENT_ID": "test-client-id",
    "GOOGLE_CLIENT_SECRET": "test-client-secret",
    "TOKEN_ENCRYPTION_KEY": "a" * 64,
}


@pytest.fixture
def mock_manager() -> MagicMock:
    manager = MagicMock(spec=AuthManager)
    manager.config.default_scopes = frozenset({GMAIL_READONLY_SCOPE})
    manager.status = AsyncMock(
        return_value=AuthStatus(
            authenticated=False, has_tokens=False, state=AuthState.UNAUTHENTICATED
        )
    )
    manager.authenticate = AsyncMock(return_value=frozenset({GMAIL_READONLY_SCOPE}))
    manager.logout = AsyncMock(return_value=True)
    manager.close = AsyncMock()
    return manager


class TestServerCreation:
    """Tests for server creation and FastMCP instance."""

    def test_create_server_returns_fastmcp_instance(self, mock_manager: MagicMock) -> None:
        """Test that create_server returns a named FastMCP instance."""
        server = create_server(mock_manager)

        assert server is not None
        assert server.name == SERVER_NAME == "google-mcp-server"

    def test_servers_are_independent(self, mock_manager: MagicMock) -> None:
        """Each call builds a new server; there is no module-level instance."""
        assert create_server(mock_manager) is not create_server(mock_manager)


class TestToolRegistration:
    """Tests for tool registration verification."""

    def test_all_auth_tools_registered(self, mock_manager: MagicMock) -> None:
        """Test that exactly the 3 auth tools are registered."""
        server = create_server(mock_manager)
        tool_names = sorted(tool.name for tool in server._tool_manager.list_tools())

        assert tool_names == sorted(AUTH_TOOLS)

    def test_all_tools_have_descriptions(self, mock_manager: MagicMock) -> None:
        """Test all tools have non-empty descriptions."""
        server = create_server(mock_manager)

        for tool in server._tool_manager.list_tools():
            assert tool.description, f"{tool.name} has no description"
            assert len(tool.description) > 10, f"{tool.name} description is too short"

    def test_login_accepts_scopes(self, mock_manager: MagicMock) -> None:
        """google_login exposes an optional scopes parameter."""
        server = create_server(mock_manager)
        tool = server._tool_manager.get_tool("google_login")

        assert tool is not None
        assert "scopes" in tool.parameters["properties"]
        assert "scopes" not in tool.parameters.get("required", [])


class TestToolAnnotations:
    """Tests for tool annotation verification."""

    def test_status_is_readonly(self, mock_manager: MagicMock) -> None:
        """google_get_auth_status only reads."""
        tool = create_server(mock_manager)._tool_manager.get_tool("google_get_auth_status")

        assert tool is not None and tool.annotations is not None
        assert tool.annotations.readOnlyHint is True

    def test_logout_is_destructive_and_idempotent(self, mock_manager: MagicMock) -> None:
        """google_logout deletes credentials; repeating it is harmless."""
        tool = create_server(mock_manager)._tool_manager.get_tool("google_logout")

        assert tool is not None and tool.annotations is not None
        assert tool.annotations.destructiveHint is True
        assert tool.annotations.idempotentHint is True

    def test_login_not_readonly(self, mock_manager: MagicMock) -> None:
        """google_login changes stored credentials."""
        tool = create_server(mock_manager)._tool_manager.get_tool("google_login")

        assert tool is not None and tool.annotations is not None
        assert tool.annotations.readOnlyHint is False


class TestToolWiring:
    """Tests that registered tools reach the injected manager."""

    @pytest.mark.asyncio
    async def test_login_tool_uses_manager(self, mock_manager: MagicMock) -> None:
        """The registered login tool calls the server's manager."""
        tool = create_server(mock_manager)._tool_manager.get_tool("google_login")
        assert tool is not None

        result = await tool.fn(scopes=[GMAIL_READONLY_SCOPE])

        assert result["status"] == "success"
        mock_manager.authenticate.assert_awaited_once_with([GMAIL_READONLY_SCOPE])

    @pytest.mark.asyncio
    async def test_logout_tool_revokes(self, mock_manager: MagicMock) -> None:
        """The registered logout tool revokes before deleting."""
        tool = create_server(mock_manager)._tool_manager.get_tool("google_logout")
        assert tool is not None

        await tool.fn()

        mock_manager.logout.assert_awaited_once_with(revoke=True)


class TestServerLifespan:
    """Tests for server lifespan and cleanup."""

    @pytest.mark.asyncio
    async def test_lifespan_reports_status_and_closes_manager(
        self, mock_manager: MagicMock
    ) -> None:
        """Startup reads status; shutdown cancels in-flight flows."""
        server = create_server(mock_manager)

        async with _make_lifespan(mock_manager)(server) as context:
            assert context == {}
            mock_manager.status.assert_awaited_once()
            mock_manager.close.assert_not_awaited()

        mock_manager.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_lifespan_survives_status_failure(self, mock_manager: MagicMock) -> None:
        """An unreadable token store does not stop the server from starting."""
        mock_manager.status.side_effect = OSError("disk gone")
        server = create_server(mock_manager)

        async with _make_lifespan(mock_manager)(server):
            pass

        mock_manager.close.assert_awaited_once()


class TestParseArgs:
    """Tests for command line parsing."""

    def test_default_is_serve(self) -> None:
        """No subcommand runs the server."""
        from google_mcp.__main__ import parse_args

        assert parse_args([]).command == "serve"

    def test_login_with_repeated_scopes(self) -> None:
        """--scope may be given several times."""
        from google_mcp.__main__ import parse_args

        args = parse_args(["login", "--scope", "a", "--scope", "b"])

        assert args.command == "login"
        assert args.scopes == ["a", "b"]

    def test_logout_no_revoke(self) -> None:
        """--no-revoke skips provider revocation."""
        from google_mcp.__main__ import parse_args

        assert parse_args(["logout", "--no-revoke"]).no_revoke is True
        assert parse_args(["logout"]).no_revoke is False


class TestRunCommand:
    """Tests for the one-shot commands."""

    @pytest.mark.asyncio
    async def test_login_prints_scopes(
        self, mock_manager: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """login prints the granted scopes."""
        from google_mcp.__main__ import parse_args, run_command

        await run_command(mock_manager, parse_args(["login"]))

        assert GMAIL_READONLY_SCOPE in capsys.readouterr().out
        mock_manager.authenticate.assert_awaited_once_with(None)

    @pytest.mark.asyncio
    async def test_status_prints_json(
        self, mock_manager: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """status prints the status model as JSON."""
        from google_mcp.__main__ import parse_args, run_command

        await run_command(mock_manager, parse_args(["status"]))

        assert '"has_tokens": false' in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_logout_no_revoke(
        self, mock_manager: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """logout --no-revoke only deletes locally."""
        from google_mcp.__main__ import parse_args, run_command

        await run_command(mock_manager, parse_args(["logout", "--no-revoke"]))

        mock_manager.logout.assert_awaited_once_with(revoke=False)
        assert "Logged out." in capsys.readouterr().out


class TestMainEntryPoint:
    """Tests for the main entry point and environment validation."""

    def test_validate_environment_success(self) -> None:
        """Test validate_environment returns a config with valid env vars."""
        from google_mcp.__main__ import validate_environment

        with patch.dict(os.environ, REQUIRED_ENV, clear=True):
            config = validate_environment()

        assert config is not None
        assert config.client_id == "test-client-id"

    @pytest.mark.parametrize("missing", sorted(REQUIRED_ENV))
    def test_validate_environment_missing_variable(
        self, missing: str, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test validate_environment fails when a required variable is missing."""
        from google_mcp.__main__ import validate_environment

        env = {k: v for k, v in REQUIRED_ENV.items() if k != missing}
        with patch.dict(os.environ, env, clear=True):
            with caplog.at_level(logging.ERROR):
                assert validate_environment() is None

        assert missing in caplog.text

    def test_validate_environment_logs_each_problem(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Every validation problem is logged on its own line."""
        from google_mcp.__main__ import validate_environment

        env = {**REQUIRED_ENV, "OAUTH_CALLBACK_TIMEOUT": "10", "OAUTH_HTTP_TIMEOUT": "0.1"}
        with patch.dict(os.environ, env, clear=True):
            with caplog.at_level(logging.ERROR):
                assert validate_environment() is None

        assert "callback_timeout" in caplog.text
        assert "http_timeout" in caplog.text

    def test_main_exits_on_invalid_environment(self) -> None:
        """main() exits with status 1 when configuration is missing."""
        from google_mcp.__main__ import main

        with (
            patch.dict(os.environ, {}, clear=True),
            patch("google_mcp.__main__.load_dotenv"),
            patch("google_mcp.__main__.configure_logging"),
        ):
            with pytest.raises(SystemExit) as exc_info:
                main(["status"])

        assert exc_info.value.code == 1

    def test_configure_logging_respects_level(self) -> None:
        """LOG_LEVEL selects the root level; noisy libraries stay at WARNING."""
        from google_mcp.__main__ import configure_logging

        root = logging.getLogger()
        saved_level, saved_handlers = root.level, root.handlers[:]
        root.handlers = []
        try:
            with patch.dict(os.environ, {"LOG_LEVEL": "DEBUG"}):
                configure_logging()

            assert root.level == logging.DEBUG
            assert logging.getLogger("urllib3").level == logging.WARNING
        finally:
            root.handlers = saved_handlers
            root.setLevel(saved_level)
