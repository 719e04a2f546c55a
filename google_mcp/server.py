"""FastMCP server for Google MCP.

This module builds the FastMCP server that exposes the authentication core
to the agent host. Three auth tools are registered:

- google_login: Interactive PKCE authorization in the browser
- google_logout: Revoke and clear stored credentials
- google_get_auth_status: Check authentication state

The server receives its ``AuthManager`` from the caller; nothing here is a
module-level singleton. The lifespan context manager reports the stored
token state at startup and cancels in-flight auth flows at shutdown.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import TYPE_CHECKING, Any

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from google_mcp.tools import google_get_auth_status, google_login, google_logout

if TYPE_CHECKING:
    from google_mcp.auth.manager import AuthManager

logger = logging.getLogger(__name__)

SERVER_NAME = "google-mcp-server"


# =============================================================================
# Lifespan Context Manager
# =============================================================================


def _make_lifespan(
    manager: AuthManager,
) -> Callable[[FastMCP], AbstractAsyncContextManager[dict[str, Any]]]:
    @asynccontextmanager
    async def server_lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
        """Lifespan context manager for server startup/shutdown.

        Args:
            server: The FastMCP server instance.

        Yields:
            Empty context dict (tools reach the manager by closure).
        """
        logger.info("Google MCP server starting up...")

        try:
            status = await manager.status()
            logger.info(
                "Stored credentials: %s (state: %s)",
                "present" if status.has_tokens else "none",
                status.state.value,
            )
        except Exception as e:
            logger.warning("Could not read stored credentials at startup: %s", e)

        logger.info("Google MCP server ready")

        try:
            yield {}
        finally:
            logger.info("Google MCP server shutting down...")
            await manager.close()

    return server_lifespan


# =============================================================================
# Auth Tool Wrappers
# =============================================================================


def _register_auth_tools(mcp: FastMCP, manager: AuthManager) -> None:
    """Register all authentication tools with the FastMCP server.

    Args:
        mcp: The FastMCP server instance.
        manager: Auth manager the tools operate on.
    """

    @mcp.tool(
        name="google_login",
        annotations=ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
        ),
    )
    async def google_login_tool(scopes: list[str] | None = None) -> dict[str, Any]:
        """Sign in to Google using the browser (OAuth with PKCE).

        Opens a browser to the Google consent page. After the user approves,
        the callback is received on localhost and tokens are stored
        encrypted. Previously granted scopes are kept.

        Args:
            scopes: Full scope URLs to request. Defaults to the configured
                scopes.

        Returns:
            Success: {status, data: {scopes}, message}
            Error: {status, error, error_code, retryable}
        """
        return await google_login(manager, scopes)

    @mcp.tool(
        name="google_logout",
        annotations=ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
        ),
    )
    async def google_logout_tool() -> dict[str, Any]:
        """Sign out of Google by revoking and clearing stored credentials.

        The user will need to re-authenticate using google_login (or on the
        next tool call that needs Google access).

        Returns:
            Success response with logout confirmation.
        """
        return await google_logout(manager)

    @mcp.tool(
        name="google_get_auth_status",
        annotations=ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
        ),
    )
    async def google_get_auth_status_tool() -> dict[str, Any]:
        """Check if the user is authenticated with Google.

        Returns the lifecycle state, token expiry, and how the granted
        scopes compare with the configured scopes. Never contacts Google.

        Returns:
            Success response with authentication status.
        """
        return await google_get_auth_status(manager)


# =============================================================================
# Server Factory
# =============================================================================


def create_server(manager: AuthManager) -> FastMCP:
    """Create and configure the FastMCP server instance.

    Args:
        manager: Auth manager shared by every tool of this server.

    Returns:
        Configured FastMCP server instance.
    """
    server = FastMCP(
        name=SERVER_NAME,
        lifespan=_make_lifespan(manager),
    )

    _register_auth_tools(server, manager)

    # 3 auth tools, validated by test_all_auth_tools_registered.
    tool_count = 3
    logger.info("Google MCP server created with %d tools registered", tool_count)
    return server


__all__ = ["create_server", "SERVER_NAME"]
