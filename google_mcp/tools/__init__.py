"""Google MCP tools package.

This package contains the MCP tool implementations. Each tool takes the
process's ``AuthManager`` explicitly and returns a standardized response
dict (see ``google_mcp.tools.base``).
"""

from google_mcp.tools.auth import (
    google_get_auth_status,
    google_login,
    google_logout,
)
from google_mcp.tools.base import (
    build_auth_error_response,
    build_error_response,
    build_success_response,
)

__all__ = [
    # Base utilities
    "build_auth_error_response",
    "build_error_response",
    "build_success_response",
    # Auth tools
    "google_get_auth_status",
    "google_login",
    "google_logout",
]
