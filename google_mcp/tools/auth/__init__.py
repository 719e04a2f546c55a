"""Google MCP authentication tools package.

This package contains MCP tool implementations over the auth manager:

- google_login: Interactive PKCE authorization in the browser
- google_logout: Revoke and clear stored credentials
- google_get_auth_status: Check authentication state
"""

from google_mcp.tools.auth.login import google_login
from google_mcp.tools.auth.logout import google_logout
from google_mcp.tools.auth.status import google_get_auth_status

__all__ = [
    "google_login",
    "google_logout",
    "google_get_auth_status",
]
