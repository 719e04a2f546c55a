"""Google logout tool - Revoke and clear stored credentials.

The grant is revoked with Google before the local token file is deleted, so
the next login shows a fresh consent screen.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from google_mcp.tools.base import build_auth_error_response, build_success_response
from google_mcp.utils.errors import AuthError

if TYPE_CHECKING:
    from google_mcp.auth.manager import AuthManager

logger = logging.getLogger(__name__)


async def google_logout(manager: AuthManager, revoke: bool = True) -> dict[str, Any]:
    """Sign out of Google by revoking and clearing stored credentials.

    Args:
        manager: The process's auth manager.
        revoke: Revoke the grant with Google before deleting locally.

    Returns:
        Success response with logout confirmation.
    """
    try:
        had_credentials = await manager.logout(revoke=revoke)
    except AuthError as e:
        logger.warning("Error deleting token during logout: %s", e)
        return build_auth_error_response(e)

    if had_credentials:
        logger.info("User logged out successfully")
        return build_success_response(
            data={"logged_out": True},
            message="Successfully logged out. You will need to re-authenticate.",
        )

    logger.debug("Logout called but no credentials were stored")
    return build_success_response(
        data={"logged_out": False},
        message="No credentials were stored. Already logged out.",
    )
