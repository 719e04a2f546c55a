"""Google auth status tool - Check authentication state.

Reports whether usable tokens exist, when they expire, and how the granted
scopes compare with the configured default scopes. Never contacts Google.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from google_mcp.auth.scopes import compare, scope_labels
from google_mcp.tools.base import build_error_response, build_success_response

if TYPE_CHECKING:
    from google_mcp.auth.manager import AuthManager

logger = logging.getLogger(__name__)


async def google_get_auth_status(manager: AuthManager) -> dict[str, Any]:
    """Check if the user is authenticated with Google.

    Args:
        manager: The process's auth manager.

    Returns:
        Success response with authentication status:
        - authenticated: True if a token is valid or renewable
        - state: Auth manager lifecycle state
        - expires_at / seconds_until_expiry / needs_refresh
        - expected_scopes: Configured default scopes
        - token_scopes: Scopes granted to the stored token
        - missing_scopes: Expected scopes not yet granted
    """
    expected = manager.config.default_scopes

    try:
        status = await manager.status()
    except Exception as e:
        logger.error("Error checking auth status: %s", e)
        return build_error_response(
            error=f"Failed to check authentication status: {e}",
            error_code="StatusCheckError",
        )

    data = status.model_dump(mode="json", exclude={"scopes"})
    data["expected_scopes"] = scope_labels(expected)

    if not status.has_tokens:
        return build_success_response(
            data=data,
            message="Not authenticated. Use google_login to sign in.",
        )

    comparison = compare(status.scopes, expected)
    data["token_scopes"] = scope_labels(status.scopes)
    data["missing_scopes"] = scope_labels(comparison.missing)

    if not status.authenticated:
        message = (
            "Credentials are expired and cannot be refreshed. "
            "Use google_login to re-authenticate."
        )
    else:
        message = "Authenticated with Google"
        if comparison.missing:
            message += (
                ". Some configured scopes are not granted yet; they will be "
                "requested on first use or with google_login."
            )

    return build_success_response(data=data, message=message)
