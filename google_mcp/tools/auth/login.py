"""Google login tool - Interactive PKCE authorization.

Opens the user's browser on the Google consent page and waits on the local
callback listener until the redirect arrives or the callback timeout passes.
The resulting tokens are stored encrypted and cached by the auth manager.

Scopes:
    Without ``scopes`` the configured default scopes are requested. Google
    merges previously granted scopes into the new grant
    (``include_granted_scopes``), so asking for more never drops old ones.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from google_mcp.auth.scopes import scope_labels
from google_mcp.tools.base import (
    build_auth_error_response,
    build_error_response,
    build_success_response,
)
from google_mcp.utils.errors import AuthError

if TYPE_CHECKING:
    from google_mcp.auth.manager import AuthManager

logger = logging.getLogger(__name__)


async def google_login(
    manager: AuthManager, scopes: list[str] | None = None
) -> dict[str, Any]:
    """Sign in to Google through the browser.

    Args:
        manager: The process's auth manager.
        scopes: Scopes to request. Defaults to the configured scopes.

    Returns:
        Success: {status, data: {scopes}, message}
        Error: {status, error, error_code, retryable, ...details}
    """
    try:
        granted = await manager.authenticate(scopes)
    except AuthError as e:
        logger.error("Authentication failed: %s", e)
        return build_auth_error_response(e)
    except Exception as e:
        logger.error("Unexpected error during login: %s", e)
        return build_error_response(
            error=f"Login failed: {e}",
            error_code="LoginError",
        )

    labels = scope_labels(granted)
    logger.info("Successfully authenticated with %d scopes", len(labels))
    return build_success_response(
        data={"scopes": labels},
        message="Successfully authenticated with Google",
        count=len(labels),
    )
