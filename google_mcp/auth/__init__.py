"""Authentication core for Google MCP.

This package obtains, persists and renews the user's OAuth credentials:

- PKCE S256 sessions and the consent URL
- A single-use loopback listener for the OAuth redirect
- Token endpoint client (code exchange, refresh, revocation)
- AES-256-GCM encrypted token file and an in-memory cache
- ``AuthManager``, which ties them together with single-flight refresh

Usage:
    >>> from google_mcp.auth import AuthManager
    >>> from google_mcp.config import AuthConfig
    >>>
    >>> manager = AuthManager(AuthConfig.from_env())
    >>> token = await manager.ensure_valid_token()
"""

from google_mcp.auth.cache import TokenCache
from google_mcp.auth.callback import (
    AuthorizationCode,
    AuthorizationDenied,
    CallbackListener,
)
from google_mcp.auth.exchange import TokenExchangeClient
from google_mcp.auth.manager import AuthManager, AuthState, AuthStatus
from google_mcp.auth.pkce import PKCESession, build_authorization_url
from google_mcp.auth.scopes import DEFAULT_SCOPES, parse_scopes
from google_mcp.auth.storage import TokenStore
from google_mcp.auth.tokens import TokenSet

__all__ = [
    # Manager
    "AuthManager",
    "AuthState",
    "AuthStatus",
    # Components
    "TokenCache",
    "TokenStore",
    "TokenExchangeClient",
    "CallbackListener",
    "AuthorizationCode",
    "AuthorizationDenied",
    "PKCESession",
    "build_authorization_url",
    # Models
    "TokenSet",
    "DEFAULT_SCOPES",
    "parse_scopes",
]
