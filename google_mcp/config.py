"""Validated, immutable configuration for the authentication core.

Configuration is read once at process start, usually from environment
variables populated by ``python-dotenv``, and never changes afterwards.

Environment variables:
    GOOGLE_CLIENT_ID: OAuth client ID (required).
    GOOGLE_CLIENT_SECRET: OAuth client secret (required).
    TOKEN_ENCRYPTION_KEY: 64 hex chars, or any passphrase (required).
    GOOGLE_REDIRECT_URI: Registered redirect URI
        (default ``http://localhost:<port>/auth/callback``).
    OAUTH_CALLBACK_PORT: Local callback port (default: redirect URI port, 8080).
    OAUTH_CALLBACK_TIMEOUT: Callback wait in milliseconds (default 300000).
    OAUTH_REFRESH_AHEAD_SECONDS: Refresh this long before expiry (default 300).
    OAUTH_SHUTDOWN_GRACE: Seconds a callback connection may take (default 2).
    OAUTH_AUTO_CLOSE_DELAY: Success page auto-close delay in ms (default 3000).
    OAUTH_HTTP_TIMEOUT: Token endpoint timeout in seconds (default 30).
    TOKEN_STORE_PATH: Encrypted token file
        (default ``~/.google-mcp/tokens/token.enc``).
    GOOGLE_SCOPES: Default scopes, space or comma separated.
    GOOGLE_AUTH_URI / GOOGLE_TOKEN_URI / GOOGLE_REVOKE_URI: Endpoint overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)

from google_mcp.auth.scopes import DEFAULT_SCOPES, parse_scopes
from google_mcp.utils.errors import ConfigurationError

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
GOOGLE_REVOKE_URI = "https://oauth2.googleapis.com/revoke"

DEFAULT_CALLBACK_PORT = 8080
DEFAULT_CALLBACK_PATH = "/auth/callback"
DEFAULT_TOKEN_PATH = Path.home() / ".google-mcp" / "tokens" / "token.enc"

LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})


class AuthConfig(BaseModel):
    """Immutable OAuth client and token lifecycle settings.

    Construct directly (tests) or with ``AuthConfig.from_env()``. Any bound
    violation raises ``ConfigurationError`` from ``from_env``; direct
    construction raises pydantic's ``ValidationError``.

    Attributes:
        client_id: OAuth client ID.
        client_secret: OAuth client secret (masked in repr).
        redirect_uri: Redirect URI registered with the provider. Must be a
            loopback ``http`` URL on ``callback_port``.
        callback_port: Port the callback listener binds.
        callback_timeout: Seconds to wait for the browser redirect.
        refresh_ahead: Seconds before expiry a token counts as due.
        shutdown_grace: Upper bound in seconds on handling one callback
            connection, so the port is released promptly.
        auto_close_delay_ms: Delay before the success page closes itself.
        encryption_secret: Secret the token file key is derived from.
        token_path: Location of the encrypted token file.
        default_scopes: Scopes requested when a caller names none.
        http_timeout: Timeout in seconds for token endpoint requests.
    """

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(..., min_length=1)
    client_secret: SecretStr
    redirect_uri: str = (
        f"http://localhost:{DEFAULT_CALLBACK_PORT}{DEFAULT_CALLBACK_PATH}"
    )
    callback_port: int = Field(default=DEFAULT_CALLBACK_PORT, ge=1, le=65535)
    callback_timeout: float = Field(default=300.0, ge=1.0, le=3600.0)
    refresh_ahead: float = Field(default=300.0, ge=0.0, le=3600.0)
    shutdown_grace: float = Field(default=2.0, ge=0.0, le=30.0)
    auto_close_delay_ms: int = Field(default=3000, ge=0, le=60000)
    encryption_secret: SecretStr
    token_path: Path = DEFAULT_TOKEN_PATH
    default_scopes: frozenset[str] = DEFAULT_SCOPES
    auth_uri: str = GOOGLE_AUTH_URI
    token_uri: str = GOOGLE_TOKEN_URI
    revoke_uri: str = GOOGLE_REVOKE_URI
    http_timeout: float = Field(default=30.0, ge=1.0, le=300.0)

    @field_validator("client_secret", "encryption_secret")
    @classmethod
    def _secret_not_blank(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("default_scopes")
    @classmethod
    def _scopes_not_empty(cls, value: frozenset[str]) -> frozenset[str]:
        if not value:
            raise ValueError("at least one default scope is required")
        return value

    @model_validator(mode="after")
    def _redirect_matches_listener(self) -> AuthConfig:
        parsed = urlparse(self.redirect_uri)
        if parsed.scheme != "http":
            raise ValueError("redirect_uri must use http (loopback redirect)")
        if parsed.hostname not in LOOPBACK_HOSTS:
            raise ValueError("redirect_uri must point at a loopback host")
        if parsed.port != self.callback_port:
            raise ValueError(
                f"redirect_uri port {parsed.port} does not match "
                f"callback_port {self.callback_port}"
            )
        return self

    @property
    def callback_host(self) -> str:
        """Host the callback listener binds."""
        return urlparse(self.redirect_uri).hostname or "localhost"

    @property
    def callback_path(self) -> str:
        """Path component of the redirect URI."""
        return urlparse(self.redirect_uri).path or "/"

    @classmethod
    def from_env(cls) -> AuthConfig:
        """Build the configuration from environment variables.

        Returns:
            A validated AuthConfig.

        Raises:
            ConfigurationError: If a required variable is missing, a number
                does not parse, or a bound is violated.
        """
        missing = [
            var
            for var in ("GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "TOKEN_ENCRYPTION_KEY")
            if not os.getenv(var)
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                details={"missing": missing},
            )

        values: dict[str, object] = {
            "client_id": os.environ["GOOGLE_CLIENT_ID"],
            "client_secret": os.environ["GOOGLE_CLIENT_SECRET"],
            "encryption_secret": os.environ["TOKEN_ENCRYPTION_KEY"],
        }

        try:
            port_env = os.getenv("OAUTH_CALLBACK_PORT")
            redirect_env = os.getenv("GOOGLE_REDIRECT_URI")
            if redirect_env:
                values["redirect_uri"] = redirect_env
                parsed_port = urlparse(redirect_env).port
                values["callback_port"] = int(port_env) if port_env else parsed_port
            elif port_env:
                port = int(port_env)
                values["callback_port"] = port
                values["redirect_uri"] = (
                    f"http://localhost:{port}{DEFAULT_CALLBACK_PATH}"
                )

            timeout_ms = os.getenv("OAUTH_CALLBACK_TIMEOUT")
            if timeout_ms:
                values["callback_timeout"] = int(timeout_ms) / 1000
            for env_var, field in (
                ("OAUTH_REFRESH_AHEAD_SECONDS", "refresh_ahead"),
                ("OAUTH_SHUTDOWN_GRACE", "shutdown_grace"),
                ("OAUTH_HTTP_TIMEOUT", "http_timeout"),
            ):
                raw = os.getenv(env_var)
                if raw:
                    values[field] = float(raw)
            auto_close = os.getenv("OAUTH_AUTO_CLOSE_DELAY")
            if auto_close:
                values["auto_close_delay_ms"] = int(auto_close)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid numeric OAuth setting: {e}",
            ) from e

        if token_path := os.getenv("TOKEN_STORE_PATH"):
            values["token_path"] = Path(token_path).expanduser()
        if scopes := os.getenv("GOOGLE_SCOPES"):
            values["default_scopes"] = parse_scopes(scopes)
        for env_var, field in (
            ("GOOGLE_AUTH_URI", "auth_uri"),
            ("GOOGLE_TOKEN_URI", "token_uri"),
            ("GOOGLE_REVOKE_URI", "revoke_uri"),
        ):
            if value := os.getenv(env_var):
                values[field] = value

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            problems = [
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in e.errors()
            ]
            raise ConfigurationError(
                "Invalid OAuth configuration",
                details={"problems": problems},
            ) from e


__all__ = [
    "AuthConfig",
    "GOOGLE_AUTH_URI",
    "GOOGLE_TOKEN_URI",
    "GOOGLE_REVOKE_URI",
    "DEFAULT_CALLBACK_PORT",
    "DEFAULT_CALLBACK_PATH",
    "DEFAULT_TOKEN_PATH",
]
