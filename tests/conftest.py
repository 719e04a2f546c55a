"""Pytest configuration and fixtures for Google MCP tests."""

from __future__ import annotations

import socket
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import requests

from google_mcp.auth.scopes import GMAIL_READONLY_SCOPE
from google_mcp.auth.tokens import TokenSet
from google_mcp.config import AuthConfig

READ_SCOPE = GMAIL_READONLY_SCOPE

TEST_HEX_KEY = "ab" * 32


def find_free_port() -> int:
    """Ask the OS for a currently unused loopback port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


def _browser_get(url: str) -> requests.Response:
    # Loopback only: ignore proxy settings from the environment
    with requests.Session() as session:
        session.trust_env = False
        return session.get(url, timeout=5)


@pytest.fixture
def browser_get() -> Callable[[str], requests.Response]:
    """Fixture providing a blocking GET that plays the browser redirect."""
    return _browser_get


@pytest.fixture
def free_port() -> int:
    """Fixture providing an unused loopback port."""
    return find_free_port()


@pytest.fixture
def token_path(tmp_path: Path) -> Path:
    """Fixture providing a token file location inside a temp directory."""
    return tmp_path / "tokens" / "token.enc"


@pytest.fixture
def auth_config(free_port: int, token_path: Path) -> AuthConfig:
    """Fixture providing a config with a free callback port and temp store."""
    return AuthConfig(
        client_id="test-client-id.apps.googleusercontent.com",
        client_secret="test-client-secret",
        redirect_uri=f"http://127.0.0.1:{free_port}/auth/callback",
        callback_port=free_port,
        callback_timeout=5.0,
        shutdown_grace=0.5,
        encryption_secret=TEST_HEX_KEY,
        token_path=token_path,
        default_scopes=frozenset({READ_SCOPE}),
    )


@pytest.fixture
def mock_token() -> dict[str, object]:
    """Fixture providing a token endpoint success payload."""
    return {
        "access_token": "mock-access-token",
        "refresh_token": "mock-refresh-token",
        "token_type": "Bearer",
        "expires_in": 3600,
        "scope": READ_SCOPE,
    }


@pytest.fixture
def make_tokens() -> Callable[..., TokenSet]:
    """Fixture providing a TokenSet factory."""

    def _make(
        access_token: str = "mock-access-token",
        refresh_token: str | None = "mock-refresh-token",
        expires_in: float = 3600,
        scopes: frozenset[str] = frozenset({READ_SCOPE}),
    ) -> TokenSet:
        return TokenSet(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=datetime.now(UTC) + timedelta(seconds=expires_in),
            scopes=scopes,
        )

    return _make
