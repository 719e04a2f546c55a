"""Fixtures for tool tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from pytest_mock import MockerFixture

from google_mcp.auth.manager import AuthManager, AuthState, AuthStatus
from google_mcp.auth.scopes import GMAIL_READONLY_SCOPE, GMAIL_SEND_SCOPE


@pytest.fixture
def mock_manager(mocker: MockerFixture) -> MagicMock:
    """Mock AuthManager with async methods and a real-looking config."""
    manager = mocker.MagicMock(spec=AuthManager)
    manager.config.default_scopes = frozenset({GMAIL_READONLY_SCOPE, GMAIL_SEND_SCOPE})
    manager.authenticate = mocker.AsyncMock()
    manager.logout = mocker.AsyncMock()
    manager.status = mocker.AsyncMock()
    return manager


@pytest.fixture
def authenticated_status() -> AuthStatus:
    """Status of a fresh token holding only the read scope."""
    now = datetime.now(UTC)
    return AuthStatus(
        authenticated=True,
        has_tokens=True,
        state=AuthState.AUTHENTICATED,
        scopes=[GMAIL_READONLY_SCOPE],
        expires_at=now + timedelta(hours=1),
        seconds_until_expiry=3600.0,
        needs_refresh=False,
        renewable=True,
        created_at=now,
        version="1",
    )
