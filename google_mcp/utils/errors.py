"""Exception hierarchy for the Google MCP authentication core.

All authentication failures are instances of ``AuthError`` and carry a
``kind`` drawn from the closed ``AuthErrorKind`` enumeration, so callers can
branch on the kind exhaustively instead of matching on message strings.

Never put access tokens, refresh tokens or PKCE verifiers into ``message``
or ``details``: both end up in logs and MCP tool responses.
"""

from __future__ import annotations

from enum import Enum


class GoogleMCPError(Exception):
    """Base exception for all Google MCP errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context.
    """

    def __init__(self, message: str, details: dict[str, object] | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class AuthErrorKind(str, Enum):
    """Every way an authentication operation can fail.

    Attributes:
        CONFIGURATION: Fatal setup problem (port already bound, missing
            client secret, provider rejected the client).
        USER_DENIED: The user declined consent in the browser.
        CSRF_MISMATCH: Callback state did not match the pending session.
        PKCE_MISMATCH: Provider rejected the code verifier.
        TIMEOUT: No callback arrived within the listener timeout.
        INVALID_GRANT: Refresh token (or code) is expired, revoked or used.
        TRANSPORT: Network failure or provider-side 5xx / 429.
        MALFORMED_RESPONSE: Provider or callback payload could not be used.
        STORAGE: The encrypted token file could not be written.
    """

    CONFIGURATION = "configuration"
    USER_DENIED = "user_denied"
    CSRF_MISMATCH = "csrf_mismatch"
    PKCE_MISMATCH = "pkce_mismatch"
    TIMEOUT = "timeout"
    INVALID_GRANT = "invalid_grant"
    TRANSPORT = "transport"
    MALFORMED_RESPONSE = "malformed_response"
    STORAGE = "storage"


# Kinds a caller may retry, either immediately or after the user acts.
RETRYABLE_KINDS = frozenset(
    {AuthErrorKind.USER_DENIED, AuthErrorKind.TIMEOUT, AuthErrorKind.TRANSPORT}
)


class AuthError(GoogleMCPError):
    """Base class for authentication and token lifecycle errors.

    Subclasses bind exactly one ``AuthErrorKind`` via the ``kind`` class
    attribute. Instantiate the subclasses, not this class.
    """

    kind: AuthErrorKind

    @property
    def retryable(self) -> bool:
        """Whether retrying the whole operation can succeed."""
        return self.kind in RETRYABLE_KINDS


class ConfigurationError(AuthError):
    """Fatal configuration problem, surfaced immediately and never retried.

    Examples:
        - Missing GOOGLE_CLIENT_ID or GOOGLE_CLIENT_SECRET
        - Callback port already bound by another process
        - Provider answered ``invalid_client``
    """

    kind = AuthErrorKind.CONFIGURATION


class UserDeniedError(AuthError):
    """The user declined consent (``error=access_denied`` on the callback)."""

    kind = AuthErrorKind.USER_DENIED


class CsrfMismatchError(AuthError):
    """Callback state differs from the expected one; possible CSRF attack."""

    kind = AuthErrorKind.CSRF_MISMATCH


class PkceMismatchError(AuthError):
    """The provider rejected the PKCE code verifier for this code."""

    kind = AuthErrorKind.PKCE_MISMATCH


class AuthTimeoutError(AuthError):
    """No callback arrived before the listener deadline.

    The caller must restart the flow with a fresh PKCE session.
    """

    kind = AuthErrorKind.TIMEOUT


class InvalidGrantError(AuthError):
    """The refresh token or authorization code is dead.

    Raised by the token exchange client. The auth manager handles it on the
    refresh path by falling back to interactive authorization.
    """

    kind = AuthErrorKind.INVALID_GRANT


class TransportError(AuthError):
    """Network failure talking to the provider.

    Attributes:
        status_code: HTTP status code, when the provider answered at all.
    """

    kind = AuthErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        """Initialize the transport error.

        Args:
            message: Human-readable error description.
            status_code: HTTP status code, if a response was received.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message, details)
        self.status_code = status_code


class MalformedResponseError(AuthError):
    """A token response or callback request lacked required fields."""

    kind = AuthErrorKind.MALFORMED_RESPONSE


class TokenStoreError(AuthError):
    """Writing or deleting the encrypted token file failed."""

    kind = AuthErrorKind.STORAGE


__all__ = [
    "GoogleMCPError",
    "AuthErrorKind",
    "RETRYABLE_KINDS",
    "AuthError",
    "ConfigurationError",
    "UserDeniedError",
    "CsrfMismatchError",
    "PkceMismatchError",
    "AuthTimeoutError",
    "InvalidGrantError",
    "TransportError",
    "MalformedResponseError",
    "TokenStoreError",
]
