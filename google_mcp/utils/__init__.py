"""Shared helpers: the error taxonomy and at-rest encryption."""

from google_mcp.utils.encryption import (
    decrypt_data,
    derive_key,
    encrypt_data,
    generate_key,
    key_from_hex,
)
from google_mcp.utils.errors import (
    AuthError,
    AuthErrorKind,
    AuthTimeoutError,
    ConfigurationError,
    CsrfMismatchError,
    GoogleMCPError,
    InvalidGrantError,
    MalformedResponseError,
    PkceMismatchError,
    TokenStoreError,
    TransportError,
    UserDeniedError,
)

__all__ = [
    # Encryption utilities
    "generate_key",
    "encrypt_data",
    "decrypt_data",
    "key_from_hex",
    "derive_key",
    # Exception hierarchy
    "GoogleMCPError",
    "AuthError",
    "AuthErrorKind",
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
