"""Base utilities for Google MCP tools.

This module provides the standardized response builders shared by all
tools, and the conversion from auth errors to error responses.
"""

from __future__ import annotations

import logging
from typing import Any

from google_mcp.utils.errors import AuthError

logger = logging.getLogger(__name__)


# =============================================================================
# Standard Response Keys
# =============================================================================


class ResponseKeys:
    """Standard keys for tool responses."""

    STATUS = "status"
    DATA = "data"
    MESSAGE = "message"
    COUNT = "count"
    ERROR = "error"
    ERROR_CODE = "error_code"
    RETRYABLE = "retryable"


# =============================================================================
# Response Builders
# =============================================================================


def build_success_response(
    data: Any,
    message: str | None = None,
    count: int | None = None,
) -> dict[str, Any]:
    """Build standardized success response.

    Args:
        data: Tool-specific payload.
        message: Optional human-readable message.
        count: Optional item count.

    Returns:
        Standardized success response dict.
    """
    response: dict[str, Any] = {
        ResponseKeys.STATUS: "success",
        ResponseKeys.DATA: data,
    }
    if message:
        response[ResponseKeys.MESSAGE] = message
    if count is not None:
        response[ResponseKeys.COUNT] = count
    return response


def build_error_response(
    error: str,
    error_code: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build standardized error response.

    Args:
        error: Human-readable error message.
        error_code: Optional error code for programmatic handling.
        details: Optional additional error details.

    Returns:
        Standardized error response dict.
    """
    response: dict[str, Any] = {
        ResponseKeys.STATUS: "error",
        ResponseKeys.ERROR: error,
    }
    if error_code:
        response[ResponseKeys.ERROR_CODE] = error_code
    if details:
        response.update(details)
    return response


def build_auth_error_response(error: AuthError) -> dict[str, Any]:
    """Build an error response from an auth error.

    The error code is the error's kind (``"timeout"``, ``"user_denied"``...),
    and ``retryable`` tells the agent whether asking again can help.
    """
    return build_error_response(
        error=error.message,
        error_code=error.kind.value,
        details={**error.details, ResponseKeys.RETRYABLE: error.retryable},
    )


__all__ = [
    "ResponseKeys",
    "build_success_response",
    "build_error_response",
    "build_auth_error_response",
]
