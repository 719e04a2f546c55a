"""Tests for tools/base.py utilities."""

from __future__ import annotations

from google_mcp.tools.base import (
    ResponseKeys,
    build_auth_error_response,
    build_error_response,
    build_success_response,
)
from google_mcp.utils.errors import CsrfMismatchError, TransportError


class TestBuildSuccessResponse:
    """Tests for build_success_response."""

    def test_basic_response(self):
        """Test basic success response with data."""
        result = build_success_response(data={"key": "value"})
        assert result[ResponseKeys.STATUS] == "success"
        assert result[ResponseKeys.DATA] == {"key": "value"}
        assert ResponseKeys.MESSAGE not in result
        assert ResponseKeys.COUNT not in result

    def test_response_with_all_options(self):
        """Test success response with message and count."""
        result = build_success_response(data={"items": []}, message="Found items", count=0)
        assert result[ResponseKeys.MESSAGE] == "Found items"
        assert result[ResponseKeys.COUNT] == 0


class TestBuildErrorResponse:
    """Tests for build_error_response."""

    def test_basic_error(self):
        """Test basic error response."""
        result = build_error_response(error="Something went wrong")
        assert result[ResponseKeys.STATUS] == "error"
        assert result[ResponseKeys.ERROR] == "Something went wrong"
        assert ResponseKeys.ERROR_CODE not in result

    def test_error_with_code_and_details(self):
        """Test error code and details are merged into the response."""
        result = build_error_response(
            error="Validation failed",
            error_code="VALIDATION",
            details={"field": "scopes"},
        )
        assert result[ResponseKeys.ERROR_CODE] == "VALIDATION"
        assert result["field"] == "scopes"


class TestBuildAuthErrorResponse:
    """Tests for build_auth_error_response."""

    def test_kind_and_retryable(self):
        """The error kind becomes the error code."""
        result = build_auth_error_response(TransportError("Token endpoint unreachable"))
        assert result[ResponseKeys.ERROR_CODE] == "transport"
        assert result[ResponseKeys.RETRYABLE] is True
        assert result[ResponseKeys.ERROR] == "Token endpoint unreachable"

    def test_not_retryable_with_details(self):
        """Error details are carried and CSRF is not retryable."""
        result = build_auth_error_response(
            CsrfMismatchError("State mismatch", details={"path": "/auth/callback"})
        )
        assert result[ResponseKeys.ERROR_CODE] == "csrf_mismatch"
        assert result[ResponseKeys.RETRYABLE] is False
        assert result["path"] == "/auth/callback"
