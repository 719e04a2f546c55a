"""Single-use local HTTP listener that captures the OAuth redirect.

The listener binds the configured loopback port as soon as it is created,
so a port conflict surfaces before the browser is ever opened. It then
serves exactly one authorization attempt:

1. ``GET <callback_path>?code=...&state=...``: state is checked first; on a
   match the code is captured and a confirmation page is served.
2. ``GET <callback_path>?error=...&state=...``: the user declined; an error
   page is served and ``AuthorizationDenied`` is returned.
3. Any state mismatch: an error page is served and ``CsrfMismatchError`` is
   raised. No code from that request is ever returned.

Requests to other paths (``/favicon.ico``) get a 404 and the listener keeps
waiting. The socket is closed after the callback or at the deadline,
whichever comes first. The deadline is enforced by the serving thread
itself, so it holds even if the awaiting caller is cancelled.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import secrets
import socket
import threading
import time
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import TYPE_CHECKING
from urllib.parse import parse_qs, urlparse

from google_mcp.auth.pages import render_error_page, render_success_page
from google_mcp.utils.errors import (
    AuthError,
    AuthTimeoutError,
    ConfigurationError,
    CsrfMismatchError,
    MalformedResponseError,
)

if TYPE_CHECKING:
    from google_mcp.config import AuthConfig

logger = logging.getLogger(__name__)

# Floor for the per-connection socket timeout when shutdown_grace is 0.
_MIN_CONNECTION_TIMEOUT = 0.1


@dataclass(frozen=True)
class AuthorizationCode:
    """Authorization code captured from a redirect with a valid state."""

    code: str = field(repr=False)
    state: str = field(repr=False)


@dataclass(frozen=True)
class AuthorizationDenied:
    """The provider redirected back with an ``error`` parameter."""

    error: str
    description: str | None = None


CallbackResult = AuthorizationCode | AuthorizationDenied


class _CallbackServer(HTTPServer):
    """HTTPServer that logs handler failures instead of printing them."""

    def handle_error(self, request: object, client_address: object) -> None:
        logger.warning(
            "OAuth callback server: error handling request from %s",
            client_address,
            exc_info=True,
        )


class _CallbackServerV6(_CallbackServer):
    address_family = socket.AF_INET6


def _first(params: dict[str, list[str]], name: str) -> str | None:
    values = params.get(name)
    return values[0] if values else None


class CallbackListener:
    """One-shot loopback listener for the OAuth authorization redirect.

    A listener serves a single authorization attempt and is never reused,
    so a stale redirect from an earlier attempt cannot inject a code.

    Attributes:
        port: The bound port.

    Example:
        >>> with CallbackListener(config) as listener:
        ...     result = await listener.wait(session.state)
    """

    def __init__(self, config: AuthConfig) -> None:
        """Bind the callback port.

        Args:
            config: Auth configuration supplying host, port, path, timeout,
                grace period and page settings.

        Raises:
            ConfigurationError: If the port is already in use or cannot be
                bound. There is no fallback port: the redirect URI registered
                with the provider names exactly one port.
        """
        self._config = config
        self._path = config.callback_path
        self._lock = threading.Lock()
        self._expected_state: str | None = None
        self._result: CallbackResult | None = None
        self._error: AuthError | None = None
        self._used = False
        self._serving = False
        self._closed = False
        self._server = self._bind(config.callback_host, config.callback_port)
        logger.debug(
            "OAuth callback listener bound to %s:%d%s",
            config.callback_host,
            self.port,
            self._path,
        )

    @property
    def port(self) -> int:
        """Port the listener is bound to."""
        return int(self._server.server_address[1])

    @property
    def closed(self) -> bool:
        """Whether the socket has been released."""
        return self._closed

    def _bind(self, host: str, port: int) -> HTTPServer:
        server_class = _CallbackServerV6 if ":" in host else _CallbackServer
        try:
            return server_class((host, port), self._make_handler())
        except OSError as e:
            if e.errno == errno.EADDRINUSE or "Address already in use" in str(e):
                raise ConfigurationError(
                    f"OAuth callback port {port} is already in use",
                    details={
                        "port": port,
                        "hint": "Another authorization attempt or process holds "
                        "the port. Free it or change OAUTH_CALLBACK_PORT and the "
                        "registered redirect URI.",
                    },
                ) from e
            raise ConfigurationError(
                f"Could not bind OAuth callback listener on {host}:{port}: {e}",
                details={"port": port, "error_type": type(e).__name__},
            ) from e

    def _make_handler(self) -> type[BaseHTTPRequestHandler]:
        listener = self
        connection_timeout = max(self._config.shutdown_grace, _MIN_CONNECTION_TIMEOUT)

        class CallbackHandler(BaseHTTPRequestHandler):
            """HTTP request handler for the OAuth redirect."""

            # Bounds reading the request and writing the page.
            timeout = connection_timeout

            def do_GET(handler_self) -> None:  # noqa: N802, N805
                parsed = urlparse(handler_self.path)
                if parsed.path != listener._path:
                    handler_self._reply(404, b"<h1>Not Found</h1>")
                    return

                status, body = listener._handle_callback(parse_qs(parsed.query))
                handler_self._reply(status, body)

            def _reply(handler_self, status: int, body: bytes) -> None:  # noqa: N805
                handler_self.send_response(status)
                handler_self.send_header("Content-Type", "text/html; charset=utf-8")
                handler_self.send_header("Content-Length", str(len(body)))
                handler_self.send_header("Cache-Control", "no-store")
                handler_self.send_header("Connection", "close")
                handler_self.end_headers()
                try:
                    handler_self.wfile.write(body)
                except OSError as e:
                    # Browser went away or was too slow; the outcome stands.
                    logger.debug("OAuth callback page not fully delivered: %s", e)

            def log_message(handler_self, format: str, *args: object) -> None:  # noqa: N805
                logger.debug("OAuth callback server: %s", format % args)

        return CallbackHandler

    def _handle_callback(self, params: dict[str, list[str]]) -> tuple[int, bytes]:
        """Record the outcome of a callback request and pick the page to serve."""
        returned_state = _first(params, "state")
        expected = self._expected_state or ""

        if not returned_state or not secrets.compare_digest(
            returned_state.encode("utf-8"), expected.encode("utf-8")
        ):
            logger.warning("OAuth callback rejected: state mismatch")
            # Don't leak state values in error details
            self._error = CsrfMismatchError(
                "State mismatch - possible CSRF attack",
                details={"hint": "Request may have been tampered with"},
            )
            return 400, render_error_page(
                "Security Error",
                "The authentication response did not match this sign-in "
                "attempt. Please start again.",
            )

        error = _first(params, "error")
        if error:
            description = _first(params, "error_description")
            logger.info("OAuth callback reported error: %s", error)
            self._result = AuthorizationDenied(error=error, description=description)
            return 400, render_error_page(
                "Authentication Failed",
                f"OAuth error: {error}. The request was denied or failed.",
            )

        code = _first(params, "code")
        if not code:
            self._error = MalformedResponseError(
                "No authorization code received",
                details={"params": sorted(params)},
            )
            return 400, render_error_page(
                "No Authorization Code",
                "No authorization code was received from Google. Please try again.",
            )

        self._result = AuthorizationCode(code=code, state=returned_state)
        logger.info("OAuth callback received authorization code")
        return 200, render_success_page(self._config.auto_close_delay_ms)

    def _finished(self) -> bool:
        return self._result is not None or self._error is not None

    def _serve(self, deadline: float) -> None:
        """Handle requests until a callback arrives or the deadline passes."""
        try:
            while not self._finished():
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self._server.timeout = remaining
                self._server.handle_request()
        finally:
            with self._lock:
                self._serving = False
            self.close()

    async def wait(
        self, expected_state: str, timeout: float | None = None
    ) -> CallbackResult:
        """Wait for the redirect carrying ``expected_state``.

        Args:
            expected_state: The PKCE session's state value.
            timeout: Seconds to wait. Defaults to the configured
                ``callback_timeout``.

        Returns:
            ``AuthorizationCode`` on success, ``AuthorizationDenied`` if the
            provider reported an error.

        Raises:
            ConfigurationError: If the listener was already used or closed.
            CsrfMismatchError: If the callback state did not match.
            MalformedResponseError: If the callback had no code and no error.
            AuthTimeoutError: If nothing arrived before the deadline.
        """
        with self._lock:
            if self._used or self._closed:
                raise ConfigurationError(
                    "OAuth callback listener is single-use and has already been used"
                )
            self._used = True
            self._serving = True
            self._expected_state = expected_state

        if timeout is None:
            timeout = self._config.callback_timeout
        deadline = time.monotonic() + timeout

        await asyncio.to_thread(self._serve, deadline)

        if self._error is not None:
            raise self._error
        if self._result is None:
            raise AuthTimeoutError(
                "Authentication timed out waiting for the browser callback",
                details={"timeout_seconds": timeout},
            )
        return self._result

    def close(self) -> None:
        """Release the port. Idempotent.

        While a ``wait`` is in progress the serving thread owns the socket and
        closes it itself when it finishes.
        """
        with self._lock:
            if self._closed or self._serving:
                return
            self._closed = True
        self._server.server_close()
        logger.debug("OAuth callback listener closed")

    def __enter__(self) -> CallbackListener:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = [
    "CallbackListener",
    "AuthorizationCode",
    "AuthorizationDenied",
    "CallbackResult",
]
