"""In-memory holder for the decrypted token set."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime

from google_mcp.auth.tokens import TokenSet

logger = logging.getLogger(__name__)


class TokenCache:
    """TTL-aware in-memory token holder.

    ``get()`` only returns a token while it is fresh, meaning before its
    expiry minus the refresh-ahead threshold. ``peek()`` returns whatever is
    held so the manager can refresh a due token without re-reading disk.

    The cache never reads the token store itself; the auth manager decides
    when to consult the store on a miss.
    """

    def __init__(
        self,
        refresh_ahead: float,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize an empty cache.

        Args:
            refresh_ahead: Seconds before expiry a token stops being fresh.
            clock: Returns the current aware UTC time. Defaults to
                ``datetime.now(UTC)``.
        """
        self._refresh_ahead = refresh_ahead
        self._clock = clock or (lambda: datetime.now(UTC))
        self._tokens: TokenSet | None = None
        self._lock = threading.Lock()

    def get(self) -> TokenSet | None:
        """Return the held token set if it is not yet due for refresh."""
        with self._lock:
            tokens = self._tokens
        if tokens is None or tokens.is_due(self._refresh_ahead, self._clock()):
            return None
        return tokens

    def peek(self) -> TokenSet | None:
        """Return the held token set regardless of expiry."""
        with self._lock:
            return self._tokens

    def set(self, tokens: TokenSet) -> None:
        """Replace the held token set."""
        with self._lock:
            self._tokens = tokens
        logger.debug(
            "Token cache updated, refresh due at %s",
            tokens.refresh_due_at(self._refresh_ahead).isoformat(),
        )

    def invalidate(self) -> None:
        """Drop the held token set."""
        with self._lock:
            self._tokens = None
        logger.debug("Token cache invalidated")


__all__ = ["TokenCache"]
