"""Auth manager: the public entry point of the authentication core.

Collaborators (per-resource API wrappers, MCP tools) use two operations:

- ``ensure_valid_token(scopes)`` returns a currently valid access token,
  refreshing or re-authorizing as needed.
- ``ensure_scopes(scopes)`` makes sure the scopes are granted, prompting the
  user through the browser if they are not.

Lifecycle::

    UNAUTHENTICATED -> AWAITING_CALLBACK -> EXCHANGING_CODE -> AUTHENTICATED
    AUTHENTICATED -> REFRESH_DUE -> REFRESHING -> AUTHENTICATED
    REFRESHING -> REVOKED_OR_EXPIRED_NO_REFRESH -> (interactive) ...

Concurrency: at most one interactive authorization and at most one refresh
run at any time. Callers that arrive while one is in flight await the same
task through ``asyncio.shield``, so a cancelled caller stops waiting without
tearing down a flow other callers depend on. Before a new flight starts the
cache is checked again, so a late caller never replays a refresh token the
provider has already rotated.
"""

from __future__ import annotations

import asyncio
import logging
import webbrowser
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from google.oauth2.credentials import Credentials
from pydantic import BaseModel, Field

from google_mcp.auth import pkce
from google_mcp.auth.cache import TokenCache
from google_mcp.auth.callback import AuthorizationDenied, CallbackListener
from google_mcp.auth.exchange import TokenExchangeClient
from google_mcp.auth.scopes import is_satisfied, parse_scopes, union
from google_mcp.auth.storage import TokenStore
from google_mcp.auth.tokens import TokenSet
from google_mcp.utils.encryption import derive_key
from google_mcp.utils.errors import (
    AuthError,
    AuthTimeoutError,
    ConfigurationError,
    InvalidGrantError,
    TokenStoreError,
    UserDeniedError,
)

if TYPE_CHECKING:
    from google_mcp.config import AuthConfig

logger = logging.getLogger(__name__)


class AuthState(str, Enum):
    """Where the manager is in the token lifecycle."""

    UNAUTHENTICATED = "unauthenticated"
    AWAITING_CALLBACK = "awaiting_callback"
    EXCHANGING_CODE = "exchanging_code"
    AUTHENTICATED = "authenticated"
    REFRESH_DUE = "refresh_due"
    REFRESHING = "refreshing"
    REVOKED_OR_EXPIRED_NO_REFRESH = "revoked_or_expired_no_refresh"


class AuthStatus(BaseModel):
    """Snapshot of the authentication state, safe to show to users.

    Never contains token values.
    """

    authenticated: bool = Field(..., description="Usable or renewable token present")
    has_tokens: bool = Field(..., description="A token set is stored")
    state: AuthState
    scopes: list[str] = Field(default_factory=list)
    expires_at: datetime | None = None
    seconds_until_expiry: float | None = None
    needs_refresh: bool | None = None
    renewable: bool | None = None
    created_at: datetime | None = None
    version: str | None = None


ListenerFactory = Callable[["AuthConfig"], CallbackListener]
BrowserOpener = Callable[[str], Any]


class AuthManager:
    """Obtains, caches, persists and renews the user's OAuth tokens.

    Every collaborator is injectable, so tests (and multiple isolated
    instances) need no global state.

    Example:
        >>> manager = AuthManager(AuthConfig.from_env())
        >>> token = await manager.ensure_valid_token([GMAIL_READONLY_SCOPE])
        >>> headers = {"Authorization": f"Bearer {token}"}
    """

    def __init__(
        self,
        config: AuthConfig,
        *,
        store: TokenStore | None = None,
        exchange: TokenExchangeClient | None = None,
        listener_factory: ListenerFactory | None = None,
        browser_opener: BrowserOpener | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            config: Immutable auth configuration.
            store: Token store. Defaults to an encrypted store at
                ``config.token_path`` keyed from ``config.encryption_secret``.
            exchange: Token endpoint client.
            listener_factory: Creates the single-use callback listener for
                each interactive attempt.
            browser_opener: Opens the consent URL. Defaults to
                ``webbrowser.open``.
            clock: Returns the current aware UTC time.
        """
        self._config = config
        self._store = store or TokenStore(
            config.token_path,
            derive_key(config.encryption_secret.get_secret_value()),
        )
        self._exchange = exchange or TokenExchangeClient(config)
        self._listener_factory = listener_factory or CallbackListener
        self._browser_opener = browser_opener or webbrowser.open
        self._clock = clock or (lambda: datetime.now(UTC))
        self._cache = TokenCache(config.refresh_ahead, clock=self._clock)
        self._state = AuthState.UNAUTHENTICATED
        self._auth_task: asyncio.Task[TokenSet] | None = None
        self._refresh_task: asyncio.Task[TokenSet] | None = None
        # Serializes store reads against store writes.
        self._store_lock = asyncio.Lock()

    @property
    def config(self) -> AuthConfig:
        """The configuration this manager was built with."""
        return self._config

    @property
    def state(self) -> AuthState:
        """Current lifecycle state."""
        return self._state

    # =========================================================================
    # Public API
    # =========================================================================

    async def ensure_valid_token(self, requested: Iterable[str] | None = None) -> str:
        """Return an access token that is valid and covers ``requested``.

        Args:
            requested: Scopes the caller needs. Defaults to the configured
                default scopes.

        Returns:
            The access token string.

        Raises:
            AuthError: Any error kind except ``InvalidGrantError`` on the
                refresh path, which falls back to interactive authorization
                and only surfaces that flow's error.
        """
        tokens = await self._valid_tokens(requested)
        return tokens.access_token

    async def ensure_scopes(self, requested: Iterable[str] | None = None) -> None:
        """Make sure ``requested`` scopes are granted.

        Returns at once if the granted scope set already covers them.
        Otherwise runs interactive authorization for the union of granted
        and requested scopes and replaces the stored token set.
        """
        scopes = self._resolve_scopes(requested)
        tokens = await self._current_tokens()
        granted = tokens.scopes if tokens is not None else frozenset()
        if tokens is not None and is_satisfied(granted, scopes):
            return

        logger.info("Requesting additional scopes: %s", sorted(scopes - granted))
        await self._authorize(union(granted, scopes))

    async def authenticate(self, requested: Iterable[str] | None = None) -> frozenset[str]:
        """Run the interactive flow regardless of current state.

        Returns:
            The granted scope set of the new token set.
        """
        tokens = await self._authorize(self._resolve_scopes(requested), force=True)
        return tokens.scopes

    async def status(self) -> AuthStatus:
        """Report the authentication state without contacting the provider."""
        tokens = await self._current_tokens()
        if tokens is None:
            return AuthStatus(authenticated=False, has_tokens=False, state=self._state)

        now = self._clock()
        return AuthStatus(
            authenticated=tokens.is_renewable or not tokens.is_expired(now),
            has_tokens=True,
            state=self._state,
            scopes=sorted(tokens.scopes),
            expires_at=tokens.expires_at,
            seconds_until_expiry=tokens.seconds_until_expiry(now),
            needs_refresh=tokens.is_due(self._config.refresh_ahead, now),
            renewable=tokens.is_renewable,
            created_at=tokens.created_at,
            version=tokens.version,
        )

    async def logout(self, revoke: bool = True) -> bool:
        """Forget the current tokens, optionally revoking them first.

        A running refresh is allowed to finish first, so its result is
        revoked and deleted too instead of being written back afterwards.
        A pending interactive authorization is cancelled. Revocation
        failures are logged and do not stop local deletion.

        Returns:
            True if there were tokens to forget.
        """
        await self._settle_flights()
        tokens = await self._current_tokens()

        if revoke and tokens is not None:
            try:
                await asyncio.to_thread(
                    self._exchange.revoke, tokens.refresh_token or tokens.access_token
                )
            except AuthError as e:
                logger.warning("Could not revoke token with provider: %s", e)

        async with self._store_lock:
            self._cache.invalidate()
            deleted = await asyncio.to_thread(self._store.clear)
        self._state = AuthState.UNAUTHENTICATED

        logger.info("Logged out (tokens present: %s)", tokens is not None)
        return deleted or tokens is not None

    async def get_credentials(self, requested: Iterable[str] | None = None) -> Credentials:
        """Build google-auth credentials for a Google API client.

        The credentials carry no refresh token, so the Google client library
        cannot refresh behind this manager's back. Call again per operation
        to pick up renewed tokens.
        """
        tokens = await self._valid_tokens(requested)
        return Credentials(  # type: ignore[no-untyped-call]
            token=tokens.access_token,
            expiry=tokens.expires_at.astimezone(UTC).replace(tzinfo=None),
            scopes=sorted(tokens.scopes),
            token_uri=self._config.token_uri,
            client_id=self._config.client_id,
        )

    async def close(self) -> None:
        """Cancel in-flight flows. The callback listener stops at its deadline."""
        tasks = [t for t in (self._auth_task, self._refresh_task) if t and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks)

    # =========================================================================
    # Token sources
    # =========================================================================

    def _resolve_scopes(self, requested: Iterable[str] | None) -> frozenset[str]:
        return parse_scopes(requested) or self._config.default_scopes

    async def _valid_tokens(self, requested: Iterable[str] | None) -> TokenSet:
        scopes = self._resolve_scopes(requested)
        tokens = await self._current_tokens()

        if tokens is None:
            return await self._authorize(scopes)
        if not is_satisfied(tokens.scopes, scopes):
            return await self._authorize(union(tokens.scopes, scopes))
        if tokens.is_due(self._config.refresh_ahead, self._clock()):
            return await self._renew(tokens, scopes)
        return tokens

    async def _settle_flights(self) -> None:
        """Wait out a running refresh and cancel a pending authorization."""
        while True:
            if self._auth_task is not None and not self._auth_task.done():
                self._auth_task.cancel()
                await asyncio.wait([self._auth_task])
                continue
            if self._refresh_task is not None and not self._refresh_task.done():
                await asyncio.wait([self._refresh_task])
                continue
            return

    async def _current_tokens(self) -> TokenSet | None:
        """Return the cached token set, loading it from the store on a miss."""
        tokens = self._cache.peek()
        if tokens is not None:
            return tokens

        async with self._store_lock:
            tokens = self._cache.peek()
            if tokens is not None:
                return tokens

            tokens = await asyncio.to_thread(self._store.load)
            if tokens is None:
                return None

            self._cache.set(tokens)
            if tokens.is_due(self._config.refresh_ahead, self._clock()):
                self._state = AuthState.REFRESH_DUE
            else:
                self._state = AuthState.AUTHENTICATED
            logger.debug("Loaded stored token set into cache")
            return tokens

    async def _replace(self, tokens: TokenSet) -> None:
        """Persist a new token set, then publish it to the cache.

        The cache is updated even if persisting fails: the new tokens are
        valid and the provider may already have rotated the old refresh
        token. The storage error is then raised to the caller.
        """
        async with self._store_lock:
            try:
                await asyncio.to_thread(self._store.save, tokens)
            except TokenStoreError:
                self._cache.set(tokens)
                raise
            self._cache.set(tokens)

    async def _discard(self) -> None:
        """Drop dead tokens from cache and store."""
        async with self._store_lock:
            self._cache.invalidate()
            try:
                await asyncio.to_thread(self._store.clear)
            except TokenStoreError as e:
                logger.error("Could not delete dead token file: %s", e)

    # =========================================================================
    # Refresh (single-flight)
    # =========================================================================

    async def _renew(self, tokens: TokenSet, scopes: frozenset[str]) -> TokenSet:
        if not tokens.is_renewable:
            logger.info("Token expired and has no refresh token; re-authorizing")
            self._state = AuthState.REVOKED_OR_EXPIRED_NO_REFRESH
            return await self._authorize(union(tokens.scopes, scopes))

        try:
            return await self._refresh(tokens)
        except InvalidGrantError:
            logger.warning("Refresh token rejected; falling back to interactive authorization")
            # Granted scopes start from scratch after revocation.
            return await self._authorize(scopes)

    async def _refresh(self, stale: TokenSet) -> TokenSet:
        while True:
            if self._refresh_task is not None and not self._refresh_task.done():
                return await asyncio.shield(self._refresh_task)
            if self._auth_task is not None and not self._auth_task.done():
                await asyncio.wait([self._auth_task])
                continue
            break

        # Double-check: a flight may have finished while we were waiting.
        fresh = self._cache.get()
        if fresh is not None and fresh is not stale and is_satisfied(fresh.scopes, stale.scopes):
            return fresh

        current = self._cache.peek()
        if current is None or not current.is_renewable:
            raise InvalidGrantError("Refresh credential is no longer available")

        task = asyncio.create_task(self._run_refresh(current), name="google-mcp-refresh")
        self._refresh_task = task
        task.add_done_callback(self._on_flight_done)
        return await asyncio.shield(task)

    async def _run_refresh(self, current: TokenSet) -> TokenSet:
        self._state = AuthState.REFRESHING
        try:
            tokens = await asyncio.to_thread(self._exchange.exchange_refresh, current)
        except InvalidGrantError:
            self._state = AuthState.REVOKED_OR_EXPIRED_NO_REFRESH
            await self._discard()
            raise
        except Exception:
            self._state = AuthState.REFRESH_DUE
            raise

        await self._replace(tokens)
        self._state = AuthState.AUTHENTICATED
        return tokens

    # =========================================================================
    # Interactive authorization (single-flight)
    # =========================================================================

    async def _authorize(self, scopes: frozenset[str], *, force: bool = False) -> TokenSet:
        while True:
            task = self._auth_task
            if task is not None and not task.done():
                if force:
                    await asyncio.wait([task])
                    continue
                tokens = await asyncio.shield(task)
                if is_satisfied(tokens.scopes, scopes):
                    return tokens
                continue
            if self._refresh_task is not None and not self._refresh_task.done():
                await asyncio.wait([self._refresh_task])
                continue
            break

        if not force:
            fresh = self._cache.get()
            if fresh is not None and is_satisfied(fresh.scopes, scopes):
                return fresh

        task = asyncio.create_task(
            self._run_authorization(frozenset(scopes)), name="google-mcp-authorize"
        )
        self._auth_task = task
        task.add_done_callback(self._on_flight_done)
        return await asyncio.shield(task)

    async def _run_authorization(self, scopes: frozenset[str]) -> TokenSet:
        session = pkce.begin(ttl=self._config.callback_timeout)
        listener: CallbackListener | None = None
        try:
            listener = self._listener_factory(self._config)
            self._state = AuthState.AWAITING_CALLBACK
            await self._open_browser(pkce.build_authorization_url(self._config, session, scopes))

            result = await listener.wait(session.state, self._config.callback_timeout)
            if isinstance(result, AuthorizationDenied):
                raise self._denied_error(result)
            if session.is_expired(self._clock()):
                raise AuthTimeoutError(
                    "Authorization session expired before the code was exchanged",
                    details={"ttl_seconds": session.ttl},
                )

            self._state = AuthState.EXCHANGING_CODE
            tokens = await asyncio.to_thread(
                self._exchange.exchange_code, result.code, session.code_verifier, scopes
            )
            await self._replace(tokens)
        except Exception:
            self._state = (
                AuthState.AUTHENTICATED
                if self._cache.peek() is not None
                else AuthState.UNAUTHENTICATED
            )
            raise
        finally:
            if listener is not None:
                listener.close()

        self._state = AuthState.AUTHENTICATED
        logger.info("Authorization complete with %d scopes", len(tokens.scopes))
        return tokens

    async def _open_browser(self, url: str) -> None:
        logger.info("Opening browser for authentication...")
        try:
            opened = await asyncio.to_thread(self._browser_opener, url)
        except Exception as e:
            logger.warning("Failed to open browser automatically: %s", e)
            opened = False
        if opened is False:
            logger.warning("Open this URL in a browser to continue: %s", url)

    @staticmethod
    def _denied_error(result: AuthorizationDenied) -> AuthError:
        details: dict[str, object] = {"oauth_error": result.error}
        if result.description:
            details["description"] = result.description
        if result.error == "access_denied":
            return UserDeniedError("User denied access", details=details)
        return ConfigurationError(
            f"Provider rejected the authorization request: {result.error}",
            details=details,
        )

    def _on_flight_done(self, task: asyncio.Task[TokenSet]) -> None:
        if task is self._auth_task:
            self._auth_task = None
        if task is self._refresh_task:
            self._refresh_task = None
        if task.cancelled():
            logger.debug("%s cancelled", task.get_name())
            return
        # Retrieve the exception so an unawaited failure is not reported twice.
        if (exc := task.exception()) is not None:
            logger.debug("%s failed: %s", task.get_name(), type(exc).__name__)


__all__ = ["AuthManager", "AuthState", "AuthStatus"]
