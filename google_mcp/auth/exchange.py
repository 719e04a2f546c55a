"""Token endpoint client: code exchange, refresh, and revocation.

Every public method makes exactly one outbound request and never retries.
Token endpoints rate-limit aggressively and authorization codes are
single-use, so retry decisions belong to the caller, informed by the error
kind raised here.

Methods are blocking (``requests``); the auth manager runs them in a worker
thread.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, NoReturn

import requests

from google_mcp.auth.scopes import parse_scopes, union
from google_mcp.auth.tokens import TokenSet
from google_mcp.utils.errors import (
    ConfigurationError,
    InvalidGrantError,
    MalformedResponseError,
    PkceMismatchError,
    TransportError,
)

if TYPE_CHECKING:
    from google_mcp.config import AuthConfig

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600

# Errors meaning the client registration itself is wrong.
_CLIENT_ERRORS = frozenset({"invalid_client", "unauthorized_client"})


class TokenExchangeClient:
    """Talks to the provider's token and revocation endpoints.

    Error mapping:
        - Network failure, HTTP 429, HTTP 5xx: ``TransportError`` (retryable)
        - ``invalid_grant``: ``InvalidGrantError``, or ``PkceMismatchError``
          when a code exchange was rejected for its verifier
        - ``invalid_client`` and other OAuth errors: ``ConfigurationError``
        - Non-JSON body or missing ``access_token``: ``MalformedResponseError``

    Example:
        >>> client = TokenExchangeClient(config)
        >>> tokens = client.exchange_code(code, session.code_verifier, {"read"})
        >>> tokens = client.exchange_refresh(tokens)
    """

    def __init__(self, config: AuthConfig) -> None:
        self._config = config

    def exchange_code(
        self, code: str, code_verifier: str, requested_scopes: Iterable[str]
    ) -> TokenSet:
        """Exchange an authorization code for a token set.

        Args:
            code: Authorization code from the callback.
            code_verifier: The PKCE verifier of the session that issued it.
            requested_scopes: Scopes that were requested; used when the
                response does not report granted scopes.

        Returns:
            A new TokenSet.
        """
        payload = self._post_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "code_verifier": code_verifier,
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret.get_secret_value(),
                "redirect_uri": self._config.redirect_uri,
            }
        )
        tokens = self._build_token_set(payload, fallback_scopes=requested_scopes)
        logger.info("Successfully exchanged authorization code for tokens")
        return tokens

    def exchange_refresh(self, current: TokenSet) -> TokenSet:
        """Use the refresh credential of ``current`` to obtain a new token set.

        The granted scope set never shrinks across a refresh. If the provider
        rotates the refresh token the new one replaces it; otherwise the
        previous refresh token is carried over.

        Raises:
            InvalidGrantError: If ``current`` has no refresh token, or the
                provider reports it expired or revoked.
        """
        if not current.refresh_token:
            raise InvalidGrantError(
                "No refresh token available",
                details={"hint": "User must re-authenticate to obtain a refresh token"},
            )

        payload = self._post_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": current.refresh_token,
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret.get_secret_value(),
            }
        )
        tokens = self._build_token_set(
            payload, fallback_scopes=current.scopes, previous=current
        )
        logger.info("Successfully refreshed access token")
        return tokens

    def revoke(self, token: str) -> bool:
        """Revoke a token with the provider.

        Revoking either token of a Google grant revokes the whole grant.

        Returns:
            True if the provider confirmed revocation, False if it refused
            (already revoked or unknown token).

        Raises:
            TransportError: On network failure.
        """
        try:
            response = requests.post(
                self._config.revoke_uri,
                data={"token": token},
                timeout=self._config.http_timeout,
            )
        except requests.RequestException as e:
            logger.error("Network error revoking token: %s", e)
            raise TransportError(
                f"Network error revoking token: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        if response.status_code == 200:
            logger.info("Revoked OAuth grant with provider")
            return True

        logger.warning("Token revocation refused: HTTP %d", response.status_code)
        return False

    def _post_token(self, data: dict[str, str]) -> dict[str, Any]:
        grant_type = data["grant_type"]
        try:
            response = requests.post(
                self._config.token_uri,
                data=data,
                headers={"Accept": "application/json"},
                timeout=self._config.http_timeout,
            )
        except requests.RequestException as e:
            logger.error("Network error calling token endpoint (%s): %s", grant_type, e)
            raise TransportError(
                f"Network error calling token endpoint: {e}",
                details={"grant_type": grant_type, "error_type": type(e).__name__},
            ) from e

        try:
            body = response.json()
        except ValueError:
            body = None

        status = response.status_code
        if status == 429 or status >= 500:
            raise TransportError(
                f"Token endpoint unavailable: HTTP {status}",
                status_code=status,
                details={"grant_type": grant_type},
            )

        if status != 200:
            self._raise_for_oauth_error(body, status, grant_type)

        if not isinstance(body, dict):
            raise MalformedResponseError(
                "Token endpoint returned a non-JSON body",
                details={"grant_type": grant_type, "status_code": status},
            )
        return body

    @staticmethod
    def _raise_for_oauth_error(body: object, status: int, grant_type: str) -> NoReturn:
        error = body.get("error") if isinstance(body, dict) else None
        description = body.get("error_description") if isinstance(body, dict) else None
        details: dict[str, object] = {
            "grant_type": grant_type,
            "status_code": status,
            "oauth_error": error,
        }
        if description:
            details["description"] = description

        if error == "invalid_grant":
            if (
                grant_type == "authorization_code"
                and isinstance(description, str)
                and "verifier" in description.lower()
            ):
                raise PkceMismatchError(
                    "Provider rejected the PKCE code verifier", details=details
                )
            logger.warning("Token endpoint reported invalid_grant (%s)", grant_type)
            raise InvalidGrantError(
                "Grant is invalid, expired or revoked", details=details
            )

        if error in _CLIENT_ERRORS:
            raise ConfigurationError(
                f"OAuth client rejected by provider: {error}",
                details={**details, "hint": "Check GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET"},
            )

        if not error:
            raise MalformedResponseError(
                f"Token endpoint returned HTTP {status} without an OAuth error",
                details=details,
            )

        raise ConfigurationError(
            f"Token endpoint rejected the request: {error}", details=details
        )

    @staticmethod
    def _build_token_set(
        payload: dict[str, Any],
        fallback_scopes: Iterable[str],
        previous: TokenSet | None = None,
    ) -> TokenSet:
        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise MalformedResponseError(
                "Token response is missing access_token",
                details={"fields": sorted(payload)},
            )

        expires_in = payload.get("expires_in", DEFAULT_EXPIRES_IN)
        if isinstance(expires_in, bool):
            expires_in = None
        try:
            lifetime = float(expires_in)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            lifetime = -1.0
        if lifetime < 0:
            raise MalformedResponseError(
                "Token response has an invalid expires_in",
                details={"expires_in": repr(payload.get("expires_in"))},
            )

        granted = parse_scopes(payload.get("scope")) or parse_scopes(fallback_scopes)
        refresh_token = payload.get("refresh_token") or None
        if previous is not None:
            granted = union(previous.scopes, granted)
            refresh_token = refresh_token or previous.refresh_token

        now = datetime.now(UTC)
        return TokenSet(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=now + timedelta(seconds=lifetime),
            scopes=granted,
            token_type=payload.get("token_type") or "Bearer",
            created_at=now,
        )


__all__ = ["TokenExchangeClient", "DEFAULT_EXPIRES_IN"]
