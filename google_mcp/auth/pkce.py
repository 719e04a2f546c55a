"""PKCE session builder and authorization URL.

Each interactive authorization attempt gets a fresh ``PKCESession``: a
random code verifier, its S256 challenge, and an independent random CSRF
state value. Sessions are single-use; the auth manager discards one after
its code exchange, whatever the outcome.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from google_mcp.auth.scopes import format_scopes

if TYPE_CHECKING:
    from google_mcp.config import AuthConfig

logger = logging.getLogger(__name__)

VERIFIER_BYTES = 32  # 43 base64url characters, inside RFC 7636's 43-128 range
STATE_BYTES = 32
CHALLENGE_METHOD = "S256"


class PKCESession(BaseModel):
    """Secrets for one authorization attempt.

    The verifier and state are excluded from ``repr``.

    Attributes:
        code_verifier: High-entropy secret sent only to the token endpoint.
        code_challenge: ``BASE64URL(SHA256(code_verifier))``, no padding.
        state: CSRF token echoed back on the redirect.
        created_at: When the session was created (UTC).
        ttl: Seconds the session stays usable.
    """

    model_config = ConfigDict(frozen=True)

    code_verifier: str = Field(..., repr=False)
    code_challenge: str
    state: str = Field(..., repr=False)
    created_at: AwareDatetime
    ttl: float

    @property
    def expires_at(self) -> datetime:
        """Instant after which the session must not be used."""
        return self.created_at + timedelta(seconds=self.ttl)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the session is past its time-to-live."""
        now = now or datetime.now(UTC)
        return now >= self.expires_at


def derive_challenge(code_verifier: str) -> str:
    """Compute the S256 code challenge for a verifier."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def begin(ttl: float) -> PKCESession:
    """Start a new PKCE session.

    Uses the ``secrets`` CSPRNG. If the OS entropy source is unavailable the
    underlying error propagates; there is no fallback.

    Args:
        ttl: Seconds the session stays valid.

    Returns:
        A new session with fresh verifier, challenge and state.
    """
    verifier = secrets.token_urlsafe(VERIFIER_BYTES)
    session = PKCESession(
        code_verifier=verifier,
        code_challenge=derive_challenge(verifier),
        state=secrets.token_urlsafe(STATE_BYTES),
        created_at=datetime.now(UTC),
        ttl=ttl,
    )
    logger.debug("Started PKCE session with state: %s", session.state[:8] + "...")
    return session


def build_authorization_url(
    config: AuthConfig, session: PKCESession, scopes: Iterable[str]
) -> str:
    """Build the consent URL for a session.

    ``include_granted_scopes`` asks the provider to merge previously granted
    scopes into the new grant (incremental authorization). ``prompt=consent``
    and ``access_type=offline`` make Google return a refresh token.

    Args:
        config: OAuth client configuration.
        session: The session whose challenge and state to embed.
        scopes: Scopes to request.

    Returns:
        The full authorization URL.
    """
    params = {
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "response_type": "code",
        "scope": format_scopes(scopes),
        "state": session.state,
        "code_challenge": session.code_challenge,
        "code_challenge_method": CHALLENGE_METHOD,
        "access_type": "offline",
        "prompt": "consent",
        "include_granted_scopes": "true",
    }
    return f"{config.auth_uri}?{urlencode(params)}"


__all__ = [
    "PKCESession",
    "begin",
    "derive_challenge",
    "build_authorization_url",
    "CHALLENGE_METHOD",
]
