"""Tests for PKCE sessions and the authorization URL."""

from __future__ import annotations

import base64
import hashlib
import re
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

from google_mcp.auth import pkce
from google_mcp.auth.scopes import GMAIL_READONLY_SCOPE as READ_SCOPE
from google_mcp.auth.scopes import GMAIL_SEND_SCOPE as SEND_SCOPE
from google_mcp.config import AuthConfig

_BASE64URL = re.compile(r"^[A-Za-z0-9_-]+$")


class TestBegin:
    """Tests for pkce.begin."""

    def test_verifier_length_within_rfc_range(self) -> None:
        """Verifier is 43-128 characters of the unreserved alphabet."""
        session = pkce.begin(ttl=300)
        assert 43 <= len(session.code_verifier) <= 128
        assert _BASE64URL.match(session.code_verifier)

    def test_challenge_is_s256_of_verifier(self) -> None:
        """Challenge is base64url(sha256(verifier)) without padding."""
        session = pkce.begin(ttl=300)
        digest = hashlib.sha256(session.code_verifier.encode()).digest()
        expected = base64.urlsafe_b64encode(digest).decode().rstrip("=")

        assert session.code_challenge == expected
        assert "=" not in session.code_challenge

    def test_known_rfc7636_vector(self) -> None:
        """Matches the test vector from RFC 7636 appendix B."""
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        assert (
            pkce.derive_challenge(verifier)
            == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"
        )

    def test_state_is_independent_of_verifier(self) -> None:
        """State is a separate random value."""
        session = pkce.begin(ttl=300)
        assert session.state != session.code_verifier
        assert len(session.state) >= 43

    def test_sessions_are_unique(self) -> None:
        """Every attempt gets fresh secrets."""
        sessions = [pkce.begin(ttl=300) for _ in range(10)]
        assert len({s.code_verifier for s in sessions}) == 10
        assert len({s.state for s in sessions}) == 10

    def test_repr_hides_secrets(self) -> None:
        """Neither verifier nor state appear in repr."""
        session = pkce.begin(ttl=300)
        text = repr(session)
        assert session.code_verifier not in text
        assert session.state not in text

    def test_expiry_follows_ttl(self) -> None:
        """A session expires ttl seconds after creation."""
        session = pkce.begin(ttl=60)
        assert not session.is_expired(session.created_at + timedelta(seconds=59))
        assert session.is_expired(session.created_at + timedelta(seconds=60))


class TestBuildAuthorizationUrl:
    """Tests for pkce.build_authorization_url."""

    def test_url_carries_pkce_and_state(self, auth_config: AuthConfig) -> None:
        """The consent URL has challenge, method, state and offline access."""
        session = pkce.begin(ttl=300)
        url = pkce.build_authorization_url(
            auth_config, session, {SEND_SCOPE, READ_SCOPE}
        )

        parsed = urlparse(url)
        params = {k: v[0] for k, v in parse_qs(parsed.query).items()}

        assert url.startswith(auth_config.auth_uri + "?")
        assert params["client_id"] == auth_config.client_id
        assert params["redirect_uri"] == auth_config.redirect_uri
        assert params["response_type"] == "code"
        assert params["code_challenge"] == session.code_challenge
        assert params["code_challenge_method"] == "S256"
        assert params["state"] == session.state
        assert params["access_type"] == "offline"
        assert params["include_granted_scopes"] == "true"
        assert params["scope"] == f"{READ_SCOPE} {SEND_SCOPE}"

    def test_url_never_contains_verifier(self, auth_config: AuthConfig) -> None:
        """The verifier only ever goes to the token endpoint."""
        session = pkce.begin(ttl=300)
        url = pkce.build_authorization_url(auth_config, session, {READ_SCOPE})
        assert session.code_verifier not in url

