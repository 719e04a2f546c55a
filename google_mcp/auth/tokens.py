"""Token set model shared by the exchange client, store, cache and manager.

A ``TokenSet`` is immutable. A refresh never edits one in place; it builds a
replacement, so readers never see a half-updated set.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_validator

TOKEN_FORMAT_VERSION = "1.0.0"


class TokenSet(BaseModel):
    """Access credential plus everything needed to keep it valid.

    Token values are excluded from ``repr`` so a stray log line cannot
    leak them.

    Attributes:
        access_token: Short-lived bearer credential.
        refresh_token: Long-lived refresh credential. ``None`` means the set
            is non-renewable and expiry forces interactive re-authorization.
        expires_at: Absolute expiry instant (UTC).
        scopes: Granted scope set.
        token_type: Token type reported by the provider.
        created_at: When this set was issued locally (UTC).
        version: Serialization format version.

    Example:
        >>> tokens = TokenSet(
        ...     access_token="ya29...",
        ...     refresh_token="1//...",
        ...     expires_at=datetime.now(UTC) + timedelta(hours=1),
        ...     scopes=frozenset({"read"}),
        ... )
        >>> tokens.is_due(refresh_ahead=300)
        False
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., min_length=1, repr=False)
    refresh_token: str | None = Field(default=None, repr=False)
    expires_at: AwareDatetime
    scopes: frozenset[str] = frozenset()
    token_type: str = "Bearer"
    created_at: AwareDatetime = Field(default_factory=lambda: datetime.now(UTC))
    version: str = TOKEN_FORMAT_VERSION

    @field_validator("expires_at", "created_at")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return value.astimezone(UTC)

    @property
    def is_renewable(self) -> bool:
        """Whether a refresh credential is present."""
        return bool(self.refresh_token)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the access token is past its expiry."""
        now = now or datetime.now(UTC)
        return now >= self.expires_at

    def refresh_due_at(self, refresh_ahead: float) -> datetime:
        """Instant from which the token should be refreshed."""
        return self.expires_at - timedelta(seconds=refresh_ahead)

    def is_due(self, refresh_ahead: float, now: datetime | None = None) -> bool:
        """Check whether the token is within ``refresh_ahead`` seconds of expiry."""
        now = now or datetime.now(UTC)
        return now >= self.refresh_due_at(refresh_ahead)

    def seconds_until_expiry(self, now: datetime | None = None) -> float:
        """Seconds left before expiry, never negative."""
        now = now or datetime.now(UTC)
        return max(0.0, (self.expires_at - now).total_seconds())


__all__ = ["TokenSet", "TOKEN_FORMAT_VERSION"]
