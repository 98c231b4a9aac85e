"""Token set model for Auth0 token endpoint responses."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class TokenSet(BaseModel):
    """Successful token endpoint response (RFC 6749 Section 5.1).

    Produced by both the authorization code exchange and the refresh token
    exchange. A refresh response usually omits ``refresh_token``.
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None  # Seconds until expiry
    id_token: str | None = None
    token_type: str = "Bearer"
    scope: str | None = None

    def expires_at_millis(self, now: float) -> int | None:
        """Absolute expiry as epoch milliseconds, given ``now`` in seconds."""
        if self.expires_in is None:
            return None
        return int((now + self.expires_in) * 1000)
