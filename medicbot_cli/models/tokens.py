"""
Token and authorization request models.
"""

import time
from dataclasses import dataclass

from pydantic import BaseModel, Field


class TokenResponse(BaseModel):
    """The token payload returned by the MedicBot exchange and refresh endpoints."""

    access_token: str = Field(..., alias="accessToken", min_length=1)
    access_token_expires_in: int = Field(..., alias="accessTokenExpiresIn")
    refresh_token: str = Field("", alias="refreshToken")
    refresh_token_expires_in: int = Field(0, alias="refreshTokenExpiresIn")

    class Config:
        """Pydantic model configuration."""

        populate_by_name = True


class TokenRecord(BaseModel):
    """
    A persisted access/refresh token pair.

    Expiry fields are absolute UNIX timestamps. A ``refresh_expiry`` of 0
    means the lifetime of the refresh token is unknown.
    """

    access_token: str
    refresh_token: str = ""
    access_expiry: float
    refresh_expiry: float = 0

    @classmethod
    def from_response(
        cls, response: TokenResponse, now: float | None = None
    ) -> "TokenRecord":
        """Converts relative lifetimes from the backend into absolute expiries."""
        now = time.time() if now is None else now
        refresh_expiry = (
            now + response.refresh_token_expires_in
            if response.refresh_token_expires_in > 0
            else 0
        )
        return cls(
            access_token=response.access_token,
            refresh_token=response.refresh_token,
            access_expiry=now + response.access_token_expires_in,
            refresh_expiry=refresh_expiry,
        )


@dataclass(frozen=True)
class AuthorizationRequest:
    """A single PKCE authorization attempt. Never persisted."""

    url: str
    code_verifier: str
    code_challenge: str
    redirect_uri: str
    state: str
