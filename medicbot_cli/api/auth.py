"""
Handles authorization with Discord and the MedicBot token endpoints,
including PKCE request construction, code exchange and token refresh.
"""

import asyncio
import base64
import hashlib
import logging
import secrets
from typing import TYPE_CHECKING
from urllib.parse import urlencode

import aiohttp
from pydantic import ValidationError

from medicbot_cli.exceptions import (
    ConfigurationError,
    TokenExchangeError,
    TokenRefreshError,
)
from medicbot_cli.models.tokens import AuthorizationRequest, TokenRecord, TokenResponse
from medicbot_cli.storage.token_store import TokenStore

from .redirect import RedirectHandler

if TYPE_CHECKING:
    from .client import MedicBotAPIClient

log = logging.getLogger(__name__)

DISCORD_AUTHORIZE_URL = "https://discord.com/api/oauth2/authorize"
DISCORD_SCOPES = "identify"


def generate_code_verifier() -> str:
    """Returns a random PKCE code verifier of the maximum allowed length."""
    return secrets.token_urlsafe(96)[:128]


def get_code_challenge(code_verifier: str) -> str:
    """Derives the S256 code challenge for a verifier."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


class DiscordAuthorizer:
    """
    Drives the interactive Discord authorization and the MedicBot token calls.
    """

    def __init__(
        self,
        api_client: "MedicBotAPIClient",
        token_store: TokenStore,
        redirect_handler: RedirectHandler,
    ):
        """
        Initializes the authorizer.

        Args:
            api_client: The client whose settings and HTTP session are used.
            token_store: Where a successful exchange is persisted.
            redirect_handler: Presents the consent page and captures the code.
        """
        self._api_client = api_client
        self._token_store = token_store
        self._redirect_handler = redirect_handler

    def build_authorization_request(self) -> AuthorizationRequest:
        """
        Creates a fresh PKCE authorization request.

        Raises:
            ConfigurationError: If no Discord client ID is configured.
        """
        settings = self._api_client.settings
        if not settings.discord_client_id:
            raise ConfigurationError(
                "Missing Discord OAuth Client ID. Set it with "
                "'medicbot config --set discord_client_id=<ID>'."
            )

        code_verifier = generate_code_verifier()
        code_challenge = get_code_challenge(code_verifier)
        state = secrets.token_urlsafe(16)
        params = {
            "client_id": settings.discord_client_id,
            "response_type": "code",
            "redirect_uri": settings.redirect_uri,
            "scope": DISCORD_SCOPES,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
            "prompt": "consent",
        }
        return AuthorizationRequest(
            url=f"{DISCORD_AUTHORIZE_URL}?{urlencode(params)}",
            code_verifier=code_verifier,
            code_challenge=code_challenge,
            redirect_uri=settings.redirect_uri,
            state=state,
        )

    async def authorize(self) -> TokenRecord:
        """
        Runs the interactive flow and stores the resulting tokens.

        Raises:
            ConfigurationError: If no Discord client ID is configured.
            AuthorizationCancelled: If the user does not complete consent.
            TokenExchangeError: If the backend rejects the authorization code.
        """
        request = self.build_authorization_request()
        code = await self._redirect_handler.authorize(request)
        log.debug("Received Discord authorization code, exchanging...")

        response = await self.exchange_code(code, request)
        record = TokenRecord.from_response(response)
        self._token_store.save(record)
        log.info("[green]✓ Signed in to MedicBot.[/green]")
        return record

    async def exchange_code(
        self, code: str, request: AuthorizationRequest
    ) -> TokenResponse:
        """Exchanges a Discord authorization code for MedicBot tokens."""
        payload = {
            "code": code,
            "codeVerifier": request.code_verifier,
            "redirectUri": request.redirect_uri,
            "clientId": self._api_client.settings.discord_client_id,
        }
        session = await self._api_client.get_session()
        try:
            async with session.post(
                self._api_client.endpoint("/Auth/ExchangeDiscordCode"), json=payload
            ) as r:
                if not r.ok:
                    raise TokenExchangeError(r.status, await r.text())
                try:
                    data = await r.json(content_type=None)
                    return TokenResponse.model_validate(data)
                except (ValueError, ValidationError) as e:
                    raise TokenExchangeError(
                        r.status, "Malformed token response."
                    ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"Token exchange request failed: {e!r}")
            raise TokenExchangeError(0, str(e) or type(e).__name__) from e

    async def refresh(self, refresh_token: str) -> TokenResponse:
        """Trades a refresh token for a new token pair."""
        session = await self._api_client.get_session()
        try:
            async with session.post(
                self._api_client.endpoint("/Auth/Refresh"),
                json={"refreshToken": refresh_token},
            ) as r:
                if not r.ok:
                    raise TokenRefreshError(r.status)
                try:
                    data = await r.json(content_type=None)
                    return TokenResponse.model_validate(data)
                except (ValueError, ValidationError) as e:
                    raise TokenRefreshError(r.status) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"Token refresh request failed: {e!r}")
            raise TokenRefreshError(0) from e
