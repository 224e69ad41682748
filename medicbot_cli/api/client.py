"""
Async client for the MedicBot API: the audio catalog, audio downloads with an
on-disk cache, and shareable links.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import quote

import aiohttp
from pydantic import ValidationError
from yarl import URL

from medicbot_cli import __version__
from medicbot_cli.exceptions import AssetFetchError, CatalogFetchError
from medicbot_cli.models.audio import AudioTrack
from medicbot_cli.models.config import MedicBotSettings
from medicbot_cli.storage.audio_cache import AudioCache, extension_from_content_type
from medicbot_cli.storage.token_store import TokenStore

from .auth import DiscordAuthorizer
from .redirect import BrowserRedirectHandler, RedirectHandler
from .token_manager import TokenLifecycleManager

log = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 131072  # 128 KB


def encode_uri_component(value: str) -> str:
    """Percent-encodes a value the way JavaScript's encodeURIComponent does."""
    return quote(value, safe="!~*'()")


class MedicBotAPIClient:
    """
    Async client for the MedicBot JSON API.

    Every authenticated call obtains its bearer token from the
    TokenLifecycleManager. A 401 response clears the stored tokens, triggers a
    fresh authorization and is retried exactly once.
    """

    def __init__(
        self,
        settings: MedicBotSettings,
        token_store: TokenStore,
        audio_cache: AudioCache,
        redirect_handler: RedirectHandler | None = None,
    ):
        """
        Initializes the API client.

        Args:
            settings: Resolved MedicBot settings.
            token_store: Store holding the MedicBot token pair.
            audio_cache: Cache directory for downloaded audio.
            redirect_handler: Consent handler; defaults to the system browser.
        """
        self.settings = settings
        self.audio_cache = audio_cache
        self._session: aiohttp.ClientSession | None = None

        if redirect_handler is None:
            redirect_handler = BrowserRedirectHandler(timeout=settings.auth_timeout)
        self._authorizer = DiscordAuthorizer(self, token_store, redirect_handler)
        self._token_manager = TokenLifecycleManager(token_store, self._authorizer)

    @property
    def authorizer(self) -> DiscordAuthorizer:
        """Provides access to the authorization helper."""
        return self._authorizer

    @property
    def token_manager(self) -> TokenLifecycleManager:
        return self._token_manager

    async def __aenter__(self) -> "MedicBotAPIClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def get_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=8,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={
                    "User-Agent": f"medicbot-cli/{__version__}",
                    "Accept-Encoding": "gzip, deflate",
                },
                timeout=aiohttp.ClientTimeout(
                    total=self.settings.request_timeout,
                    sock_connect=min(15, self.settings.request_timeout),
                ),
            )
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def endpoint(self, path: str) -> str:
        return f"{self.settings.api_base_url}{path}"

    async def fetch_catalog(self) -> list[AudioTrack]:
        """
        Retrieves the enriched audio catalog.

        Raises:
            CatalogFetchError: If the catalog request fails after the single retry.
        """
        session = await self.get_session()
        url = self.endpoint("/Audio")

        def send(token: str) -> Awaitable[aiohttp.ClientResponse]:
            return session.get(
                url,
                params={"enriched": "true"},
                headers={"Authorization": f"Bearer {token}"},
            )

        response = await self._send_authorized(send, CatalogFetchError)
        try:
            data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            log.debug(f"Catalog response could not be read: {e!r}")
            raise CatalogFetchError(response.status) from e
        finally:
            response.close()

        if not isinstance(data, list):
            log.debug(f"Catalog response was {type(data).__name__}, expected a list")
            raise CatalogFetchError(response.status)
        try:
            tracks = [AudioTrack.model_validate(item) for item in data]
        except ValidationError as e:
            log.debug(f"Catalog response contained an invalid track: {e}")
            raise CatalogFetchError(response.status) from e

        log.debug(f"Fetched {len(tracks)} tracks from the catalog.")
        return tracks

    async def fetch_audio_file(self, audio_id: str) -> str:
        """
        Returns a local path to the audio file, downloading it if not cached.

        Raises:
            AssetFetchError: If the download fails after the single retry.
        """
        base_name = self.audio_cache.base_name(audio_id)
        await asyncio.to_thread(self.audio_cache.ensure_dir)
        cached = await asyncio.to_thread(self.audio_cache.find, base_name)
        if cached:
            log.debug(f"Using cached audio '{cached.name}'.")
            return str(cached)

        session = await self.get_session()
        url = URL(self.endpoint(f"/Audio/{encode_uri_component(audio_id)}"), encoded=True)
        download_timeout = aiohttp.ClientTimeout(
            total=None,
            sock_connect=self.settings.request_timeout,
            sock_read=self.settings.request_timeout,
        )

        def send(token: str) -> Awaitable[aiohttp.ClientResponse]:
            return session.get(
                url,
                headers={"Authorization": f"Bearer {token}"},
                timeout=download_timeout,
            )

        response = await self._send_authorized(send, AssetFetchError)
        try:
            extension = extension_from_content_type(
                response.headers.get("Content-Type")
            )
            path = await self.audio_cache.write(
                base_name, extension, response.content.iter_chunked(DOWNLOAD_CHUNK_SIZE)
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"Download of '{audio_id}' was interrupted: {e!r}")
            raise AssetFetchError(0) from e
        finally:
            response.close()

        return str(path)

    def build_shareable_link(self, audio_id: str, token: str | None = None) -> str:
        """Builds the public link for a track, optionally carrying a token."""
        base = (
            f"{self.settings.shareable_base_url}/Audio/{encode_uri_component(audio_id)}"
        )
        if not token:
            return base
        return f"{base}?token={encode_uri_component(token)}"

    async def _send_authorized(
        self,
        send: Callable[[str], Awaitable[aiohttp.ClientResponse]],
        error_cls: type[CatalogFetchError] | type[AssetFetchError],
    ) -> aiohttp.ClientResponse:
        """
        Sends a bearer-authenticated request, re-authorizing once on a 401.

        The returned response has a 2xx status and must be closed by the caller.
        """
        token = await self._token_manager.get_access_token()
        response = await self._send(send, token, error_cls)

        if response.status == 401:
            response.close()
            log.info("[yellow]MedicBot rejected the access token, signing in again.[/yellow]")
            self._token_manager.invalidate()
            token = await self._token_manager.get_access_token()
            response = await self._send(send, token, error_cls)

        if not response.ok:
            status = response.status
            response.close()
            raise error_cls(status)
        return response

    @staticmethod
    async def _send(
        send: Callable[[str], Awaitable[aiohttp.ClientResponse]],
        token: str,
        error_cls: type[CatalogFetchError] | type[AssetFetchError],
    ) -> aiohttp.ClientResponse:
        try:
            return await send(token)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"MedicBot request failed: {e!r}")
            raise error_cls(0) from e
