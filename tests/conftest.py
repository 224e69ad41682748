"""
Shared fixtures: an in-process fake MedicBot backend and a scripted
Discord redirect handler.
"""

import asyncio
import time
from collections import Counter

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from medicbot_cli.api.client import MedicBotAPIClient
from medicbot_cli.api.redirect import RedirectHandler
from medicbot_cli.models.config import resolve_config
from medicbot_cli.models.tokens import AuthorizationRequest, TokenRecord
from medicbot_cli.storage.audio_cache import AudioCache
from medicbot_cli.storage.token_store import TokenStore

SHAREABLE_BASE_URL = "https://share.medicbot.test"

CATALOG = [
    {
        "id": "airhorn",
        "name": "Air Horn",
        "aliases": ["horn", "mlg"],
        "tags": ["meme", "loud"],
        "isFavorite": True,
    },
    {"id": "bruh", "name": "Bruh", "aliases": [], "tags": ["meme"]},
]


class FakeMedicBot:
    """Mimics the MedicBot token and audio endpoints and records every call."""

    def __init__(self):
        self.base_url = ""
        self.calls: Counter[str] = Counter()
        self.valid_tokens: set[str] = set()
        self.issued = 0
        self.exchange_status = 200
        self.refresh_status = 200
        self.exchange_payloads: list[dict] = []
        self.refresh_payloads: list[dict] = []
        self.catalog = CATALOG
        self.forced_statuses: list[int] = []
        self.token_body: str | None = None
        self.delay = 0.0
        self.audio: dict[str, tuple[bytes, str | None]] = {
            "abc": (b"ID3\x03\x00fake-mp3", "audio/mpeg"),
        }

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/Auth/ExchangeDiscordCode", self.exchange)
        app.router.add_post("/Auth/Refresh", self.refresh)
        app.router.add_get("/Audio", self.list_audio)
        app.router.add_get("/Audio/{id}", self.get_audio)
        return app

    def issue_tokens(self) -> dict:
        self.issued += 1
        access_token = f"access-{self.issued}"
        self.valid_tokens.add(access_token)
        return {
            "accessToken": access_token,
            "accessTokenExpiresIn": 3600,
            "refreshToken": f"refresh-{self.issued}",
            "refreshTokenExpiresIn": 86400,
        }

    async def exchange(self, request: web.Request) -> web.Response:
        self.calls["exchange"] += 1
        self.exchange_payloads.append(await request.json())
        if self.exchange_status != 200:
            return web.Response(status=self.exchange_status, text="invalid_grant")
        if self.token_body is not None:
            return web.Response(text=self.token_body, content_type="text/html")
        return web.json_response(self.issue_tokens())

    async def refresh(self, request: web.Request) -> web.Response:
        self.calls["refresh"] += 1
        self.refresh_payloads.append(await request.json())
        if self.refresh_status != 200:
            return web.Response(status=self.refresh_status, text="invalid refresh token")
        if self.token_body is not None:
            return web.Response(text=self.token_body, content_type="text/html")
        return web.json_response(self.issue_tokens())

    def _reject(self, request: web.Request) -> web.Response | None:
        if self.forced_statuses:
            return web.Response(status=self.forced_statuses.pop(0))
        header = request.headers.get("Authorization", "")
        if header.removeprefix("Bearer ") not in self.valid_tokens:
            return web.Response(status=401)
        return None

    async def list_audio(self, request: web.Request) -> web.Response:
        self.calls["catalog"] += 1
        await asyncio.sleep(self.delay)
        assert request.query.get("enriched") == "true"
        rejected = self._reject(request)
        if rejected is not None:
            return rejected
        return web.json_response(self.catalog)

    async def get_audio(self, request: web.Request) -> web.Response:
        self.calls["audio"] += 1
        await asyncio.sleep(self.delay)
        rejected = self._reject(request)
        if rejected is not None:
            return rejected
        audio_id = request.match_info["id"]
        if audio_id not in self.audio:
            return web.Response(status=404)
        body, content_type = self.audio[audio_id]
        headers = {"Content-Type": content_type} if content_type else {}
        return web.Response(body=body, headers=headers)


class ScriptedRedirect(RedirectHandler):
    """Returns a fixed authorization code, or raises a configured error."""

    def __init__(self, code: str = "discord-code"):
        self.code = code
        self.error: Exception | None = None
        self.requests: list[AuthorizationRequest] = []
        self.on_authorize = None

    async def authorize(self, request: AuthorizationRequest) -> str:
        self.requests.append(request)
        if self.on_authorize:
            self.on_authorize(request)
        if self.error:
            raise self.error
        return self.code


def make_record(access_token: str, expires_in: float = 3600, **kwargs) -> TokenRecord:
    """A stored record whose access token expires ``expires_in`` seconds from now."""
    now = time.time()
    return TokenRecord(
        access_token=access_token,
        refresh_token=kwargs.get("refresh_token", "stored-refresh"),
        access_expiry=now + expires_in,
        refresh_expiry=kwargs.get("refresh_expiry", now + 86400),
    )


@pytest_asyncio.fixture
async def backend():
    fake = FakeMedicBot()
    server = TestServer(fake.make_app())
    await server.start_server()
    fake.base_url = str(server.make_url("/"))
    yield fake
    await server.close()


@pytest.fixture
def redirect():
    return ScriptedRedirect()


@pytest.fixture
def token_store(tmp_path):
    return TokenStore(tmp_path / "tokens.json")


@pytest.fixture
def audio_cache(tmp_path):
    return AudioCache(tmp_path / "audio-cache")


@pytest.fixture
def settings_values(backend):
    return {
        "api_base_url": backend.base_url,
        "shareable_base_url": SHAREABLE_BASE_URL + "/",
        "discord_client_id": " 1234567890 ",
        "request_timeout": 5,
    }


@pytest_asyncio.fixture
async def client(settings_values, token_store, audio_cache, redirect):
    api_client = MedicBotAPIClient(
        resolve_config(settings_values),
        token_store,
        audio_cache,
        redirect_handler=redirect,
    )
    yield api_client
    await api_client.close()
