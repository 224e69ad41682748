from urllib.parse import parse_qs, urlparse

import pytest

from medicbot_cli.api.auth import (
    DISCORD_AUTHORIZE_URL,
    generate_code_verifier,
    get_code_challenge,
)
from medicbot_cli.api.client import MedicBotAPIClient
from medicbot_cli.exceptions import (
    AuthorizationCancelled,
    ConfigurationError,
    TokenExchangeError,
    TokenRefreshError,
)
from medicbot_cli.models.config import resolve_config


def test_code_challenge_is_unpadded_base64url_sha256():
    verifier = "medicbot-pkce-verifier-0123456789-abcdefghijklmnop"

    assert get_code_challenge(verifier) == "6SL3_SeFqMom2AaJHo4bOqBWjiLuzLescbID8mjpTag"


def test_code_verifier_has_valid_length_and_alphabet():
    verifier = generate_code_verifier()

    assert 43 <= len(verifier) <= 128
    assert set(verifier) <= set(
        "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
    )
    assert generate_code_verifier() != verifier


def test_authorization_request_asks_for_forced_consent(client):
    request = client.authorizer.build_authorization_request()

    parsed = urlparse(request.url)
    params = {k: v[0] for k, v in parse_qs(parsed.query).items()}
    assert request.url.startswith(DISCORD_AUTHORIZE_URL + "?")
    assert params["client_id"] == "1234567890"
    assert params["response_type"] == "code"
    assert params["scope"] == "identify"
    assert params["prompt"] == "consent"
    assert params["code_challenge_method"] == "S256"
    assert params["code_challenge"] == get_code_challenge(request.code_verifier)
    assert params["state"] == request.state
    assert params["redirect_uri"] == request.redirect_uri


def test_each_request_uses_a_fresh_verifier_and_state(client):
    first = client.authorizer.build_authorization_request()
    second = client.authorizer.build_authorization_request()

    assert first.code_verifier != second.code_verifier
    assert first.state != second.state


async def test_missing_client_id_fails_before_any_io(
    backend, settings_values, token_store, audio_cache, redirect
):
    settings_values["discord_client_id"] = "   "
    async with MedicBotAPIClient(
        resolve_config(settings_values), token_store, audio_cache, redirect
    ) as api_client:
        with pytest.raises(ConfigurationError, match="Client ID"):
            await api_client.authorizer.authorize()

    assert redirect.requests == []
    assert sum(backend.calls.values()) == 0


async def test_authorize_exchanges_code_and_stores_tokens(client, backend, redirect, token_store):
    record = await client.authorizer.authorize()

    assert record.access_token == "access-1"
    assert token_store.load() == record
    request = redirect.requests[0]
    assert backend.exchange_payloads == [
        {
            "code": "discord-code",
            "codeVerifier": request.code_verifier,
            "redirectUri": request.redirect_uri,
            "clientId": "1234567890",
        }
    ]


async def test_rejected_exchange_carries_status_and_body(client, backend, token_store):
    backend.exchange_status = 400

    with pytest.raises(TokenExchangeError) as exc_info:
        await client.authorizer.authorize()

    assert exc_info.value.status_code == 400
    assert exc_info.value.body == "invalid_grant"
    assert token_store.load() is None


async def test_cancelled_consent_propagates_without_exchange(client, backend, redirect):
    redirect.error = AuthorizationCancelled("user closed the window")

    with pytest.raises(AuthorizationCancelled):
        await client.authorizer.authorize()

    assert backend.calls["exchange"] == 0


async def test_refresh_failure_raises_refresh_error(client, backend):
    backend.refresh_status = 401

    with pytest.raises(TokenRefreshError) as exc_info:
        await client.authorizer.refresh("old-refresh")

    assert exc_info.value.status_code == 401
    assert backend.refresh_payloads == [{"refreshToken": "old-refresh"}]


async def test_unreachable_backend_is_a_refresh_error(token_store, audio_cache, redirect):
    settings = resolve_config(
        {"api_base_url": "http://127.0.0.1:9", "request_timeout": 2}
    )
    async with MedicBotAPIClient(settings, token_store, audio_cache, redirect) as api_client:
        with pytest.raises(TokenRefreshError) as exc_info:
            await api_client.authorizer.refresh("old-refresh")

    assert exc_info.value.status_code == 0


async def test_non_json_exchange_body_keeps_http_status(client, backend, token_store):
    backend.token_body = "<html>maintenance</html>"

    with pytest.raises(TokenExchangeError) as exc_info:
        await client.authorizer.authorize()

    assert exc_info.value.status_code == 200
    assert exc_info.value.body == "Malformed token response."
    assert token_store.load() is None


async def test_non_json_refresh_body_keeps_http_status(client, backend):
    backend.token_body = "<html>maintenance</html>"

    with pytest.raises(TokenRefreshError) as exc_info:
        await client.authorizer.refresh("old-refresh")

    assert exc_info.value.status_code == 200
