import time

import pytest

from medicbot_cli.exceptions import (
    AuthorizationCancelled,
    ConfigurationError,
    TokenExchangeError,
)
from tests.conftest import make_record


async def test_unexpired_token_is_reused_without_network(client, backend, token_store, redirect):
    token_store.save(make_record("still-good"))

    token = await client.token_manager.get_access_token()

    assert token == "still-good"
    assert sum(backend.calls.values()) == 0
    assert redirect.requests == []


async def test_expired_token_is_refreshed_and_persisted(client, backend, token_store, redirect):
    token_store.save(make_record("stale", expires_in=-10, refresh_token="r-1"))

    token = await client.token_manager.get_access_token()

    assert token == "access-1"
    assert backend.refresh_payloads == [{"refreshToken": "r-1"}]
    stored = token_store.load()
    assert stored.access_token == "access-1"
    assert stored.refresh_token == "refresh-1"
    assert stored.access_expiry > time.time()
    assert redirect.requests == []


async def test_failed_refresh_clears_store_before_authorizing(
    client, backend, token_store, redirect
):
    token_store.save(make_record("stale", expires_in=-10))
    backend.refresh_status = 400
    seen_at_authorize = []
    redirect.on_authorize = lambda request: seen_at_authorize.append(token_store.load())

    token = await client.token_manager.get_access_token()

    assert seen_at_authorize == [None]
    assert backend.calls["refresh"] == 1
    assert backend.calls["exchange"] == 1
    assert token == "access-1"
    assert token_store.load().access_token == "access-1"


async def test_expired_refresh_token_skips_refresh(client, backend, token_store, redirect):
    token_store.save(
        make_record("stale", expires_in=-10, refresh_expiry=time.time() - 1)
    )

    token = await client.token_manager.get_access_token()

    assert backend.calls["refresh"] == 0
    assert len(redirect.requests) == 1
    assert token == "access-1"


async def test_record_without_refresh_token_goes_to_authorization(
    client, backend, token_store, redirect
):
    token_store.save(make_record("stale", expires_in=-10, refresh_token=""))

    token = await client.token_manager.get_access_token()

    assert backend.calls["refresh"] == 0
    assert token == "access-1"


async def test_no_stored_tokens_runs_interactive_flow(client, backend, token_store, redirect):
    token = await client.token_manager.get_access_token()

    assert token == "access-1"
    assert len(redirect.requests) == 1
    assert token_store.load().access_token == "access-1"


async def test_invalidate_forces_reauthorization(client, backend, token_store, redirect):
    token_store.save(make_record("still-good"))

    client.token_manager.invalidate()
    token = await client.token_manager.get_access_token()

    assert token == "access-1"
    assert len(redirect.requests) == 1


@pytest.mark.parametrize(
    "error",
    [AuthorizationCancelled("closed"), ConfigurationError("no client id")],
)
async def test_authorization_errors_propagate_unchanged(client, token_store, redirect, error):
    redirect.error = error

    with pytest.raises(type(error)) as exc_info:
        await client.token_manager.get_access_token()

    assert exc_info.value is error
    assert token_store.load() is None


async def test_exchange_error_propagates_after_failed_refresh(
    client, backend, token_store
):
    token_store.save(make_record("stale", expires_in=-10))
    backend.refresh_status = 500
    backend.exchange_status = 403

    with pytest.raises(TokenExchangeError) as exc_info:
        await client.token_manager.get_access_token()

    assert exc_info.value.status_code == 403
    assert token_store.load() is None
