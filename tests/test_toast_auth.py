import asyncio
import json

import httpx
import pytest

from restaurant_intel.services.toast_auth import EXPIRY_SAFETY_MARGIN_SECONDS, ToastTokenManager
from restaurant_intel.services.toast_errors import AuthenticationError


def _manager(make_client, **overrides) -> ToastTokenManager:
    return make_client(**overrides).tokens


def test_login_caches_token_until_safety_margin(fake_toast, clock, make_client):
    tokens = _manager(make_client)

    first = asyncio.run(tokens.ensure_authenticated())
    again = asyncio.run(tokens.ensure_authenticated())

    assert first.value == "token-1"
    assert again is first
    assert fake_toast.logins == 1
    assert first.expires_at == clock.now + 3600 - EXPIRY_SAFETY_MARGIN_SECONDS

    login = fake_toast.requests[0]
    assert json.loads(login.content) == {
        "clientId": "client-id-0123456789",
        "clientSecret": "primary-secret-value",
        "userAccessType": "TOAST_MACHINE_CLIENT",
    }


def test_token_is_refreshed_once_expired(fake_toast, clock, make_client):
    tokens = _manager(make_client)
    asyncio.run(tokens.ensure_authenticated())

    clock.advance(3600 - EXPIRY_SAFETY_MARGIN_SECONDS - 1)
    assert tokens.is_valid()

    clock.advance(1)
    assert not tokens.is_valid()

    refreshed = asyncio.run(tokens.ensure_authenticated())
    assert refreshed.value == "token-2"
    assert fake_toast.logins == 2


def test_invalidate_drops_the_token(fake_toast, clock, make_client):
    tokens = _manager(make_client)
    asyncio.run(tokens.ensure_authenticated())

    tokens.invalidate()

    assert tokens.token is None
    assert tokens.describe() == {"hasAccessToken": False, "tokenExpiry": None, "tokenValid": False}


def test_fallback_secret_is_used_when_the_first_is_rejected(fake_toast, clock, make_client):
    tokens = _manager(make_client, client_secrets=("rotated-out", "primary-secret-value"))

    token = asyncio.run(tokens.authenticate())

    assert token.value == "token-1"
    assert fake_toast.logins == 2
    assert tokens.describe()["tokenValid"] is True


def test_single_secret_failure_surfaces_vendor_message(fake_toast, clock, make_client):
    tokens = _manager(make_client, client_secrets=("wrong",))

    with pytest.raises(AuthenticationError, match="^Invalid client credentials$"):
        asyncio.run(tokens.authenticate())
    assert tokens.token is None


def test_every_secret_failing_lists_each_attempt(fake_toast, clock, make_client):
    tokens = _manager(make_client, client_secrets=("wrong-1", "wrong-2"))

    with pytest.raises(AuthenticationError) as excinfo:
        asyncio.run(tokens.authenticate())

    message = str(excinfo.value)
    assert message.startswith("All 2 client secrets failed authentication")
    assert "secret 1: Invalid client credentials" in message
    assert "secret 2: Invalid client credentials" in message


def test_missing_access_token_is_an_authentication_error(fake_toast, clock, make_client):
    fake_toast.handler = lambda request: httpx.Response(200, json={"token": {}})
    tokens = _manager(make_client)

    with pytest.raises(AuthenticationError, match="did not include an access token"):
        asyncio.run(tokens.authenticate())


def test_default_expiry_when_vendor_omits_it(fake_toast, clock, make_client):
    fake_toast.handler = lambda request: httpx.Response(200, json={"token": {"accessToken": "abc"}})
    tokens = _manager(make_client)

    token = asyncio.run(tokens.authenticate())

    assert token.expires_in == 3600
