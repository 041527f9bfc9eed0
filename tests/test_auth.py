import asyncio
import base64
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from moodlist.auth import (
    GOOGLE_TOKEN_URL,
    SPOTIFY_TOKEN_URL,
    Credentials,
    build_frontend_redirect,
    call_with_refresh,
    create_login_redirect_url,
    exchange_code_for_tokens,
    provider_for,
    refresh_access_token,
)
from moodlist.errors import SessionExpired, UpstreamError

from conftest import make_settings


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://api.example.com/me")
    response = httpx.Response(status, request=request, text="nope")
    return httpx.HTTPStatusError(f"{status}", request=request, response=response)


def test_spotify_login_url():
    provider = provider_for(make_settings())
    url = urlparse(create_login_redirect_url(provider, "st4te"))
    q = parse_qs(url.query)

    assert url.netloc == "accounts.spotify.com"
    assert q["client_id"] == ["spotify-cid"]
    assert q["response_type"] == ["code"]
    assert q["state"] == ["st4te"]
    assert set(q["scope"][0].split()) == {"playlist-modify-public", "playlist-modify-private", "user-read-private"}


def test_youtube_login_url_requests_offline_access():
    provider = provider_for(make_settings(platform="youtube"))
    q = parse_qs(urlparse(create_login_redirect_url(provider, "s")).query)

    assert provider.name == "youtube"
    assert q["client_id"] == ["google-cid"]
    assert q["access_type"] == ["offline"]
    assert q["scope"] == ["https://www.googleapis.com/auth/youtube"]


def test_unconfigured_provider():
    assert not provider_for(make_settings(spotify_client_id="")).configured


def test_spotify_code_exchange_uses_basic_auth(upstream):
    upstream.add("POST", SPOTIFY_TOKEN_URL, json_body={"access_token": "a", "refresh_token": "r"})
    provider = provider_for(make_settings())

    tokens = asyncio.run(exchange_code_for_tokens(upstream.client(), provider, "the-code"))

    assert tokens == {"access_token": "a", "refresh_token": "r"}
    req = upstream.calls[0]
    expected = base64.b64encode(b"spotify-cid:spotify-secret").decode()
    assert req.headers["Authorization"] == f"Basic {expected}"
    form = parse_qs(req.content.decode())
    assert form["grant_type"] == ["authorization_code"]
    assert form["code"] == ["the-code"]
    assert "client_secret" not in form


def test_google_refresh_sends_client_credentials_and_keeps_refresh_token(upstream):
    upstream.add("POST", GOOGLE_TOKEN_URL, json_body={"access_token": "fresh", "expires_in": 3599})
    provider = provider_for(make_settings(platform="youtube"))

    tokens = asyncio.run(refresh_access_token(upstream.client(), provider, "r-1"))

    assert tokens["access_token"] == "fresh"
    assert tokens["refresh_token"] == "r-1"
    form = parse_qs(upstream.calls[0].content.decode())
    assert form["client_id"] == ["google-cid"]
    assert form["grant_type"] == ["refresh_token"]


def test_frontend_redirect_carries_tokens():
    url = build_frontend_redirect("http://localhost:8501/", {"access_token": "a b", "refresh_token": "r"})
    assert url == "http://localhost:8501/?access_token=a+b&refresh_token=r"
    assert build_frontend_redirect("http://x", {"access_token": "a"}) == "http://x/?access_token=a"


# ---- refresh-and-retry ----
class FakeCall:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.tokens = []

    async def __call__(self, token):
        self.tokens.append(token)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def refresher(tokens=None, exc=None):
    calls = []

    async def _refresh(refresh_token):
        calls.append(refresh_token)
        if exc is not None:
            raise exc
        return tokens

    _refresh.calls = calls
    return _refresh


def test_valid_token_is_used_as_is():
    call = FakeCall([{"id": "me"}])
    refresh = refresher()
    result, creds = asyncio.run(call_with_refresh(call, Credentials("old", "r"), refresh))
    assert result == {"id": "me"}
    assert creds.refreshed is False
    assert refresh.calls == []


def test_401_refreshes_once_and_retries():
    call = FakeCall([_status_error(401), {"id": "me"}])
    refresh = refresher({"access_token": "new", "refresh_token": "r2"})

    result, creds = asyncio.run(call_with_refresh(call, Credentials("old", "r"), refresh))

    assert result == {"id": "me"}
    assert call.tokens == ["old", "new"]
    assert refresh.calls == ["r"]
    assert creds == Credentials("new", "r2", refreshed=True)


def test_second_401_propagates():
    call = FakeCall([_status_error(401), _status_error(401)])
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(call_with_refresh(call, Credentials("old", "r"), refresher({"access_token": "new"})))


def test_401_without_refresh_token_is_session_expired():
    with pytest.raises(SessionExpired):
        asyncio.run(call_with_refresh(FakeCall([_status_error(401)]), Credentials("old"), refresher()))


def test_other_errors_are_not_refreshed():
    refresh = refresher()
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(call_with_refresh(FakeCall([_status_error(500)]), Credentials("old", "r"), refresh))
    assert refresh.calls == []


def test_failed_refresh_is_upstream_error():
    refresh = refresher(exc=_status_error(400))
    with pytest.raises(UpstreamError) as info:
        asyncio.run(call_with_refresh(FakeCall([_status_error(401)]), Credentials("old", "r"), refresh))
    assert info.value.provider_body == "nope"
