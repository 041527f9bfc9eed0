# moodlist/auth.py
from __future__ import annotations
import base64, logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar
from urllib.parse import urlencode

import httpx

from moodlist.config import Settings
from moodlist.errors import SessionExpired, UpstreamError

log = logging.getLogger("moodlist.auth")

R = TypeVar("R")

# ---- Provider endpoints ----
SPOTIFY_AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
SPOTIFY_TOKEN_URL     = "https://accounts.spotify.com/api/token"
SPOTIFY_SCOPES        = "playlist-modify-public playlist-modify-private user-read-private"

GOOGLE_AUTHORIZE_URL  = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL      = "https://oauth2.googleapis.com/token"
YOUTUBE_SCOPES        = "https://www.googleapis.com/auth/youtube"


@dataclass(frozen=True)
class OAuthProvider:
    name: str
    authorize_url: str
    token_url: str
    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: str
    extra_params: Dict[str, str] = field(default_factory=dict)
    # Spotify wants client credentials in a Basic header, Google in the form body
    basic_auth: bool = False

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)


def provider_for(settings: Settings) -> OAuthProvider:
    if settings.platform == "youtube":
        return OAuthProvider(
            name="youtube",
            authorize_url=GOOGLE_AUTHORIZE_URL,
            token_url=GOOGLE_TOKEN_URL,
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            redirect_uri=settings.google_redirect_uri,
            scopes=YOUTUBE_SCOPES,
            extra_params={"access_type": "offline", "prompt": "consent", "include_granted_scopes": "true"},
        )
    return OAuthProvider(
        name="spotify",
        authorize_url=SPOTIFY_AUTHORIZE_URL,
        token_url=SPOTIFY_TOKEN_URL,
        client_id=settings.spotify_client_id,
        client_secret=settings.spotify_client_secret,
        redirect_uri=settings.spotify_redirect_uri,
        scopes=SPOTIFY_SCOPES,
        basic_auth=True,
    )


# ---- OAuth helpers ----
def create_login_redirect_url(provider: OAuthProvider, state: str) -> str:
    params = {
        "client_id": provider.client_id,
        "response_type": "code",
        "redirect_uri": provider.redirect_uri,
        "scope": provider.scopes,
        "state": state,
        **provider.extra_params,
    }
    return f"{provider.authorize_url}?{urlencode(params)}"


async def _token_request(http: httpx.AsyncClient, provider: OAuthProvider, data: Dict[str, str]) -> Dict[str, Any]:
    headers: Dict[str, str] = {}
    if provider.basic_auth:
        auth = base64.b64encode(f"{provider.client_id}:{provider.client_secret}".encode()).decode()
        headers["Authorization"] = f"Basic {auth}"
    else:
        data = {**data, "client_id": provider.client_id, "client_secret": provider.client_secret}
    r = await http.post(provider.token_url, headers=headers, data=data)
    r.raise_for_status()
    return r.json()


async def exchange_code_for_tokens(http: httpx.AsyncClient, provider: OAuthProvider, code: str) -> Dict[str, Any]:
    return await _token_request(http, provider, {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": provider.redirect_uri,
    })


async def refresh_access_token(http: httpx.AsyncClient, provider: OAuthProvider, refresh_token: str) -> Dict[str, Any]:
    data = await _token_request(http, provider, {
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
    })
    # carry forward refresh_token if not returned
    if "refresh_token" not in data:
        data["refresh_token"] = refresh_token
    return data


def build_frontend_redirect(frontend_url: str, tokens: Dict[str, Any]) -> str:
    params = {"access_token": tokens.get("access_token", "")}
    if tokens.get("refresh_token"):
        params["refresh_token"] = tokens["refresh_token"]
    return f"{frontend_url.rstrip('/')}/?{urlencode(params)}"


# ---- Per-request credentials ----
@dataclass
class Credentials:
    access_token: str
    refresh_token: Optional[str] = None
    refreshed: bool = False


async def call_with_refresh(
    call: Callable[[str], Awaitable[R]],
    creds: Credentials,
    refresh: Callable[[str], Awaitable[Dict[str, Any]]],
) -> Tuple[R, Credentials]:
    """
    Run ``call(access_token)``. On a 401, exchange the refresh token once and
    retry once with the new access token. A second failure propagates.
    """
    try:
        return await call(creds.access_token), creds
    except httpx.HTTPStatusError as e:
        if e.response.status_code != 401:
            raise
        if not creds.refresh_token:
            raise SessionExpired("Access token expired; log in again (/login)")
        log.info("[auth] access token rejected; refreshing once")

    try:
        tokens = await refresh(creds.refresh_token)
    except httpx.HTTPStatusError as e:
        raise UpstreamError("Could not refresh access token", provider_body=e.response.text)

    new_creds = Credentials(
        access_token=tokens["access_token"],
        refresh_token=tokens.get("refresh_token") or creds.refresh_token,
        refreshed=True,
    )
    return await call(new_creds.access_token), new_creds
