import json
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from moodlist.config import Settings


def make_settings(**overrides) -> Settings:
    base = dict(
        platform="spotify",
        spotify_client_id="spotify-cid",
        spotify_client_secret="spotify-secret",
        spotify_redirect_uri="http://127.0.0.1:8000/callback",
        google_client_id="google-cid",
        google_client_secret="google-secret",
        google_redirect_uri="http://127.0.0.1:8000/callback",
        openai_api_key="sk-test",
        hf_api_key="hf-test",
        lastfm_api_key="lastfm-test",
        frontend_url="http://localhost:8501",
    )
    base.update(overrides)
    return Settings(**base)


class FakeUpstream:
    """httpx.MockTransport handler routing on (METHOD, scheme://host/path)."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.calls: List[httpx.Request] = []

    def add(self, method: str, url: str, status: int = 200, json_body: Any = None,
            handler: Optional[Callable[[httpx.Request], httpx.Response]] = None) -> None:
        if handler is None:
            handler = lambda request: httpx.Response(status, json=json_body if json_body is not None else {})
        self.routes[(method.upper(), url)] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        key = (request.method, f"{request.url.scheme}://{request.url.host}{request.url.path}")
        handler = self.routes.get(key)
        if handler is None:
            return httpx.Response(404, json={"error": f"no fake route for {key}"})
        return handler(request)

    def calls_to(self, url_part: str) -> List[httpx.Request]:
        return [c for c in self.calls if url_part in str(c.url)]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


class FakeOpenAI:
    """Stands in for openai.AsyncOpenAI: only chat.completions.create is used."""

    def __init__(self, content: Optional[str] = None, exc: Optional[Exception] = None):
        self.content = content
        self.exc = exc
        self.calls: List[dict] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    async def _create(self, **kwargs):
        self.calls.append(kwargs)
        if self.exc is not None:
            raise self.exc
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    @classmethod
    def answering(cls, **payload) -> "FakeOpenAI":
        return cls(content=json.dumps(payload))


def spotify_track(i: int) -> dict:
    return {
        "name": f"Song {i}",
        "uri": f"spotify:track:{i:022d}",
        "artists": [{"name": f"Artist {i}"}],
        "external_urls": {"spotify": f"https://open.spotify.com/track/{i:022d}"},
    }


def lastfm_payload(tag: str, n: int) -> dict:
    return {"tracks": {"track": [
        {"name": f"{tag} song {i}", "artist": {"name": f"{tag} artist {i}"}, "url": f"https://www.last.fm/{tag}/{i}"}
        for i in range(n)
    ]}}


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def settings() -> Settings:
    return make_settings()
