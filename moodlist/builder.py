# moodlist/builder.py
# ---------------------------------------------------------------------------
# End-to-end playlist generation.
#   recommendation flow (spotify): tags → allow-listed genres + energy
#       → one /recommendations call → private playlist → batch append
#   aggregation flow (youtube):    tags → Last.fm top tracks per tag
#       → private playlist → search + insert per track
# ---------------------------------------------------------------------------
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, List, Tuple, TypeVar

import httpx

from moodlist.auth import Credentials, OAuthProvider, call_with_refresh, provider_for, refresh_access_token
from moodlist.config import Settings
from moodlist.errors import InvalidRequest, MissingCredentials, NoTracksFound, NotConfigured, UpstreamError
from moodlist.lastfm import MAX_AGGREGATED_TRACKS, LastFmClient
from moodlist.llm_helper import TagChain, build_tag_chain
from moodlist.schemas import MAX_PROMPT_CHARS, GeneratePlaylistRequest, GeneratePlaylistResponse, Playlist, Track, TrackOut
from moodlist.spotify import RECOMMENDATION_LIMIT, SpotifyClient, clamp_energy, filter_genres
from moodlist.youtube import YouTubeClient

log = logging.getLogger("moodlist.builder")

R = TypeVar("R")


# ----------------------------------
# Per-request wiring
# ----------------------------------
@dataclass
class Services:
    settings: Settings
    http: httpx.AsyncClient
    tags: TagChain
    oauth: OAuthProvider

    def spotify(self, access_token: str) -> SpotifyClient:
        return SpotifyClient(self.http, access_token)

    def youtube(self, access_token: str) -> YouTubeClient:
        return YouTubeClient(self.http, access_token)

    def lastfm(self) -> LastFmClient:
        if not self.settings.lastfm_api_key:
            raise NotConfigured("LASTFM_API_KEY is not configured")
        return LastFmClient(self.http, self.settings.lastfm_api_key)

    async def refresh(self, refresh_token: str) -> Dict[str, Any]:
        return await refresh_access_token(self.http, self.oauth, refresh_token)


def build_services(settings: Settings, http: httpx.AsyncClient, openai_client: Any = None) -> Services:
    return Services(
        settings=settings,
        http=http,
        tags=build_tag_chain(settings, http, openai_client=openai_client),
        oauth=provider_for(settings),
    )


@dataclass
class GenerationResult:
    response: GeneratePlaylistResponse
    credentials: Credentials


# ----------------------------------
# Helpers
# ----------------------------------
def validate_request(req: GeneratePlaylistRequest) -> Tuple[str, str, Credentials]:
    prompt = (req.prompt or "").strip()
    name = (req.playlist_name or "").strip()
    if not prompt or not name:
        raise InvalidRequest("Both prompt and playlistName are required")
    if len(prompt) > MAX_PROMPT_CHARS:
        raise InvalidRequest(f"prompt must be at most {MAX_PROMPT_CHARS} characters")
    token = (req.access_token or "").strip()
    if not token:
        raise MissingCredentials("Log in first (/login)")
    return prompt, name, Credentials(access_token=token, refresh_token=(req.refresh_token or "").strip() or None)


async def _critical(step: str, call: Awaitable[R]) -> R:
    try:
        return await call
    except httpx.HTTPStatusError as e:
        log.error("[builder] %s failed (%s): %s", step, e.response.status_code, e.response.text)
        raise UpstreamError(f"Could not {step}", provider_body=e.response.text)


def _description(prompt: str) -> str:
    return f"Generated from: {prompt}"[:300]


def _message(added: List[Track], wanted: List[Track]) -> str:
    if len(added) == len(wanted):
        return f"Playlist created with {len(added)} tracks"
    return f"Playlist created with {len(added)} of {len(wanted)} tracks"


def _tracks_out(tracks: List[Track]) -> List[TrackOut]:
    return [TrackOut(name=t.name, artist=t.artist, url=t.url) for t in tracks]


# ----------------------------------
# Flows
# ----------------------------------
async def run_recommendation_flow(services: Services, prompt: str, name: str,
                                  creds: Credentials) -> GenerationResult:
    me, creds = await call_with_refresh(
        lambda token: services.spotify(token).get_me(), creds, services.refresh
    )
    spotify = services.spotify(creds.access_token)

    analysis = await services.tags.analyze(prompt)
    genres = filter_genres(analysis.tags)
    energy = clamp_energy(analysis.energy)

    tracks = await spotify.get_recommendations(genres, energy, limit=RECOMMENDATION_LIMIT)
    tracks = tracks[:RECOMMENDATION_LIMIT]
    if not tracks:
        raise NoTracksFound("No tracks found for this prompt")

    playlist: Playlist = await _critical(
        "create playlist",
        spotify.create_playlist(me["id"], name, public=False, description=_description(prompt)),
    )
    added = await _critical("add tracks", spotify.add_tracks_tolerant(playlist.id, tracks))
    if not added:
        raise NoTracksFound("None of the tracks could be added to the playlist")

    return GenerationResult(
        response=GeneratePlaylistResponse(
            message=_message(added, tracks),
            playlistUrl=playlist.url,
            tracks=_tracks_out(added),
            mood=analysis.mood,
            energy=energy,
            genres=genres,
        ),
        credentials=creds,
    )


async def run_aggregation_flow(services: Services, prompt: str, name: str,
                               creds: Credentials) -> GenerationResult:
    _channel, creds = await call_with_refresh(
        lambda token: services.youtube(token).get_channel(), creds, services.refresh
    )
    youtube = services.youtube(creds.access_token)

    analysis = await services.tags.analyze(prompt)
    tracks = await services.lastfm().tracks_for_tags(analysis.tags, cap=MAX_AGGREGATED_TRACKS)
    if not tracks:
        raise NoTracksFound("No tracks found for these tags")

    playlist: Playlist = await _critical(
        "create playlist", youtube.create_playlist(name, description=_description(prompt))
    )
    added = await youtube.add_tracks_tolerant(playlist.id, tracks)
    if not added:
        raise NoTracksFound("None of the tracks could be added to the playlist")

    return GenerationResult(
        response=GeneratePlaylistResponse(
            message=_message(added, tracks),
            playlistUrl=playlist.url,
            tracks=_tracks_out(added),
            mood=analysis.mood,
            tags=analysis.tags,
        ),
        credentials=creds,
    )


async def generate_playlist(services: Services, req: GeneratePlaylistRequest) -> GenerationResult:
    prompt, name, creds = validate_request(req)
    if services.settings.platform == "youtube":
        return await run_aggregation_flow(services, prompt, name, creds)
    return await run_recommendation_flow(services, prompt, name, creds)
