import logging
import math
from typing import Any, Dict, Iterable, List, Optional

import httpx

from moodlist.partial import collect_successes
from moodlist.schemas import Playlist, Track

log = logging.getLogger("moodlist.spotify")

API_BASE = "https://api.spotify.com/v1"

# ----------------------------
# Seeds
# ----------------------------
VALID_GENRES = [
    "pop", "rock", "hip-hop", "dance", "country",
    "jazz", "classical", "blues", "metal", "reggae",
    "soul", "punk", "funk", "electronic",
]
DEFAULT_GENRE = "pop"
MAX_SEED_GENRES = 3
DEFAULT_ENERGY = 0.5
RECOMMENDATION_LIMIT = 20


def filter_genres(genres: Optional[Iterable[Any]]) -> List[str]:
    """Keep allow-listed genres (case-insensitive, first 3); fall back to ``["pop"]``."""
    out: List[str] = []
    for g in genres or []:
        if not isinstance(g, str):
            continue
        g = g.strip().lower()
        if g in VALID_GENRES and g not in out:
            out.append(g)
        if len(out) >= MAX_SEED_GENRES:
            break
    return out or [DEFAULT_GENRE]


def clamp_energy(value: Any) -> float:
    if isinstance(value, bool):
        return DEFAULT_ENERGY
    try:
        energy = float(value)
    except (TypeError, ValueError):
        return DEFAULT_ENERGY
    if math.isnan(energy):
        return DEFAULT_ENERGY
    return min(max(energy, 0.0), 1.0)


def track_from_item(item: Dict[str, Any]) -> Optional[Track]:
    name = (item.get("name") or "").strip()
    uri = item.get("uri")
    if not name or not uri:
        return None
    artists = item.get("artists") or []
    artist = (artists[0].get("name") or "") if artists else ""
    return Track(
        name=name,
        artist=artist or "Unknown artist",
        url=(item.get("external_urls") or {}).get("spotify"),
        uri=uri,
    )


# ----------------------------
# Client
# ----------------------------
class SpotifyClient:
    """Thin async wrapper over the Spotify Web API for one user token."""

    def __init__(self, http: httpx.AsyncClient, access_token: str):
        self.http = http
        self.access_token = access_token

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _get(self, path: str, params: Optional[dict] = None) -> dict:
        r = await self.http.get(f"{API_BASE}{path}", headers=self.headers, params=params)
        r.raise_for_status()
        return r.json()

    async def _post(self, path: str, payload: dict) -> dict:
        r = await self.http.post(f"{API_BASE}{path}", headers=self.headers, json=payload)
        r.raise_for_status()
        return r.json() if r.content else {}

    async def get_me(self) -> dict:
        return await self._get("/me")

    async def get_recommendations(
        self,
        seed_genres: List[str],
        target_energy: float,
        limit: int = RECOMMENDATION_LIMIT,
    ) -> List[Track]:
        limit = min(max(limit, 1), RECOMMENDATION_LIMIT)
        data = await self._get("/recommendations", params={
            "seed_genres": ",".join(filter_genres(seed_genres)),
            "target_energy": clamp_energy(target_energy),
            "limit": limit,
        })
        tracks = [track_from_item(t) for t in data.get("tracks") or []]
        return [t for t in tracks if t is not None][:limit]

    async def create_playlist(self, user_id: str, name: str, public: bool = False,
                              description: str = "") -> Playlist:
        body = await self._post(f"/users/{user_id}/playlists", {
            "name": name,
            "public": public,
            "description": description,
        })
        pid = body["id"]
        url = (body.get("external_urls") or {}).get("spotify") or f"https://open.spotify.com/playlist/{pid}"
        return Playlist(id=pid, url=url)

    async def add_tracks(self, playlist_id: str, uris: List[str]) -> None:
        await self._post(f"/playlists/{playlist_id}/tracks", {"uris": uris})

    async def add_tracks_tolerant(self, playlist_id: str, tracks: List[Track]) -> List[Track]:
        """One batch append. A 400 (bad uri in the batch) falls back to one append per track."""
        tracks = [t for t in tracks if t.uri]
        if not tracks:
            return []
        try:
            await self.add_tracks(playlist_id, [t.uri for t in tracks])
            return tracks
        except httpx.HTTPStatusError as e:
            if e.response.status_code != 400:
                raise
            log.warning("[spotify] batch append rejected (%s); appending per track", e.response.text)

        async def _add_one(track: Track) -> Track:
            await self.add_tracks(playlist_id, [track.uri])
            return track

        added = await collect_successes(tracks, _add_one, label="spotify-append")
        return added.ok
