# moodlist/lastfm.py
# -------------------------------------------------------------------
# Last.fm catalogue lookups for the aggregation flow: one
# tag.gettoptracks call per tag, concatenated and capped.
# -------------------------------------------------------------------
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from moodlist.partial import collect_successes
from moodlist.schemas import Track

log = logging.getLogger("moodlist.lastfm")

LASTFM_API_URL = "https://ws.audioscrobbler.com/2.0/"
TRACKS_PER_TAG = 10
MAX_AGGREGATED_TRACKS = 15


class LastFmError(Exception):
    """Last.fm answers most errors with HTTP 200 and an ``error`` field."""

    def __init__(self, code: Any, message: str):
        super().__init__(f"Last.fm error {code}: {message}")
        self.code = code


def _track_from_item(item: Dict[str, Any]) -> Optional[Track]:
    name = (item.get("name") or "").strip()
    artist = item.get("artist") or {}
    artist_name = artist.get("name") if isinstance(artist, dict) else str(artist)
    if not name or not artist_name:
        return None
    return Track(name=name, artist=artist_name.strip(), url=item.get("url"))


class LastFmClient:
    def __init__(self, http: httpx.AsyncClient, api_key: str):
        self.http = http
        self.api_key = api_key

    async def top_tracks_by_tag(self, tag: str, limit: int = TRACKS_PER_TAG) -> List[Track]:
        r = await self.http.get(LASTFM_API_URL, params={
            "method": "tag.gettoptracks",
            "tag": tag,
            "api_key": self.api_key,
            "format": "json",
            "limit": limit,
        })
        r.raise_for_status()
        data = r.json()
        if "error" in data:
            raise LastFmError(data.get("error"), data.get("message", ""))

        items = (data.get("tracks") or {}).get("track") or []
        if isinstance(items, dict):  # single result comes back unwrapped
            items = [items]
        tracks = [_track_from_item(t) for t in items if isinstance(t, dict)]
        return [t for t in tracks if t is not None][:limit]

    async def tracks_for_tags(self, tags: List[str], cap: int = MAX_AGGREGATED_TRACKS) -> List[Track]:
        """Per-tag lookups in order; a failing tag is logged and skipped."""
        result = await collect_successes(tags, self.top_tracks_by_tag, label="lastfm")
        merged: List[Track] = []
        for batch in result.ok:
            merged.extend(batch)
        log.info("[lastfm] %d tracks from %d/%d tags", len(merged), len(result.ok), result.attempted)
        return merged[:cap]
