# moodlist/youtube.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from moodlist.partial import collect_successes
from moodlist.schemas import Playlist, Track

log = logging.getLogger("moodlist.youtube")

API_BASE = "https://www.googleapis.com/youtube/v3"
WATCH_URL = "https://www.youtube.com/watch?v={video_id}"
PLAYLIST_URL = "https://www.youtube.com/playlist?list={playlist_id}"


class YouTubeClient:
    """YouTube Data API v3 calls made with a user's OAuth token."""

    def __init__(self, http: httpx.AsyncClient, access_token: str):
        self.http = http
        self.access_token = access_token

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    async def get_channel(self) -> dict:
        r = await self.http.get(
            f"{API_BASE}/channels",
            headers=self.headers,
            params={"part": "id,snippet", "mine": "true"},
        )
        r.raise_for_status()
        return r.json()

    async def create_playlist(self, title: str, description: str = "") -> Playlist:
        r = await self.http.post(
            f"{API_BASE}/playlists",
            headers=self.headers,
            params={"part": "snippet,status"},
            json={
                "snippet": {"title": title, "description": description},
                "status": {"privacyStatus": "private"},
            },
        )
        r.raise_for_status()
        pid = r.json()["id"]
        return Playlist(id=pid, url=PLAYLIST_URL.format(playlist_id=pid))

    async def search_video(self, track: Track) -> Optional[str]:
        r = await self.http.get(
            f"{API_BASE}/search",
            headers=self.headers,
            params={
                "part": "snippet",
                "type": "video",
                "maxResults": 1,
                "q": f"{track.name} {track.artist}",
            },
        )
        r.raise_for_status()
        items = r.json().get("items") or []
        if not items:
            return None
        return (items[0].get("id") or {}).get("videoId")

    async def insert_video(self, playlist_id: str, video_id: str) -> None:
        r = await self.http.post(
            f"{API_BASE}/playlistItems",
            headers=self.headers,
            params={"part": "snippet"},
            json={"snippet": {
                "playlistId": playlist_id,
                "resourceId": {"kind": "youtube#video", "videoId": video_id},
            }},
        )
        r.raise_for_status()

    async def add_tracks_tolerant(self, playlist_id: str, tracks: List[Track]) -> List[Track]:
        async def _add_one(track: Track) -> Optional[Track]:
            video_id = await self.search_video(track)
            if not video_id:
                return None
            await self.insert_video(playlist_id, video_id)
            return track.model_copy(update={
                "url": WATCH_URL.format(video_id=video_id),
                "uri": video_id,
            })

        added = await collect_successes(tracks, _add_one, label="youtube-append")
        log.info("[youtube] added %d/%d tracks", len(added.ok), added.attempted)
        return added.ok
