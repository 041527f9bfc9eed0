import asyncio

import httpx
import pytest

from moodlist.lastfm import LASTFM_API_URL, LastFmClient, LastFmError

from conftest import lastfm_payload


def by_tag(responses):
    def handler(request: httpx.Request) -> httpx.Response:
        tag = request.url.params["tag"]
        status, body = responses[tag]
        return httpx.Response(status, json=body)
    return handler


def test_tracks_for_tags_concatenates_and_caps(upstream):
    upstream.add("GET", LASTFM_API_URL, handler=by_tag({
        "jazz": (200, lastfm_payload("jazz", 10)),
        "soul": (200, lastfm_payload("soul", 10)),
        "blues": (200, lastfm_payload("blues", 10)),
    }))
    client = LastFmClient(upstream.client(), "key")

    tracks = asyncio.run(client.tracks_for_tags(["jazz", "soul", "blues"]))

    assert len(tracks) == 15
    assert tracks[0].name == "jazz song 0"
    assert tracks[0].artist == "jazz artist 0"
    assert tracks[-1].name == "soul song 4"
    assert [c.url.params["method"] for c in upstream.calls] == ["tag.gettoptracks"] * 3
    assert upstream.calls[0].url.params["api_key"] == "key"


def test_failing_tag_is_skipped(upstream):
    upstream.add("GET", LASTFM_API_URL, handler=by_tag({
        "jazz": (500, {"message": "boom"}),
        "soul": (200, {"error": 6, "message": "Tag not found"}),
        "blues": (200, lastfm_payload("blues", 3)),
    }))
    client = LastFmClient(upstream.client(), "key")

    tracks = asyncio.run(client.tracks_for_tags(["jazz", "soul", "blues"]))

    assert [t.name for t in tracks] == ["blues song 0", "blues song 1", "blues song 2"]


def test_error_payload_raises(upstream):
    upstream.add("GET", LASTFM_API_URL, json_body={"error": 10, "message": "Invalid API key"})
    client = LastFmClient(upstream.client(), "bad")

    with pytest.raises(LastFmError):
        asyncio.run(client.top_tracks_by_tag("jazz"))


def test_single_track_object_and_missing_artist(upstream):
    upstream.add("GET", LASTFM_API_URL, json_body={"tracks": {"track": {
        "name": "Only One", "artist": {"name": "Solo"}, "url": "https://www.last.fm/x"}}})
    client = LastFmClient(upstream.client(), "key")
    assert [t.name for t in asyncio.run(client.top_tracks_by_tag("rare"))] == ["Only One"]

    upstream.add("GET", LASTFM_API_URL, json_body={"tracks": {"track": [{"name": "Nobody", "artist": {}}]}})
    assert asyncio.run(client.top_tracks_by_tag("rare")) == []
