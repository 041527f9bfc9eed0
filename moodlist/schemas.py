from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field

MAX_TAGS = 3
MAX_PROMPT_CHARS = 800


class Track(BaseModel):
    name: str
    artist: str
    url: Optional[str] = None
    uri: Optional[str] = None  # platform-native id (spotify:track:...)


class PromptAnalysis(BaseModel):
    tags: List[str] = Field(min_length=1, max_length=MAX_TAGS)
    mood: Optional[str] = None
    energy: Optional[float] = None
    source: str = "unknown"


class Playlist(BaseModel):
    id: str
    url: str


class GeneratePlaylistRequest(BaseModel):
    # everything optional so the route can answer 400/401 itself instead of 422
    model_config = ConfigDict(populate_by_name=True)

    prompt: Optional[str] = None
    playlist_name: Optional[str] = Field(default=None, alias="playlistName")
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


class TrackOut(BaseModel):
    name: str
    artist: str
    url: Optional[str] = None


class GeneratePlaylistResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    playlist_url: str = Field(alias="playlistUrl")
    tracks: List[TrackOut]
    mood: Optional[str] = None
    energy: Optional[float] = None
    genres: Optional[List[str]] = None
    tags: Optional[List[str]] = None


class AnalyzeRequest(BaseModel):
    prompt: Optional[str] = None


class AnalyzeResponse(BaseModel):
    tags: List[str]
    mood: Optional[str] = None
    energy: Optional[float] = None
    source: str
