# moodlist/config.py
from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv, find_dotenv
from pydantic import BaseModel, ConfigDict

PLATFORMS = ("spotify", "youtube")


class Settings(BaseModel):
    """Process-wide configuration, loaded once at startup and never mutated."""

    model_config = ConfigDict(frozen=True)

    platform: str = "spotify"

    spotify_client_id: str = ""
    spotify_client_secret: str = ""
    spotify_redirect_uri: str = "http://127.0.0.1:8000/callback"

    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = "http://127.0.0.1:8000/callback"

    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    hf_api_key: str = ""
    hf_model: str = "google/flan-t5-large"
    lastfm_api_key: str = ""

    frontend_url: str = "http://localhost:8501"
    port: int = 8000
    http_timeout: float = 15.0
    log_level: str = "INFO"


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def load_settings(env_file: Optional[str] = None) -> Settings:
    load_dotenv(env_file or find_dotenv(), override=False)

    platform = _env("PLAYLIST_PLATFORM", "spotify").lower()
    if platform not in PLATFORMS:
        raise ValueError(f"PLAYLIST_PLATFORM must be one of {PLATFORMS}, got {platform!r}")

    return Settings(
        platform=platform,
        spotify_client_id=_env("SPOTIFY_CLIENT_ID"),
        spotify_client_secret=_env("SPOTIFY_CLIENT_SECRET"),
        spotify_redirect_uri=_env("SPOTIFY_REDIRECT_URI", "http://127.0.0.1:8000/callback"),
        google_client_id=_env("GOOGLE_CLIENT_ID"),
        google_client_secret=_env("GOOGLE_CLIENT_SECRET"),
        google_redirect_uri=_env("GOOGLE_REDIRECT_URI", "http://127.0.0.1:8000/callback"),
        openai_api_key=_env("OPENAI_API_KEY"),
        openai_model=_env("OPENAI_MODEL", "gpt-4o-mini"),
        hf_api_key=_env("HF_API_KEY"),
        hf_model=_env("HF_MODEL", "google/flan-t5-large"),
        lastfm_api_key=_env("LASTFM_API_KEY"),
        frontend_url=_env("FRONTEND_URL", "http://localhost:8501").rstrip("/"),
        port=int(_env("PORT", "8000")),
        http_timeout=float(_env("HTTP_TIMEOUT", "15")),
        log_level=_env("LOG_LEVEL", "INFO").upper(),
    )
