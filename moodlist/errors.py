# moodlist/errors.py
from __future__ import annotations

from typing import Optional


class PlaylistError(Exception):
    """Base error; rendered by the API as ``{"error": message}`` with ``status_code``."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidRequest(PlaylistError):
    status_code = 400


class MissingCredentials(PlaylistError):
    status_code = 401


class SessionExpired(PlaylistError):
    status_code = 401


class NoTracksFound(PlaylistError):
    status_code = 400


class NotConfigured(PlaylistError):
    status_code = 500


class UpstreamError(PlaylistError):
    """A provider call on the critical path failed (OAuth exchange, playlist creation)."""

    status_code = 500

    def __init__(self, message: str, provider_body: str = ""):
        super().__init__(message)
        self.provider_body = provider_body
