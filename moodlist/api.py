# moodlist/api.py
from __future__ import annotations
from typing import AsyncIterator, Optional
import logging, secrets
import httpx
from fastapi import FastAPI, Depends, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse, JSONResponse, PlainTextResponse

from moodlist import __version__
from moodlist.auth import (
    build_frontend_redirect, create_login_redirect_url,
    exchange_code_for_tokens, provider_for,
)
from moodlist.builder import Services, build_services, generate_playlist
from moodlist.config import Settings, load_settings
from moodlist.errors import InvalidRequest, PlaylistError, UpstreamError
from moodlist.schemas import MAX_PROMPT_CHARS, AnalyzeRequest, AnalyzeResponse, GeneratePlaylistRequest

log = logging.getLogger("moodlist.api")

STATE_COOKIE = "oauth_state"


# ----------------------------------
# Dependencies
# ----------------------------------
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_http(settings: Settings = Depends(get_settings)) -> AsyncIterator[httpx.AsyncClient]:
    # one client per request; calls on it are awaited one at a time
    async with httpx.AsyncClient(timeout=settings.http_timeout) as http:
        yield http


async def get_services(settings: Settings = Depends(get_settings),
                       http: httpx.AsyncClient = Depends(get_http)) -> Services:
    return build_services(settings, http)


# ----------------------------------
# App
# ----------------------------------
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))

    app = FastAPI(
        title="moodlist – prompt to playlist",
        version=__version__,
        description="Turns a mood/situation prompt into a playlist on Spotify or YouTube.",
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PlaylistError)
    async def playlist_error_handler(request: Request, exc: PlaylistError):
        if isinstance(exc, UpstreamError) and exc.provider_body:
            log.error("[api] %s | provider said: %s", exc.message, exc.provider_body)
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(httpx.HTTPError)
    async def upstream_error_handler(request: Request, exc: httpx.HTTPError):
        body = exc.response.text if isinstance(exc, httpx.HTTPStatusError) else ""
        log.error("[api] upstream call failed: %s %s", exc, body)
        return JSONResponse({"error": "Failed to generate playlist"}, status_code=500)

    # ----------------------------------
    # OAuth Login Flow
    # ----------------------------------
    @app.get("/login")
    def login(settings: Settings = Depends(get_settings)):
        provider = provider_for(settings)
        if not provider.configured:
            return PlainTextResponse(f"{provider.name} OAuth is not configured", status_code=500)
        state = secrets.token_urlsafe(16)
        resp = RedirectResponse(create_login_redirect_url(provider, state), status_code=302)
        resp.set_cookie(STATE_COOKIE, state, httponly=True, samesite="lax", max_age=600)
        return resp

    @app.get("/callback")
    async def callback(
        request: Request,
        code: Optional[str] = None,
        state: Optional[str] = None,
        error: Optional[str] = None,
        settings: Settings = Depends(get_settings),
        http: httpx.AsyncClient = Depends(get_http),
    ):
        if error:
            return PlainTextResponse(f"Login was not completed: {error}", status_code=400)
        if not code:
            return PlainTextResponse("Missing authorization code", status_code=400)
        expected = request.cookies.get(STATE_COOKIE)
        if expected and state != expected:
            return PlainTextResponse("Invalid OAuth state", status_code=400)

        provider = provider_for(settings)
        try:
            tokens = await exchange_code_for_tokens(http, provider, code)
        except httpx.HTTPError as e:
            body = e.response.text if isinstance(e, httpx.HTTPStatusError) else str(e)
            log.error("[auth] %s code exchange failed: %s", provider.name, body)
            return PlainTextResponse(f"{provider.name} login failed", status_code=500)

        resp = RedirectResponse(build_frontend_redirect(settings.frontend_url, tokens), status_code=302)
        resp.delete_cookie(STATE_COOKIE)
        return resp

    # ----------------------------------
    # Playlist generation
    # ----------------------------------
    @app.post("/generate-playlist")
    async def api_generate_playlist(
        body: GeneratePlaylistRequest,
        response: Response,
        services: Services = Depends(get_services),
    ):
        try:
            result = await generate_playlist(services, body)
        except (PlaylistError, httpx.HTTPError):
            raise
        except Exception:
            log.exception("[api] playlist generation crashed")
            raise UpstreamError("Failed to generate playlist")

        if result.credentials.refreshed:
            response.set_cookie("access_token", result.credentials.access_token,
                                httponly=True, samesite="lax")
        return result.response.model_dump(by_alias=True, exclude_none=True)

    @app.post("/analyze", response_model=AnalyzeResponse)
    async def api_analyze(body: AnalyzeRequest, services: Services = Depends(get_services)):
        prompt = (body.prompt or "").strip()
        if not prompt or len(prompt) > MAX_PROMPT_CHARS:
            raise InvalidRequest(f"prompt must be 1..{MAX_PROMPT_CHARS} characters")
        analysis = await services.tags.analyze(prompt)
        return AnalyzeResponse(**analysis.model_dump())

    # Utility routes
    @app.get("/")
    def root(settings: Settings = Depends(get_settings)):
        return {"service": "moodlist", "platform": settings.platform, "status": "ok"}

    @app.get("/health")
    def health():
        return {"ok": True}

    return app


app = create_app()
