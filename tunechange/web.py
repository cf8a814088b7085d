#!/usr/bin/env python3
"""TuneChange - HTTP entry point for Spotify to YouTube conversions"""

import json
import logging
import os
import sys
from contextlib import closing
from typing import Callable, Mapping

from dotenv import load_dotenv
from flask import Flask, Response, jsonify, request, session, stream_with_context

from tunechange.clients.search import make_search_backend
from tunechange.clients.spotify import SpotifyClient
from tunechange.clients.youtube import YouTubeClient, credentials_from_tokens
from tunechange.config import ConfigError, Settings
from tunechange.core.converter import Converter, MatcherProtocol, YouTubeClientProtocol
from tunechange.core.matcher import VideoMatcher
from tunechange.core.models import ClientInputError, ConversionError, PlaylistRequest

logger = logging.getLogger(__name__)

LOGIN_YOUTUBE_FIRST = "Login to YouTube first"


def setup_logging() -> None:
    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    log_file = os.environ.get("LOG_FILE")
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )


def get_destination_credential(store: Mapping) -> dict | None:
    """Google OAuth tokens of the signed-in YouTube account, if any."""
    tokens = store.get("google_tokens")
    if not tokens or not (tokens.get("access_token") or tokens.get("refresh_token")):
        return None
    return tokens


def get_source_credential(store: Mapping) -> str | None:
    """User-delegated Spotify access token, if the user signed in."""
    tokens = store.get("spotify_tokens") or {}
    return tokens.get("access_token")


def _sse(data: dict) -> str:
    return f"data: {json.dumps(data)}\n\n"


def _request_fields(data) -> PlaylistRequest:
    if not isinstance(data, Mapping):
        raise ClientInputError("Request body must be a JSON object")

    source = data.get("sourcePlaylistRef") or data.get("playlistUrl") or ""
    destination = data.get("destinationPlaylistId") or data.get("existingId")
    if not isinstance(source, str):
        raise ClientInputError("sourcePlaylistRef must be a string")
    if destination is not None and not isinstance(destination, str):
        raise ClientInputError("destinationPlaylistId must be a string")

    return PlaylistRequest(source_playlist_ref=source, destination_playlist_id=destination)


def create_app(settings: Settings | None = None,
               spotify: SpotifyClient | None = None,
               matcher: MatcherProtocol | None = None,
               youtube_factory: Callable[[dict], YouTubeClientProtocol] | None = None) -> Flask:
    settings = settings or Settings.from_env()

    app = Flask(__name__)
    app.secret_key = settings.session_secret

    spotify = spotify or SpotifyClient(
        settings.spotify_client_id,
        settings.spotify_client_secret,
        timeout=settings.http_timeout,
        max_pages=settings.max_pages,
    )
    matcher = matcher or VideoMatcher(
        make_search_backend(settings.youtube_api_key, timeout=settings.http_timeout),
        timeout=settings.search_timeout,
    )

    def default_youtube_factory(tokens: dict) -> YouTubeClient:
        credentials = credentials_from_tokens(
            tokens, settings.google_client_id, settings.google_client_secret
        )
        return YouTubeClient(credentials, timeout=settings.http_timeout)

    youtube_factory = youtube_factory or default_youtube_factory

    def make_converter(tokens: dict) -> Converter:
        return Converter(
            spotify,
            youtube_factory(tokens),
            matcher,
            insert_delay=settings.insert_delay,
            privacy=settings.playlist_privacy,
        )

    @app.post("/convert")
    def convert():
        tokens = get_destination_credential(session)
        if not tokens:
            return jsonify(error=LOGIN_YOUTUBE_FIRST), 401

        try:
            playlist_request = _request_fields(request.get_json(silent=True) or request.form)
            converter = make_converter(tokens)
            report = converter.convert(playlist_request, get_source_credential(session))
        except ConversionError as e:
            return jsonify(error=str(e)), e.status_code
        except Exception as e:
            logger.error(f"Conversion failed: {e}")
            return jsonify(error=str(e)), 500

        return jsonify(report.to_dict())

    @app.get("/stream-convert")
    def stream_convert():
        playlist_request = _request_fields(request.args)
        tokens = get_destination_credential(session)
        user_token = get_source_credential(session)

        def generate():
            if not tokens:
                yield _sse({"error": LOGIN_YOUTUBE_FIRST})
                return

            try:
                converter = make_converter(tokens)
            except Exception as e:
                logger.exception(f"YouTube client setup failed: {e}")
                yield _sse({"error": f"YouTube API Error: {e}"})
                return

            with closing(converter.run(playlist_request, user_token)) as events:
                for event in events:
                    yield _sse(event.to_dict())

        return Response(
            stream_with_context(generate()),
            mimetype="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    return app


def main() -> int:
    load_dotenv()
    setup_logging()

    try:
        settings = Settings.from_env()
    except ConfigError as e:
        logger.error(str(e))
        return 1

    app = create_app(settings)
    logger.info(f"Listening on http://{settings.host}:{settings.port}")
    app.run(host=settings.host, port=settings.port, threaded=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
