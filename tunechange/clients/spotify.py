"""Spotify Web API client - app tokens, playlist and liked-songs track listing"""

import logging
import re
import time
from typing import Any

import requests

from tunechange.core.models import (
    AuthRequiredError,
    ClientInputError,
    ConversionError,
    Track,
)

logger = logging.getLogger(__name__)

TOKEN_URL = "https://accounts.spotify.com/api/token"
API_URL = "https://api.spotify.com/v1"
LIKED_SONGS = "LIKED"
PAGE_SIZE = 50
TOKEN_EXPIRY_MARGIN = 60

_PLAYLIST_ID_RE = re.compile(r"playlist[/:]([a-zA-Z0-9]+)")
_BARE_ID_RE = re.compile(r"^[a-zA-Z0-9]{11,}$")


class SpotifyAuthError(ConversionError):
    status_code = 502

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"Spotify token request failed ({status}): {body[:200]}")


class SpotifyFetchError(ConversionError):
    status_code = 502

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(f"Spotify access failed ({status}). Check URL or privacy.")


def parse_playlist_ref(ref: str | None) -> str:
    """Resolve a playlist URL, URI or bare id to an id, or to LIKED_SONGS."""
    if ref is not None and not isinstance(ref, str):
        raise ClientInputError("Spotify playlist URL must be a string")
    value = (ref or "").strip()
    if not value:
        raise ClientInputError("Spotify playlist URL is required")
    if value.upper() == LIKED_SONGS:
        return LIKED_SONGS

    match = _PLAYLIST_ID_RE.search(value)
    if match:
        return match.group(1)
    if _BARE_ID_RE.match(value):
        return value
    raise ClientInputError(f"Not a Spotify playlist URL or id: {value}")


class SpotifyClient:
    def __init__(self, client_id: str, client_secret: str,
                 session: requests.Session | None = None,
                 timeout: float = 10.0, max_pages: int = 40):
        self._client_id = client_id
        self._client_secret = client_secret
        self._session = session or requests.Session()
        self._timeout = timeout
        self._max_pages = max_pages
        self._token: str | None = None
        self._token_expires: float = 0

    def get_app_token(self) -> str:
        """Client-credentials token for reads that need no user sign-in."""
        if self._token and time.time() < self._token_expires - TOKEN_EXPIRY_MARGIN:
            return self._token

        try:
            response = self._session.post(
                TOKEN_URL,
                data={"grant_type": "client_credentials"},
                auth=(self._client_id, self._client_secret),
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise SpotifyAuthError(0, str(e))

        if response.status_code != 200:
            logger.error(f"Token request failed {response.status_code}: {response.text[:200]}")
            raise SpotifyAuthError(response.status_code, response.text)

        data = response.json()
        self._token = data["access_token"]
        self._token_expires = time.time() + data.get("expires_in", 3600)
        logger.debug("Spotify app token obtained")
        return self._token

    def _invalidate_app_token(self) -> None:
        self._token = None
        self._token_expires = 0

    def _get(self, url: str, user_token: str | None) -> requests.Response:
        """GET with the user token, or the app token with one refresh on 401."""
        token = user_token or self.get_app_token()
        response = self._send(url, token)

        if response.status_code == 401 and not user_token:
            logger.info("Spotify app token rejected, refreshing once")
            self._invalidate_app_token()
            response = self._send(url, self.get_app_token())

        return response

    def _send(self, url: str, token: str) -> requests.Response:
        try:
            return self._session.get(
                url,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise SpotifyFetchError(0, str(e))

    def get_tracks(self, playlist_id: str, user_token: str | None = None) -> list[Track]:
        """Fetch every track of a playlist (or liked songs) up to the page cap.

        A failed page aborts the whole fetch; partial results are never
        returned.
        """
        if playlist_id == LIKED_SONGS:
            if not user_token:
                raise AuthRequiredError("spotify", "Login to Spotify to convert Liked Songs")
            url = f"{API_URL}/me/tracks?limit={PAGE_SIZE}"
        else:
            url = f"{API_URL}/playlists/{playlist_id}/tracks?limit={PAGE_SIZE}"

        tracks: list[Track] = []
        pages = 0

        while url:
            if pages >= self._max_pages:
                logger.warning(f"Stopped after {pages} pages ({len(tracks)} tracks)")
                break

            response = self._get(url, user_token)
            if response.status_code != 200:
                logger.error(f"Spotify error {response.status_code}: {response.text[:200]}")
                raise SpotifyFetchError(response.status_code, response.text)

            data = response.json()
            for item in data.get("items", []):
                track = self._extract_track(item)
                if track:
                    tracks.append(track)

            pages += 1
            url = data.get("next")

        logger.info(f"Retrieved {len(tracks)} tracks from Spotify")
        return tracks

    def _extract_track(self, item: dict) -> Track | None:
        track_data: dict[str, Any] | None = item.get("track")
        if not track_data or not track_data.get("name"):
            return None

        artists = tuple(
            a["name"] for a in track_data.get("artists") or [] if a.get("name")
        )
        return Track(
            title=track_data["name"],
            artists=artists,
            duration_ms=track_data.get("duration_ms"),
            source_uri=track_data.get("uri", ""),
        )

    def get_playlist_details(self, playlist_id: str,
                             user_token: str | None = None) -> tuple[str | None, str | None]:
        """Name and description of a playlist, or (None, None) if unavailable."""
        url = f"{API_URL}/playlists/{playlist_id}?fields=name,description"
        try:
            response = self._get(url, user_token)
            if response.status_code != 200:
                logger.info(f"Playlist details unavailable ({response.status_code})")
                return None, None
            data = response.json()
        except (SpotifyAuthError, SpotifyFetchError, ValueError) as e:
            logger.info(f"Name fetch failed, using default: {e}")
            return None, None

        return data.get("name") or None, data.get("description") or None
