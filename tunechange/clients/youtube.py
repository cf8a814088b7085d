"""
YouTube Data API v3 Client

Creates or validates the destination playlist and appends videos to it.
Transient server and network errors are retried; everything else is
classified so the caller can decide whether the run goes on.

Quota costs:
- playlists.list: 1 unit
- playlists.insert: 50 units
- playlistItems.insert: 50 units
"""

import logging
import time
from typing import Callable, TypeVar

import httplib2
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from tunechange.core.models import ConversionError, FailureReason

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"
SCOPES = ["https://www.googleapis.com/auth/youtube"]
MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 5000

QUOTA_REASONS = {"quotaExceeded", "dailyLimitExceeded", "rateLimitExceeded"}
PLAYLIST_PERMISSION_REASONS = {
    "playlistNotFound",
    "playlistItemsNotAccessible",
    "insufficientPermissions",
}

T = TypeVar('T')


class YouTubeAPIError(Exception):
    """YouTube API operation failed after retries."""
    pass


class YouTubeQuotaExceededError(ConversionError):
    """YouTube API quota exceeded."""
    status_code = 429


class PlaylistCreateError(ConversionError):
    """Destination playlist could not be created or found."""
    status_code = 502


class PlaylistPermissionError(ConversionError):
    """The destination playlist does not accept inserts from this account."""
    status_code = 403


class PlaylistInsertError(Exception):
    """A single video could not be added to the playlist."""

    def __init__(self, video_id: str, reason: FailureReason, detail: str = ""):
        self.video_id = video_id
        self.reason = reason
        self.detail = detail
        super().__init__(f"Failed to add {video_id}: {detail or reason.value}")


def credentials_from_tokens(tokens: dict, client_id: str, client_secret: str) -> Credentials:
    """Build Google credentials from an OAuth token dict kept in the session."""
    scope = tokens.get("scope")
    return Credentials(
        token=tokens.get("access_token") or tokens.get("token"),
        refresh_token=tokens.get("refresh_token"),
        token_uri=TOKEN_URI,
        client_id=client_id,
        client_secret=client_secret,
        scopes=scope.split() if isinstance(scope, str) else SCOPES,
    )


def _error_reason(error: HttpError) -> str:
    """First `reason` of an API error, e.g. 'playlistNotFound'."""
    details = getattr(error, "error_details", None)
    if isinstance(details, list):
        for detail in details:
            if isinstance(detail, dict) and detail.get("reason"):
                return detail["reason"]

    content = error.content.decode("utf-8", "replace") if error.content else ""
    for reason in QUOTA_REASONS | PLAYLIST_PERMISSION_REASONS:
        if reason in content:
            return reason
    return ""


def _status(error: HttpError) -> int:
    return error.resp.status if error.resp else 0


class YouTubeClient:
    """YouTube Data API client for writing one user's playlists."""

    def __init__(self, credentials: Credentials | None = None,
                 timeout: float = 10.0, service=None):
        if service is not None:
            self._service = service
            return

        http = AuthorizedHttp(credentials, http=httplib2.Http(timeout=timeout))
        self._service = build("youtube", "v3", http=http, cache_discovery=False)
        logger.debug("YouTube client initialized")

    def _retry(self, operation: Callable[[], T], name: str, max_retries: int = 3) -> T:
        """Execute operation, retrying server and network errors."""
        for attempt in range(max_retries):
            try:
                return operation()
            except HttpError as e:
                status = _status(e)

                if _error_reason(e) in QUOTA_REASONS:
                    raise YouTubeQuotaExceededError(f"Quota exceeded on {name}")

                if status >= 500 and attempt < max_retries - 1:
                    wait = 2 ** attempt
                    logger.warning(f"Server error on {name}, retrying in {wait}s...")
                    time.sleep(wait)
                    continue

                raise

            except (httplib2.HttpLib2Error, ConnectionError, TimeoutError, OSError) as e:
                if attempt < max_retries - 1:
                    wait = 2 ** attempt
                    logger.warning(f"Network error on {name}, retrying in {wait}s...")
                    time.sleep(wait)
                    continue
                raise YouTubeAPIError(f"Network error on {name}: {e}")

        raise YouTubeAPIError(f"{name} failed after {max_retries} attempts")

    def ensure_playlist(self, existing_id: str | None = None,
                        title: str = "TuneChange Playlist",
                        description: str = "",
                        privacy: str = "private") -> str:
        """Return existing_id once confirmed, or the id of a new playlist."""
        if existing_id:
            self._check_playlist(existing_id)
            return existing_id
        return self._create_playlist(title, description, privacy)

    def _check_playlist(self, playlist_id: str) -> None:
        # Lookup by id rather than mine=True so brand-account and
        # shared playlists are found too
        def do_list():
            return self._service.playlists().list(part="snippet", id=playlist_id).execute()

        try:
            response = self._retry(do_list, f"lookup playlist {playlist_id}")
        except (HttpError, YouTubeAPIError) as e:
            raise PlaylistCreateError(f"YouTube API Error: {e}")

        if not response.get("items"):
            raise PlaylistCreateError("YouTube Playlist ID not found.")
        logger.info(f"Using existing playlist {playlist_id}")

    def _create_playlist(self, title: str, description: str, privacy: str) -> str:
        body = {
            "snippet": {
                "title": title[:MAX_TITLE_LENGTH],
                "description": description[:MAX_DESCRIPTION_LENGTH],
            },
            "status": {"privacyStatus": privacy},
        }

        def do_insert():
            return self._service.playlists().insert(part="snippet,status", body=body).execute()

        try:
            response = self._retry(do_insert, f"create playlist '{title}'")
        except (HttpError, YouTubeAPIError) as e:
            raise PlaylistCreateError(f"Could not create YouTube playlist: {e}")

        playlist_id = response.get("id")
        if not playlist_id:
            raise PlaylistCreateError("YouTube did not return a playlist id")

        logger.info(f"Created playlist '{body['snippet']['title']}' ({playlist_id})")
        return playlist_id

    def add_video(self, playlist_id: str, video_id: str) -> None:
        """Append a video. Raises PlaylistInsertError for this video only,
        PlaylistPermissionError when the playlist itself refuses writes."""
        body = {
            "snippet": {
                "playlistId": playlist_id,
                "resourceId": {"kind": "youtube#video", "videoId": video_id},
            }
        }

        def do_insert():
            return self._service.playlistItems().insert(part="snippet", body=body).execute()

        try:
            self._retry(do_insert, f"add {video_id}")
        except HttpError as e:
            reason = _error_reason(e)
            if reason in PLAYLIST_PERMISSION_REASONS:
                raise PlaylistPermissionError(
                    "Permission Error: Logged into wrong Brand Account?"
                )
            if _status(e) == 403:
                raise PlaylistInsertError(video_id, FailureReason.PERMISSION_DENIED, reason)
            raise PlaylistInsertError(video_id, FailureReason.INSERT_REJECTED,
                                      reason or f"HTTP {_status(e)}")
        except YouTubeAPIError as e:
            raise PlaylistInsertError(video_id, FailureReason.INSERT_REJECTED, str(e))

        logger.debug(f"Added {video_id} to {playlist_id}")
