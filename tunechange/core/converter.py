"""
Conversion Orchestrator

Copies one Spotify playlist (or the liked songs) into a YouTube playlist.

Pipeline, strictly sequential:
1. Resolve the playlist reference (no network)
2. Validate an existing destination playlist, if one was given
3. Fetch all source tracks
4. Create the destination playlist, if none was given
5. For each track in source order: search, append, wait

Per-track failures (no match, rejected insert) are recorded in the report
and never stop the loop. Pipeline failures end the run with exactly one
ErrorEvent. Closing the event generator stops the run at the next track.
"""

import logging
import time
from enum import Enum
from typing import Callable, Iterator, Protocol

from tunechange.clients.spotify import LIKED_SONGS, parse_playlist_ref
from tunechange.clients.youtube import PlaylistInsertError
from tunechange.core.models import (
    AuthRequiredError,
    ConversionError,
    ConversionReport,
    DoneEvent,
    EmptySourceError,
    ErrorEvent,
    FailureReason,
    InfoEvent,
    MatchResult,
    PlaylistRequest,
    ProgressEvent,
    Track,
    TrackEvent,
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "TuneChange Playlist"
LIKED_SONGS_TITLE = "Liked Songs"
DEFAULT_DESCRIPTION = "Converted from Spotify by TuneChange"


class SpotifyClientProtocol(Protocol):
    def get_tracks(self, playlist_id: str, user_token: str | None = None) -> list[Track]: ...
    def get_playlist_details(self, playlist_id: str,
                             user_token: str | None = None) -> tuple[str | None, str | None]: ...


class YouTubeClientProtocol(Protocol):
    def ensure_playlist(self, existing_id: str | None = None, title: str = ...,
                        description: str = ..., privacy: str = ...) -> str: ...
    def add_video(self, playlist_id: str, video_id: str) -> None: ...


class MatcherProtocol(Protocol):
    def find_best_match(self, track: Track) -> MatchResult: ...


class RunState(Enum):
    IDLE = "idle"
    RESOLVING_PLAYLIST = "resolving_playlist"
    FETCHING_TRACKS = "fetching_tracks"
    MATCHING_AND_WRITING = "matching_and_writing"
    COMPLETED = "completed"
    FAILED = "failed"


class Converter:
    """Runs one conversion. Create a new instance per request."""

    def __init__(self, spotify: SpotifyClientProtocol,
                 youtube: YouTubeClientProtocol,
                 matcher: MatcherProtocol,
                 insert_delay: float = 0.6,
                 privacy: str = "private",
                 sleep: Callable[[float], None] = time.sleep):
        self._spotify = spotify
        self._youtube = youtube
        self._matcher = matcher
        self._insert_delay = insert_delay
        self._privacy = privacy
        self._sleep = sleep
        self.state = RunState.IDLE

    def run(self, request: PlaylistRequest,
            spotify_user_token: str | None = None) -> Iterator[ProgressEvent]:
        """Yield progress events; the last one is a DoneEvent or ErrorEvent."""
        start = time.time()
        logger.info(f"Starting conversion of {request.source_playlist_ref!r}")

        try:
            report = yield from self._pipeline(request, spotify_user_token)
        except GeneratorExit:
            logger.info(f"Conversion cancelled by caller ({self.state.value})")
            self.state = RunState.FAILED
            raise
        except ConversionError as e:
            self.state = RunState.FAILED
            logger.warning(f"Conversion failed: {e}")
            yield ErrorEvent(str(e), e.status_code, e)
            return
        except Exception as e:
            self.state = RunState.FAILED
            logger.exception(f"Unexpected error: {e}")
            yield ErrorEvent(str(e), 500, e)
            return

        self.state = RunState.COMPLETED
        logger.info(
            f"Completed in {time.time() - start:.1f}s: "
            f"+{len(report.added)} added, {len(report.failed)} failed"
        )
        yield DoneEvent(report)

    def _pipeline(self, request: PlaylistRequest,
                  user_token: str | None) -> Iterator[ProgressEvent]:
        self.state = RunState.RESOLVING_PLAYLIST
        playlist_id = parse_playlist_ref(request.source_playlist_ref)
        if playlist_id == LIKED_SONGS and not user_token:
            raise AuthRequiredError("spotify", "Login to Spotify to convert Liked Songs")

        existing_id = request.destination_playlist_id
        if existing_id:
            self._youtube.ensure_playlist(existing_id=existing_id)

        self.state = RunState.FETCHING_TRACKS
        tracks = self._spotify.get_tracks(playlist_id, user_token)
        if not tracks:
            raise EmptySourceError("Source playlist has no tracks")

        destination_id = existing_id or self._create_destination(playlist_id, user_token)
        report = ConversionReport(destination_id)

        total = len(tracks)
        yield InfoEvent(f"Found {total} tracks. Starting transfer...", total)

        self.state = RunState.MATCHING_AND_WRITING
        for count, track in enumerate(tracks, start=1):
            yield self._convert_track(track, destination_id, report, count)
            if count < total:
                self._sleep(self._insert_delay)

        return report.finalize()

    def _create_destination(self, playlist_id: str, user_token: str | None) -> str:
        if playlist_id == LIKED_SONGS:
            title, description = LIKED_SONGS_TITLE, None
        else:
            title, description = self._spotify.get_playlist_details(playlist_id, user_token)

        return self._youtube.ensure_playlist(
            title=title or DEFAULT_TITLE,
            description=description or DEFAULT_DESCRIPTION,
            privacy=self._privacy,
        )

    def _convert_track(self, track: Track, playlist_id: str,
                       report: ConversionReport, count: int) -> TrackEvent:
        match = self._matcher.find_best_match(track)
        if not match.found:
            logger.warning(f"No match: {track.label}")
            report.record_failed(track, FailureReason.NOT_FOUND)
            return TrackEvent(False, track.label, count, FailureReason.NOT_FOUND)

        try:
            self._youtube.add_video(playlist_id, match.video_id)
        except PlaylistInsertError as e:
            logger.warning(f"Insert failed for {track.label}: {e}")
            report.record_failed(track, e.reason, e.detail)
            return TrackEvent(False, track.label, count, e.reason)

        logger.info(f"Added: {track.label}")
        report.record_added(track)
        return TrackEvent(True, track.label, count)

    def convert(self, request: PlaylistRequest,
                spotify_user_token: str | None = None) -> ConversionReport:
        """Run to completion and return the report, or raise the failure."""
        for event in self.run(request, spotify_user_token):
            if isinstance(event, DoneEvent):
                return event.report
            if isinstance(event, ErrorEvent):
                raise event.cause or ConversionError(event.error)
        raise ConversionError("Conversion ended without a result")
