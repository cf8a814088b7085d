"""Builders for API payloads and fake collaborators used across tests."""

import json
from unittest.mock import MagicMock

import httplib2
from googleapiclient.errors import HttpError

from tunechange.clients.youtube import PlaylistCreateError, PlaylistInsertError
from tunechange.core.models import FailureReason, MatchResult, Track


def make_track(title, artist, uri=None):
    return Track(title=title, artists=(artist,), duration_ms=180000,
                 source_uri=uri or f"spotify:track:{title.lower()}")


def http_error(status, reason="", message="error"):
    content = {"error": {"code": status, "message": message,
                         "errors": [{"reason": reason, "message": message}]}}
    return HttpError(httplib2.Response({"status": str(status)}),
                     json.dumps(content).encode("utf-8"))


def api_response(status=200, data=None):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = data if data is not None else {}
    response.text = json.dumps(data) if data is not None else ""
    return response


class FakeSpotify:
    def __init__(self, tracks=None, name="Road Trip", description="Songs for the car"):
        self.tracks = list(tracks or [])
        self.name = name
        self.description = description
        self.calls = []

    def get_tracks(self, playlist_id, user_token=None):
        self.calls.append(("get_tracks", playlist_id, user_token))
        return list(self.tracks)

    def get_playlist_details(self, playlist_id, user_token=None):
        self.calls.append(("get_playlist_details", playlist_id, user_token))
        return self.name, self.description


class FakeYouTube:
    def __init__(self, existing=("PLexisting",), new_id="PLnew"):
        self.existing = set(existing)
        self.new_id = new_id
        self.failures = {}
        self.calls = []
        self.added = []

    def ensure_playlist(self, existing_id=None, title="TuneChange Playlist",
                        description="", privacy="private"):
        self.calls.append(("ensure_playlist", existing_id, title, description, privacy))
        if existing_id:
            if existing_id not in self.existing:
                raise PlaylistCreateError("YouTube Playlist ID not found.")
            return existing_id
        return self.new_id

    def add_video(self, playlist_id, video_id):
        self.calls.append(("add_video", playlist_id, video_id))
        failure = self.failures.get(video_id)
        if isinstance(failure, FailureReason):
            raise PlaylistInsertError(video_id, failure)
        if failure is not None:
            raise failure
        self.added.append(video_id)


class FakeMatcher:
    def __init__(self, videos=None):
        self.videos = dict(videos or {})
        self.searched = []

    def find_best_match(self, track):
        self.searched.append(track.title)
        return MatchResult(track, self.videos.get(track.title))
