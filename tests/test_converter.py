"""Tests for the conversion pipeline with fake Spotify/YouTube/search clients."""

import pytest

from tests.helpers import FakeMatcher, FakeSpotify, make_track
from tunechange.clients.youtube import PlaylistCreateError, PlaylistPermissionError
from tunechange.core.converter import Converter, RunState
from tunechange.core.models import (
    AuthRequiredError,
    ClientInputError,
    DoneEvent,
    EmptySourceError,
    ErrorEvent,
    FailureReason,
    InfoEvent,
    PlaylistRequest,
    ProgressEvent,
    TrackEvent,
)

PLAYLIST_URL = "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M"


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def converter(fake_spotify, fake_youtube, fake_matcher, sleeps):
    return Converter(fake_spotify, fake_youtube, fake_matcher,
                     insert_delay=0.6, sleep=sleeps.append)


def events_of(converter, request, token=None):
    return list(converter.run(request, token))


class TestConversionScenario:
    def test_mixed_outcomes(self, converter, fake_youtube):
        fake_youtube.failures["vid-c"] = FailureReason.INSERT_REJECTED

        report = converter.convert(PlaylistRequest(PLAYLIST_URL))

        assert report.added == ("A - X",)
        assert [(f.label, f.reason) for f in report.failed] == [
            ("B - Y", FailureReason.NOT_FOUND),
            ("C - Z", FailureReason.INSERT_REJECTED),
        ]
        assert report.destination_playlist_id == "PLnew"
        assert converter.state is RunState.COMPLETED

    def test_event_stream(self, converter, fake_youtube):
        fake_youtube.failures["vid-c"] = FailureReason.INSERT_REJECTED

        events = events_of(converter, PlaylistRequest(PLAYLIST_URL))

        assert [e.to_dict() for e in events] == [
            {"info": "Found 3 tracks. Starting transfer...", "total": 3},
            {"success": True, "name": "A - X", "count": 1},
            {"success": False, "name": "B - Y", "reason": "Not Found", "count": 2},
            {"success": False, "name": "C - Z", "reason": "Insert Failed", "count": 3},
            {"done": True, "url": "https://www.youtube.com/playlist?list=PLnew"},
        ]
        assert sum(1 for e in events if e.terminal) == 1

    def test_report_dict(self, converter):
        report = converter.convert(PlaylistRequest(PLAYLIST_URL))
        assert report.to_dict() == {
            "destinationPlaylistUrl": "https://www.youtube.com/playlist?list=PLnew",
            "added": ["A - X", "C - Z"],
            "failed": [{"track": "B - Y", "reason": "Not Found"}],
        }

    def test_every_track_reported_once(self, fake_youtube, sleeps):
        tracks = [make_track(f"T{i}", f"Artist {i}") for i in range(10)]
        matcher = FakeMatcher({f"T{i}": f"vid{i}" for i in range(10) if i % 3})
        fake_youtube.failures["vid4"] = FailureReason.PERMISSION_DENIED
        converter = Converter(FakeSpotify(tracks), fake_youtube, matcher, sleep=sleeps.append)

        report = converter.convert(PlaylistRequest(PLAYLIST_URL))

        labels = list(report.added) + [f.label for f in report.failed]
        assert sorted(labels) == sorted(t.label for t in tracks)
        assert len(report.failed) == len(tracks) - len(report.added)
        assert report.added == tuple(t.label for t in tracks if t.title in {
            "T1", "T2", "T5", "T7", "T8"})

    def test_insert_failure_does_not_stop_later_tracks(self, converter, fake_youtube):
        fake_youtube.failures["vid-a"] = FailureReason.INSERT_REJECTED
        report = converter.convert(PlaylistRequest(PLAYLIST_URL))
        assert fake_youtube.added == ["vid-c"]
        assert report.added == ("C - Z",)

    def test_delay_between_tracks(self, converter, sleeps):
        converter.convert(PlaylistRequest(PLAYLIST_URL))
        assert sleeps == [0.6, 0.6]

    def test_no_delay_for_single_track(self, fake_youtube, fake_matcher, sleeps):
        converter = Converter(FakeSpotify([make_track("A", "X")]), fake_youtube, fake_matcher,
                              insert_delay=0.6, sleep=sleeps.append)
        converter.convert(PlaylistRequest(PLAYLIST_URL))
        assert sleeps == []

    def test_events_share_abstract_base(self, converter):
        events = list(converter.run(PlaylistRequest(PLAYLIST_URL)))
        assert all(isinstance(e, ProgressEvent) for e in events)
        with pytest.raises(TypeError):
            ProgressEvent()

    def test_tracks_processed_in_source_order(self, converter, fake_matcher, fake_youtube):
        converter.convert(PlaylistRequest(PLAYLIST_URL))
        assert fake_matcher.searched == ["A", "B", "C"]
        assert fake_youtube.added == ["vid-a", "vid-c"]


class TestDestinationPlaylist:
    def test_named_after_source_playlist(self, converter, fake_youtube):
        converter.convert(PlaylistRequest(PLAYLIST_URL))
        assert fake_youtube.calls[0] == (
            "ensure_playlist", None, "Road Trip", "Songs for the car", "private"
        )

    def test_default_name(self, fake_youtube, fake_matcher, tracks):
        spotify = FakeSpotify(tracks, name=None, description=None)
        Converter(spotify, fake_youtube, fake_matcher, sleep=lambda s: None).convert(
            PlaylistRequest(PLAYLIST_URL)
        )
        _, _, title, description, _ = fake_youtube.calls[0]
        assert title == "TuneChange Playlist"
        assert description == "Converted from Spotify by TuneChange"

    def test_liked_songs_title(self, converter, fake_spotify, fake_youtube):
        converter.convert(PlaylistRequest("liked"), spotify_user_token="user")
        assert fake_youtube.calls[0][2] == "Liked Songs"
        assert fake_spotify.calls == [("get_tracks", "LIKED", "user")]

    def test_existing_playlist_used(self, converter, fake_youtube):
        report = converter.convert(PlaylistRequest(PLAYLIST_URL, " PLexisting "))
        assert report.destination_playlist_id == "PLexisting"
        assert [c for c in fake_youtube.calls if c[0] == "ensure_playlist"] == [
            ("ensure_playlist", "PLexisting", "TuneChange Playlist", "", "private")
        ]

    def test_missing_existing_playlist_fails_before_fetch(self, converter, fake_spotify,
                                                          fake_matcher):
        with pytest.raises(PlaylistCreateError):
            converter.convert(PlaylistRequest(PLAYLIST_URL, "PLmissing"))
        assert fake_spotify.calls == []
        assert fake_matcher.searched == []
        assert converter.state is RunState.FAILED

    def test_rerun_with_duplicates_completes(self, converter, fake_youtube):
        fake_youtube.failures["vid-a"] = FailureReason.INSERT_REJECTED
        fake_youtube.failures["vid-c"] = FailureReason.INSERT_REJECTED
        events = events_of(converter, PlaylistRequest(PLAYLIST_URL, "PLexisting"))
        assert isinstance(events[-1], DoneEvent)
        assert len(events[-1].report.failed) == 3


class TestPipelineErrors:
    def test_unresolvable_reference(self, converter, fake_spotify, fake_youtube):
        events = events_of(converter, PlaylistRequest("not a playlist"))
        assert len(events) == 1
        assert isinstance(events[0], ErrorEvent)
        assert events[0].status == 400
        assert isinstance(events[0].cause, ClientInputError)
        assert fake_spotify.calls == [] and fake_youtube.calls == []

    def test_liked_without_source_login(self, converter, fake_spotify, fake_youtube):
        with pytest.raises(AuthRequiredError) as exc:
            converter.convert(PlaylistRequest("LIKED"))
        assert exc.value.service == "spotify"
        assert fake_spotify.calls == []
        assert fake_youtube.calls == []

    def test_empty_source(self, fake_youtube, fake_matcher):
        converter = Converter(FakeSpotify([]), fake_youtube, fake_matcher)
        with pytest.raises(EmptySourceError):
            converter.convert(PlaylistRequest(PLAYLIST_URL))
        assert fake_youtube.calls == []

    def test_playlist_permission_aborts_remaining(self, converter, fake_youtube, fake_matcher):
        fake_youtube.failures["vid-a"] = PlaylistPermissionError("Permission Error")

        events = events_of(converter, PlaylistRequest(PLAYLIST_URL))

        assert isinstance(events[-1], ErrorEvent)
        assert events[-1].status == 403
        assert fake_matcher.searched == ["A"]
        assert not any(isinstance(e, DoneEvent) for e in events)

    def test_unexpected_error_is_terminal_event(self, fake_youtube, fake_matcher):
        class BrokenSpotify(FakeSpotify):
            def get_tracks(self, playlist_id, user_token=None):
                raise KeyError("items")

        events = events_of(Converter(BrokenSpotify(), fake_youtube, fake_matcher),
                           PlaylistRequest(PLAYLIST_URL))
        assert len(events) == 1
        assert events[0].status == 500


class TestCancellation:
    def test_closing_stops_further_calls(self, converter, fake_matcher, fake_youtube):
        events = converter.run(PlaylistRequest(PLAYLIST_URL))

        assert isinstance(next(events), InfoEvent)
        assert isinstance(next(events), TrackEvent)
        events.close()

        assert fake_matcher.searched == ["A"]
        assert fake_youtube.added == ["vid-a"]
        assert converter.state is RunState.FAILED
        with pytest.raises(StopIteration):
            next(events)

    def test_nothing_runs_until_consumed(self, converter, fake_spotify):
        converter.run(PlaylistRequest(PLAYLIST_URL))
        assert fake_spotify.calls == []
        assert converter.state is RunState.IDLE
