import pytest

from tests.helpers import FakeMatcher, FakeSpotify, FakeYouTube, make_track
from tunechange.config import Settings


@pytest.fixture
def tracks():
    return [make_track("A", "X"), make_track("B", "Y"), make_track("C", "Z")]


@pytest.fixture
def fake_spotify(tracks):
    return FakeSpotify(tracks)


@pytest.fixture
def fake_youtube():
    return FakeYouTube()


@pytest.fixture
def fake_matcher():
    return FakeMatcher({"A": "vid-a", "C": "vid-c"})


@pytest.fixture
def settings():
    return Settings(
        spotify_client_id="spotify-id",
        spotify_client_secret="spotify-secret",
        google_client_id="google-id",
        google_client_secret="google-secret",
        session_secret="test-secret",
        insert_delay=0,
    )
