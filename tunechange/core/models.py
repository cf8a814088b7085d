"""Data models and error types for conversion runs."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import List

YOUTUBE_PLAYLIST_URL = "https://www.youtube.com/playlist?list={playlist_id}"


class ConversionError(Exception):
    """Pipeline-level failure that ends a conversion run."""
    status_code = 500


class ClientInputError(ConversionError):
    """Malformed or unresolvable request input."""
    status_code = 400


class AuthRequiredError(ConversionError):
    """A sign-in is needed before the run can proceed."""
    status_code = 401

    def __init__(self, service: str, message: str = ""):
        self.service = service
        super().__init__(message or f"Sign in to {service} first")


class EmptySourceError(ConversionError):
    """The source playlist was fetched but holds no tracks."""
    status_code = 404


class FailureReason(Enum):
    NOT_FOUND = "Not Found"
    INSERT_REJECTED = "Insert Failed"
    PERMISSION_DENIED = "Permission Denied"


@dataclass(frozen=True)
class Track:
    """A track from a Spotify playlist or the liked songs collection."""
    title: str
    artists: tuple[str, ...]
    duration_ms: int | None = None
    source_uri: str = ""

    @property
    def primary_artist(self) -> str:
        return self.artists[0] if self.artists else ""

    @property
    def label(self) -> str:
        if self.primary_artist:
            return f"{self.title} - {self.primary_artist}"
        return self.title


@dataclass(frozen=True)
class PlaylistRequest:
    """Input of one conversion run."""
    source_playlist_ref: str
    destination_playlist_id: str | None = None

    def __post_init__(self):
        existing = (self.destination_playlist_id or "").strip() or None
        object.__setattr__(self, "destination_playlist_id", existing)


@dataclass(frozen=True)
class MatchResult:
    """Outcome of searching YouTube for one track."""
    track: Track
    video_id: str | None = None

    @property
    def found(self) -> bool:
        return self.video_id is not None


@dataclass(frozen=True)
class FailedTrack:
    label: str
    reason: FailureReason
    detail: str = ""


@dataclass
class ConversionReport:
    """Result of a conversion run, built up track by track."""
    destination_playlist_id: str
    added: List[str] = field(default_factory=list)
    failed: List[FailedTrack] = field(default_factory=list)

    @property
    def destination_playlist_url(self) -> str:
        return YOUTUBE_PLAYLIST_URL.format(playlist_id=self.destination_playlist_id)

    def record_added(self, track: Track) -> None:
        self.added.append(track.label)

    def record_failed(self, track: Track, reason: FailureReason, detail: str = "") -> None:
        self.failed.append(FailedTrack(track.label, reason, detail))

    def finalize(self) -> "ConversionReport":
        """Return a copy whose track lists can no longer be modified."""
        return ConversionReport(
            destination_playlist_id=self.destination_playlist_id,
            added=tuple(self.added),
            failed=tuple(self.failed),
        )

    def to_dict(self) -> dict:
        return {
            "destinationPlaylistUrl": self.destination_playlist_url,
            "added": list(self.added),
            "failed": [
                {"track": f.label, "reason": f.reason.value} for f in self.failed
            ],
        }


class ProgressEvent(ABC):
    """Base class of the events a conversion run yields."""
    terminal = False

    @abstractmethod
    def to_dict(self) -> dict:
        """Wire form of the event."""


@dataclass(frozen=True)
class InfoEvent(ProgressEvent):
    message: str
    total: int

    def to_dict(self) -> dict:
        return {"info": self.message, "total": self.total}


@dataclass(frozen=True)
class TrackEvent(ProgressEvent):
    success: bool
    name: str
    count: int
    reason: FailureReason | None = None

    def to_dict(self) -> dict:
        data = {"success": self.success, "name": self.name, "count": self.count}
        if not self.success and self.reason:
            data["reason"] = self.reason.value
        return data


@dataclass(frozen=True)
class DoneEvent(ProgressEvent):
    report: ConversionReport
    terminal = True

    @property
    def url(self) -> str:
        return self.report.destination_playlist_url

    def to_dict(self) -> dict:
        return {"done": True, "url": self.url}


@dataclass(frozen=True)
class ErrorEvent(ProgressEvent):
    error: str
    status: int = 500
    cause: Exception | None = field(default=None, compare=False)
    terminal = True

    def to_dict(self) -> dict:
        return {"error": self.error}
