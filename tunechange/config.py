"""Runtime configuration read from environment variables."""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

CLIENT_SECRETS_FILE = Path("client_secrets.json")


class ConfigError(Exception):
    """Required configuration is missing or invalid."""
    pass


def _load_google_credentials(secrets_file: Path) -> tuple[str | None, str | None]:
    """Load OAuth client credentials from env vars or client_secrets.json."""
    client_id = os.environ.get("YOUTUBE_CLIENT_ID") or os.environ.get("GOOGLE_CLIENT_ID")
    client_secret = os.environ.get("YOUTUBE_CLIENT_SECRET") or os.environ.get("GOOGLE_CLIENT_SECRET")

    if client_id and client_secret:
        return client_id, client_secret

    if secrets_file.exists():
        try:
            secrets = json.loads(secrets_file.read_text())
            creds = secrets.get("installed") or secrets.get("web")
            if creds:
                return creds["client_id"], creds["client_secret"]
        except (ValueError, KeyError) as e:
            logger.warning(f"Failed to parse {secrets_file}: {e}")

    return client_id, client_secret


def _number(name: str, default, cast=float):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


@dataclass
class Settings:
    spotify_client_id: str
    spotify_client_secret: str
    google_client_id: str
    google_client_secret: str
    youtube_api_key: str | None = None
    session_secret: str = "tunechange-dev-secret"
    max_pages: int = 40
    search_timeout: float = 5.0
    insert_delay: float = 0.6
    http_timeout: float = 10.0
    playlist_privacy: str = "private"
    host: str = "127.0.0.1"
    port: int = 3000

    @classmethod
    def from_env(cls, secrets_file: Path = CLIENT_SECRETS_FILE) -> "Settings":
        google_id, google_secret = _load_google_credentials(secrets_file)
        values = {
            "SPOTIFY_CLIENT_ID": os.environ.get("SPOTIFY_CLIENT_ID"),
            "SPOTIFY_CLIENT_SECRET": os.environ.get("SPOTIFY_CLIENT_SECRET"),
            "YOUTUBE_CLIENT_ID": google_id,
            "YOUTUBE_CLIENT_SECRET": google_secret,
        }
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise ConfigError(f"Missing config: {', '.join(missing)}")

        return cls(
            spotify_client_id=values["SPOTIFY_CLIENT_ID"],
            spotify_client_secret=values["SPOTIFY_CLIENT_SECRET"],
            google_client_id=google_id,
            google_client_secret=google_secret,
            youtube_api_key=os.environ.get("YOUTUBE_API_KEY") or None,
            session_secret=os.environ.get("SESSION_SECRET", cls.session_secret),
            max_pages=_number("SPOTIFY_MAX_PAGES", cls.max_pages, int),
            search_timeout=_number("SEARCH_TIMEOUT", cls.search_timeout),
            insert_delay=_number("INSERT_DELAY", cls.insert_delay),
            http_timeout=_number("HTTP_TIMEOUT", cls.http_timeout),
            playlist_privacy=os.environ.get("PLAYLIST_PRIVACY", cls.playlist_privacy),
            host=os.environ.get("HOST", cls.host),
            port=_number("PORT", cls.port, int),
        )
