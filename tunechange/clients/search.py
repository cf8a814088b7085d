"""
YouTube search backends

Each backend answers a text query with the id of the top-ranked video,
or None when the search comes back empty. The ranking of the search
facility is trusted as-is.

- YTMusicSearch: unauthenticated search through ytmusicapi (no quota)
- YouTubeApiSearch: YouTube Data API search.list with an API key
  (100 quota units per call)

Both bound every HTTP call by a timeout.
"""

import logging
from typing import Protocol

import httplib2
import requests
from googleapiclient.discovery import build
from ytmusicapi import YTMusic

logger = logging.getLogger(__name__)

MUSIC_CATEGORY_ID = "10"


class SearchBackend(Protocol):
    def search(self, query: str) -> str | None: ...


class TimeoutSession(requests.Session):
    """requests session that applies a timeout to calls made without one."""

    def __init__(self, timeout: float):
        super().__init__()
        self.timeout = timeout

    def request(self, method, url, **kwargs):
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = self.timeout
        return super().request(method, url, **kwargs)


class YTMusicSearch:
    """Scraping search over YouTube's public music frontend."""

    def __init__(self, client: YTMusic | None = None, timeout: float = 10.0):
        self._client = client
        self._timeout = timeout

    def _ytmusic(self) -> YTMusic:
        # YTMusic() talks to YouTube on construction, so defer it
        if self._client is None:
            self._client = YTMusic(requests_session=TimeoutSession(self._timeout))
        return self._client

    def search(self, query: str) -> str | None:
        results = self._ytmusic().search(query, filter="videos", limit=5)
        for result in results or []:
            video_id = result.get("videoId")
            if video_id:
                return video_id
        return None


class YouTubeApiSearch:
    """Quota-metered search through the official Data API."""

    def __init__(self, api_key: str, service=None, timeout: float = 10.0):
        self._api_key = api_key
        self._service = service
        self._timeout = timeout

    def _youtube(self):
        if self._service is None:
            self._service = build("youtube", "v3", developerKey=self._api_key,
                                  http=httplib2.Http(timeout=self._timeout),
                                  cache_discovery=False)
        return self._service

    def search(self, query: str) -> str | None:
        response = self._youtube().search().list(
            part="snippet",
            q=query,
            type="video",
            videoCategoryId=MUSIC_CATEGORY_ID,
            maxResults=1,
        ).execute()

        items = response.get("items", [])
        if not items:
            return None
        return items[0]["id"]["videoId"]


def make_search_backend(api_key: str | None = None, timeout: float = 10.0) -> SearchBackend:
    """API search when a key is configured, otherwise the free search."""
    if api_key:
        logger.info("Using YouTube Data API search")
        return YouTubeApiSearch(api_key, timeout=timeout)
    logger.info("Using YouTube Music search")
    return YTMusicSearch(timeout=timeout)
