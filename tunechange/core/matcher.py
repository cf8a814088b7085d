"""Track to video matching with a bounded search time."""

import logging
import re
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError

from tunechange.clients.search import SearchBackend
from tunechange.core.models import MatchResult, Track

logger = logging.getLogger(__name__)

DEFAULT_SUFFIX = "official audio"

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")


class VideoMatcher:
    """Finds the best video for a track. Never raises to the caller."""

    def __init__(self, search: SearchBackend, timeout: float = 5.0,
                 suffix: str = DEFAULT_SUFFIX):
        self._search = search
        self._timeout = timeout
        self._suffix = suffix

    def build_query(self, track: Track) -> str:
        parts = [track.title, track.primary_artist, self._suffix]
        query = " ".join(p for p in parts if p)
        query = _CONTROL_CHARS.sub(" ", query)
        return " ".join(query.split())

    def find_best_match(self, track: Track) -> MatchResult:
        query = self.build_query(track)
        # one worker per search; a timed-out search is left to finish on its own
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="search")
        future = executor.submit(self._search.search, query)
        executor.shutdown(wait=False)

        try:
            video_id = future.result(timeout=self._timeout)
        except FutureTimeoutError:
            future.cancel()
            logger.warning(f"Search timed out after {self._timeout}s: {query}")
            return MatchResult(track)
        except Exception as e:
            logger.warning(f"Search failed for '{query}': {e}")
            return MatchResult(track)

        if not video_id:
            logger.debug(f"No results for: {query}")
        return MatchResult(track, video_id or None)
