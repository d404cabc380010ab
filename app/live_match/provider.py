"""
Live feed provider interface and the overlay service built on it.

Both live feeds are fetched in parallel and combined only once both have
arrived. If either fails the whole overlay fails: a partially refreshed list
is never returned.
"""
from typing import Any, Dict, List, Optional, Protocol, Tuple
from concurrent.futures import Future, ThreadPoolExecutor
import logging

from app.errors import LiveFeedError, UpstreamError
from config.settings import settings

from .overlay import filter_leagues, merge_live_feeds

logger = logging.getLogger("live_match.provider")

FEED_LIVESCORES = "livescores"
FEED_INPLAY = "livescores/inplay"
FEED_FIXTURES = "fixtures/between"


class LiveFeedProvider(Protocol):
    """
    Source of the base fixture list and the two live feeds.

    Implemented by SportMonksClient.
    """

    def get_livescores(self) -> List[Dict[str, Any]]:
        """Matches live or about to start today."""
        ...

    def get_livescores_inplay(self) -> List[Dict[str, Any]]:
        """Matches currently being played."""
        ...

    def get_fixtures_between(self, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        """Scheduled fixtures in a date window."""
        ...


def _result(feed: str, future: Future) -> List[Dict[str, Any]]:
    try:
        return future.result()
    except Exception as e:
        logger.warning(f"Live feed {feed} failed: {e}")
        raise LiveFeedError(feed, e) from e


def _schedule(future: Future) -> List[Dict[str, Any]]:
    # The base schedule is not a live feed; its failure stays an upstream error
    try:
        return future.result()
    except UpstreamError as e:
        logger.warning(f"Fixture schedule fetch failed: {e}")
        raise
    except Exception as e:
        logger.warning(f"Fixture schedule fetch failed: {e}")
        raise UpstreamError(FEED_FIXTURES, str(e)) from e


class LiveOverlayService:
    """Fixture lists with state and scores taken from the live feeds."""

    def __init__(
        self,
        provider: LiveFeedProvider,
        allowed_league_ids: Optional[List[int]] = None,
    ):
        self._provider = provider
        self._allowed = settings.allowed_league_ids if allowed_league_ids is None else allowed_league_ids

    def fetch_live_feeds(self) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        """
        Fetch (livescores, inplay) in parallel, filtered to allowed leagues.

        Raises:
            LiveFeedError: Either feed failed
        """
        with ThreadPoolExecutor(max_workers=2) as executor:
            recent_future = executor.submit(self._provider.get_livescores)
            inplay_future = executor.submit(self._provider.get_livescores_inplay)
            recent = _result(FEED_LIVESCORES, recent_future)
            inplay = _result(FEED_INPLAY, inplay_future)

        return filter_leagues(recent, self._allowed), filter_leagues(inplay, self._allowed)

    def overlay(self, base: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Refresh the live fields of an existing fixture list (e.g. search
        results). The list's order is kept.
        """
        recent, inplay = self.fetch_live_feeds()
        merged = merge_live_feeds(base, recent, inplay)
        logger.info(
            f"Overlaid {len(recent)} livescores and {len(inplay)} in-play fixtures "
            f"onto {len(base)} fixtures"
        )
        return merged

    def fixtures_between(self, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        """
        The default fixtures view: fixtures in a date window, filtered to
        allowed leagues, with live state and scores applied.

        Raises:
            UpstreamError: The fixture schedule could not be fetched
            LiveFeedError: Either live feed failed
        """
        with ThreadPoolExecutor(max_workers=3) as executor:
            base_future = executor.submit(self._provider.get_fixtures_between, start_date, end_date)
            recent_future = executor.submit(self._provider.get_livescores)
            inplay_future = executor.submit(self._provider.get_livescores_inplay)
            base = _schedule(base_future)
            recent = _result(FEED_LIVESCORES, recent_future)
            inplay = _result(FEED_INPLAY, inplay_future)

        return merge_live_feeds(
            filter_leagues(base, self._allowed),
            filter_leagues(recent, self._allowed),
            filter_leagues(inplay, self._allowed),
        )
