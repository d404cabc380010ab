"""
Corner-kick averages per team and season, split home/away.

The aggregation itself is a pure function over raw SportMonks fixtures;
``CornerAveragesService`` wraps it with season lookup, the upstream fetch
and the TTL cache.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from app.cache import DataCategory, TTLCache, corners_key, get_ttl_for_category, season_key
from app.errors import SeasonNotFoundError, UpstreamError
from app.sportmonks_client import FINISHED_STATES, MATCH_STATES
from config.settings import settings

logger = logging.getLogger("corners")


@dataclass
class CornerBucket:
    """Running corner total and game count for one split."""
    total: int = 0
    games: int = 0

    def add(self, corners: int) -> None:
        self.total += corners
        self.games += 1

    @property
    def average(self) -> float:
        if self.games == 0:
            return 0.0
        return round(self.total / self.games, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {"total": self.total, "games": self.games, "average": self.average}


@dataclass
class CornerAggregate:
    """Result of aggregating one team's fixtures."""
    home: CornerBucket = field(default_factory=CornerBucket)
    away: CornerBucket = field(default_factory=CornerBucket)
    fixtures_in_season: int = 0
    skipped_fixtures: List[Any] = field(default_factory=list)

    @property
    def overall(self) -> CornerBucket:
        return CornerBucket(
            total=self.home.total + self.away.total,
            games=self.home.games + self.away.games,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "home": self.home.to_dict(),
            "away": self.away.to_dict(),
            "overall": self.overall.to_dict(),
        }


# =============================================================================
# PURE HELPERS
# =============================================================================

def filter_to_season(fixtures: List[Dict[str, Any]], season_id: int) -> List[Dict[str, Any]]:
    """
    Keep fixtures of exactly this season.

    A team's date-window fetch spans every competition it plays in, so league
    averages would otherwise include cup games.
    """
    return [f for f in fixtures if f.get("season_id") == season_id]


def is_finished(fixture: Dict[str, Any]) -> bool:
    """True if the fixture is in a terminal state (FT, AET, FT_PEN)."""
    state = fixture.get("state") or {}
    short = state.get("state") or state.get("developer_name")
    if short:
        return short in FINISHED_STATES
    return MATCH_STATES.get(fixture.get("state_id"), {}).get("is_finished", False)


def find_participant(fixture: Dict[str, Any], team_id: int) -> Optional[Dict[str, Any]]:
    for participant in fixture.get("participants") or []:
        if participant.get("id") == team_id:
            return participant
    return None


def corner_count(fixture: Dict[str, Any], team_id: int, corners_type_id: int = settings.corners_type_id) -> int:
    """
    The team's corners in one fixture, or 0 when no statistic is present.

    Statistic ``data`` is either ``{"value": 6}`` or a bare number.
    """
    for stat in fixture.get("statistics") or []:
        if stat.get("type_id") == corners_type_id and stat.get("participant_id") == team_id:
            data = stat.get("data")
            if isinstance(data, (int, float)):
                return int(data)
            if isinstance(data, dict):
                return int(data.get("value") or 0)
            return 0
    return 0


def aggregate_corners(
    fixtures: List[Dict[str, Any]],
    team_id: int,
    season_id: int,
    corners_type_id: int = settings.corners_type_id,
) -> CornerAggregate:
    """
    Sum a team's corners over the finished fixtures of one season.

    A finished fixture without a corners statistic still counts as a game
    (with 0 corners). Fixtures where the team's location is neither home nor
    away are reported in ``skipped_fixtures``.
    """
    result = CornerAggregate()
    in_season = filter_to_season(fixtures, season_id)
    result.fixtures_in_season = len(in_season)

    for fixture in in_season:
        if not is_finished(fixture):
            continue

        participant = find_participant(fixture, team_id)
        if participant is None:
            continue

        location = (participant.get("meta") or {}).get("location")
        corners = corner_count(fixture, team_id, corners_type_id)

        if location == "home":
            result.home.add(corners)
        elif location == "away":
            result.away.add(corners)
        else:
            result.skipped_fixtures.append(fixture.get("id"))

    return result


def _today_utc() -> date:
    return datetime.now(timezone.utc).date()


# =============================================================================
# SERVICE
# =============================================================================

class CornerAveragesService:
    """
    Cached corner averages.

    Flow: corners cache -> season metadata (cached) -> team fixtures from
    season start to today -> aggregate -> store. Concurrent misses for the
    same team/season share one computation.
    """

    def __init__(
        self,
        client: Any,
        cache: TTLCache,
        corners_type_id: int = settings.corners_type_id,
        today: Callable[[], date] = _today_utc,
    ):
        self._client = client
        self._cache = cache
        self._corners_type_id = corners_type_id
        self._today = today

    def get_season(self, season_id: int) -> Dict[str, Any]:
        """
        Season metadata (id, name, dates, league), cached for 24 hours.

        Raises:
            SeasonNotFoundError: The season does not exist upstream
        """
        def fetch():
            logger.info(f"Fetching season {season_id} dates...")
            season = self._client.get_season(season_id)
            if not season:
                raise SeasonNotFoundError(season_id)
            return {
                "id": season.get("id"),
                "name": season.get("name"),
                "startDate": season.get("starting_at"),
                "endDate": season.get("ending_at"),
                "leagueName": (season.get("league") or {}).get("name"),
            }

        season, _ = self._cache.get_or_fetch(
            season_key(season_id),
            fetch,
            get_ttl_for_category(DataCategory.SEASON),
        )
        return season

    def get_corner_averages(self, team_id: int, season_id: int) -> Dict[str, Any]:
        """
        Corner averages for a team in a season, with ``fromCache``.

        Raises:
            SeasonNotFoundError: Unknown season
            UpstreamError: SportMonks failed; nothing is cached
        """
        averages, from_cache = self._cache.get_or_fetch(
            corners_key(team_id, season_id),
            lambda: self._compute(team_id, season_id),
            get_ttl_for_category(DataCategory.CORNERS),
        )
        return {**averages, "fromCache": from_cache}

    def invalidate(self, team_id: int, season_id: int) -> bool:
        """Drop the cached averages for one team/season."""
        return self._cache.delete(corners_key(team_id, season_id))

    def _compute(self, team_id: int, season_id: int) -> Dict[str, Any]:
        season = self.get_season(season_id)
        start = _parse_date(season.get("startDate"), season_id)
        today = self._today()

        if start > today:
            logger.info(f"Season {season_id} starts {start}, no fixtures to inspect yet")
            fixtures = []
        else:
            logger.info(f"Fetching fixtures for team {team_id} from {start} to {today}...")
            fixtures = self._client.get_team_fixtures_with_stats(
                start.isoformat(), today.isoformat(), team_id
            )

        aggregate = aggregate_corners(fixtures, team_id, season_id, self._corners_type_id)
        logger.info(
            f"Found {len(fixtures)} total fixtures, {aggregate.fixtures_in_season} "
            f"in season {season_id}"
        )
        if aggregate.skipped_fixtures:
            logger.warning(
                f"Skipped {len(aggregate.skipped_fixtures)} fixtures with unknown location "
                f"for team {team_id}: {aggregate.skipped_fixtures}"
            )

        return {
            "teamId": team_id,
            "seasonId": season_id,
            "seasonName": season.get("name"),
            "leagueName": season.get("leagueName"),
            "corners": aggregate.to_dict(),
            "skippedFixtures": aggregate.skipped_fixtures,
            "cachedAt": self._cache.now().isoformat(),
        }


def _parse_date(value: Optional[str], season_id: int) -> date:
    if not value:
        raise UpstreamError(f"seasons/{season_id}", "season has no start date")
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise UpstreamError(f"seasons/{season_id}", f"unparseable start date {value!r}")
