"""
Unit tests for corner-kick averages: the pure aggregation and the cached
service around it.
"""
import threading
import time

import pytest

from app.cache import corners_key, season_key
from app.corners import (
    CornerAveragesService,
    aggregate_corners,
    corner_count,
    filter_to_season,
    is_finished,
)
from app.errors import SeasonNotFoundError, UpstreamError

from conftest import make_fixture

TEAM = 1
SEASON = 23614
OTHER_SEASON = 23690

PREMIER_LEAGUE_SEASON = {
    "id": SEASON,
    "name": "2024/2025",
    "starting_at": "2024-08-16",
    "ending_at": "2025-05-25",
    "league": {"id": 8, "name": "Premier League"},
}


# =============================================================================
# Aggregation
# =============================================================================

def test_home_average_from_three_fixtures():
    fixtures = [
        make_fixture(1, TEAM, SEASON, "home", corners=4),
        make_fixture(2, TEAM, SEASON, "home", corners=6),
        make_fixture(3, TEAM, SEASON, "home", corners=5),
    ]
    result = aggregate_corners(fixtures, TEAM, SEASON).to_dict()

    assert result["home"] == {"total": 15, "games": 3, "average": 5.0}
    assert result["away"] == {"total": 0, "games": 0, "average": 0.0}
    assert result["overall"] == {"total": 15, "games": 3, "average": 5.0}


def test_only_fixtures_of_requested_season_count():
    in_season = [make_fixture(i, TEAM, SEASON, "home" if i % 2 else "away", corners=2) for i in range(6)]
    cup_games = [make_fixture(100 + i, TEAM, OTHER_SEASON, "home", corners=9) for i in range(4)]
    fixtures = in_season[:3] + cup_games + in_season[3:]

    aggregate = aggregate_corners(fixtures, TEAM, SEASON)

    assert len(fixtures) == 10
    assert aggregate.fixtures_in_season == 6
    assert aggregate.overall.games == 6
    assert aggregate.overall.total == 12


def test_season_filter_is_exact():
    fixtures = [{"id": 1, "season_id": SEASON}, {"id": 2, "season_id": str(SEASON)}, {"id": 3}]
    assert [f["id"] for f in filter_to_season(fixtures, SEASON)] == [1]


def test_unfinished_fixtures_are_ignored():
    fixtures = [
        make_fixture(1, TEAM, SEASON, "home", corners=7, state="FT"),
        make_fixture(2, TEAM, SEASON, "home", corners=3, state="INPLAY_2ND_HALF"),
        make_fixture(3, TEAM, SEASON, "away", corners=5, state="NS"),
        make_fixture(4, TEAM, SEASON, "away", corners=4, state="AET"),
        make_fixture(5, TEAM, SEASON, "away", corners=2, state="FT_PEN"),
    ]
    aggregate = aggregate_corners(fixtures, TEAM, SEASON)

    assert aggregate.home.to_dict() == {"total": 7, "games": 1, "average": 7.0}
    assert aggregate.away.to_dict() == {"total": 6, "games": 2, "average": 3.0}


def test_is_finished_falls_back_to_state_id():
    assert is_finished({"state_id": 5}) is True
    assert is_finished({"state_id": 22}) is False
    assert is_finished({}) is False


def test_missing_statistic_counts_as_zero_corner_game():
    fixtures = [
        make_fixture(1, TEAM, SEASON, "away", corners=6),
        make_fixture(2, TEAM, SEASON, "away", corners=None),
    ]
    aggregate = aggregate_corners(fixtures, TEAM, SEASON)
    assert aggregate.away.to_dict() == {"total": 6, "games": 2, "average": 3.0}


def test_corner_count_reads_value_or_bare_number():
    fixture = make_fixture(1, TEAM, SEASON, corners={"value": 8})
    assert corner_count(fixture, TEAM) == 8

    fixture["statistics"][-1]["data"] = 5
    assert corner_count(fixture, TEAM) == 5

    fixture["statistics"][-1]["data"] = None
    assert corner_count(fixture, TEAM) == 0


def test_corner_count_ignores_opponent_statistic():
    fixture = make_fixture(1, TEAM, SEASON, corners=None)
    # The opponent's corners (3) must not be attributed to the team
    assert corner_count(fixture, TEAM) == 0


def test_averages_are_rounded_to_two_places():
    fixtures = [
        make_fixture(1, TEAM, SEASON, "home", corners=4),
        make_fixture(2, TEAM, SEASON, "home", corners=5),
        make_fixture(3, TEAM, SEASON, "home", corners=5),
    ]
    assert aggregate_corners(fixtures, TEAM, SEASON).home.average == 4.67


def test_unknown_location_is_skipped_and_reported():
    fixture = make_fixture(9, TEAM, SEASON, "home", corners=4)
    fixture["participants"][0]["meta"] = {}
    aggregate = aggregate_corners([fixture], TEAM, SEASON)

    assert aggregate.overall.games == 0
    assert aggregate.skipped_fixtures == [9]


def test_fixture_without_team_is_ignored():
    fixture = make_fixture(1, 555, SEASON, "home", corners=4)
    aggregate = aggregate_corners([fixture], TEAM, SEASON)
    assert aggregate.overall.games == 0
    assert aggregate.skipped_fixtures == []


# =============================================================================
# Service
# =============================================================================

@pytest.fixture
def service(sportmonks, ttl_cache, today):
    sportmonks.seasons[SEASON] = PREMIER_LEAGUE_SEASON
    sportmonks.team_fixtures = [
        make_fixture(1, TEAM, SEASON, "home", corners=4),
        make_fixture(2, TEAM, SEASON, "home", corners=6),
        make_fixture(3, TEAM, SEASON, "home", corners=5),
        make_fixture(4, TEAM, SEASON, "away", corners=3),
        make_fixture(5, TEAM, OTHER_SEASON, "away", corners=11),
    ]
    return CornerAveragesService(sportmonks, ttl_cache, today=lambda: today)


def test_first_request_computes(service, sportmonks, clock):
    result = service.get_corner_averages(TEAM, SEASON)

    assert result["fromCache"] is False
    assert result["teamId"] == TEAM
    assert result["seasonId"] == SEASON
    assert result["seasonName"] == "2024/2025"
    assert result["leagueName"] == "Premier League"
    assert result["corners"]["home"] == {"total": 15, "games": 3, "average": 5.0}
    assert result["corners"]["away"] == {"total": 3, "games": 1, "average": 3.0}
    assert result["corners"]["overall"] == {"total": 18, "games": 4, "average": 4.5}
    assert result["cachedAt"] == clock().isoformat()
    assert sportmonks.calls[-1] == ("get_team_fixtures_with_stats", "2024-08-16", "2025-03-01", TEAM)


def test_second_request_is_served_from_cache(service, sportmonks):
    first = service.get_corner_averages(TEAM, SEASON)
    second = service.get_corner_averages(TEAM, SEASON)

    assert second["fromCache"] is True
    assert second["corners"] == first["corners"]
    assert second["cachedAt"] == first["cachedAt"]
    assert sportmonks.count("get_team_fixtures_with_stats") == 1


def test_recomputes_after_corners_ttl(service, sportmonks, clock):
    service.get_corner_averages(TEAM, SEASON)
    clock.advance(12 * 60 * 60)
    result = service.get_corner_averages(TEAM, SEASON)

    assert result["fromCache"] is False
    assert sportmonks.count("get_team_fixtures_with_stats") == 2
    # Season metadata lives for 24 hours and is still cached
    assert sportmonks.count("get_season") == 1


def test_season_metadata_is_shared_between_teams(service, sportmonks, ttl_cache):
    service.get_corner_averages(TEAM, SEASON)
    service.get_corner_averages(2, SEASON)

    assert sportmonks.count("get_season") == 1
    assert ttl_cache.get(season_key(SEASON))["leagueName"] == "Premier League"


def test_unknown_season_raises_and_caches_nothing(service, sportmonks, ttl_cache):
    with pytest.raises(SeasonNotFoundError):
        service.get_corner_averages(TEAM, 1)

    assert ttl_cache.keys() == []
    assert sportmonks.count("get_team_fixtures_with_stats") == 0


def test_upstream_failure_propagates_uncached(service, sportmonks, ttl_cache):
    sportmonks.fail["get_team_fixtures_with_stats"] = UpstreamError("fixtures/between", "timeout")

    with pytest.raises(UpstreamError):
        service.get_corner_averages(TEAM, SEASON)
    assert ttl_cache.get(corners_key(TEAM, SEASON)) is None

    del sportmonks.fail["get_team_fixtures_with_stats"]
    assert service.get_corner_averages(TEAM, SEASON)["fromCache"] is False


def test_season_not_started_yet_fetches_nothing(sportmonks, ttl_cache, today):
    sportmonks.seasons[SEASON] = {**PREMIER_LEAGUE_SEASON, "starting_at": "2025-08-15"}
    service = CornerAveragesService(sportmonks, ttl_cache, today=lambda: today)

    result = service.get_corner_averages(TEAM, SEASON)

    assert result["corners"]["overall"] == {"total": 0, "games": 0, "average": 0.0}
    assert sportmonks.count("get_team_fixtures_with_stats") == 0


def test_invalidate_forces_recompute(service, sportmonks):
    service.get_corner_averages(TEAM, SEASON)

    assert service.invalidate(TEAM, SEASON) is True
    assert service.invalidate(TEAM, SEASON) is False
    assert service.get_corner_averages(TEAM, SEASON)["fromCache"] is False
    assert sportmonks.count("get_team_fixtures_with_stats") == 2


def test_cached_result_is_not_mutated_by_callers(service):
    first = service.get_corner_averages(TEAM, SEASON)
    first["fromCache"] = "tampered"
    assert service.get_corner_averages(TEAM, SEASON)["fromCache"] is True


def test_concurrent_requests_share_one_computation(service, sportmonks):
    release = threading.Event()
    original = sportmonks.get_team_fixtures_with_stats

    def slow_fixtures(*args):
        release.wait(5)
        return original(*args)

    sportmonks.get_team_fixtures_with_stats = slow_fixtures
    results = []
    threads = [
        threading.Thread(target=lambda: results.append(service.get_corner_averages(TEAM, SEASON)))
        for _ in range(4)
    ]
    for t in threads:
        t.start()

    deadline = time.monotonic() + 5
    while service._cache.get_stats()["coalescer"]["coalesced"] < 3:
        assert time.monotonic() < deadline, "requests never coalesced"
        time.sleep(0.01)
    release.set()
    for t in threads:
        t.join(5)

    assert len(results) == 4
    assert sportmonks.count("get_team_fixtures_with_stats") == 1
    assert {r["corners"]["overall"]["games"] for r in results} == {4}
