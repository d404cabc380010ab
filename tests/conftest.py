"""
Shared fixtures: a controllable clock, an in-memory type database and a
scriptable stand-in for the SportMonks client.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.cache import TTLCache
from app.db import init_db
from app.errors import UpstreamError


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class FakeSportMonks:
    """
    In-memory SportMonks client.

    Records every call in ``calls`` so tests can assert what was fetched.
    Set ``fail[<method name>]`` to an exception to make that call raise it.
    """

    def __init__(self):
        self.seasons: Dict[int, Dict[str, Any]] = {}
        self.team_fixtures: List[Dict[str, Any]] = []
        self.fixtures: List[Dict[str, Any]] = []
        self.fixture_details: Dict[int, Dict[str, Any]] = {}
        self.livescores: List[Dict[str, Any]] = []
        self.inplay: List[Dict[str, Any]] = []
        self.types: List[Dict[str, Any]] = []
        self.fail: Dict[str, Exception] = {}
        self.calls: List[tuple] = []

    def _record(self, name: str, *args):
        self.calls.append((name, *args))
        if name in self.fail:
            raise self.fail[name]

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    def get_season(self, season_id):
        self._record("get_season", season_id)
        return self.seasons.get(season_id)

    def get_team_fixtures_with_stats(self, start_date, end_date, team_id):
        self._record("get_team_fixtures_with_stats", start_date, end_date, team_id)
        return list(self.team_fixtures)

    def get_fixtures_between(self, start_date, end_date):
        self._record("get_fixtures_between", start_date, end_date)
        return list(self.fixtures)

    def get_fixture(self, fixture_id, include_sidelined=False):
        self._record("get_fixture", fixture_id)
        return self.fixture_details.get(fixture_id)

    def get_livescores(self):
        self._record("get_livescores")
        return list(self.livescores)

    def get_livescores_inplay(self):
        self._record("get_livescores_inplay")
        return list(self.inplay)

    def fetch_types(self):
        self._record("fetch_types")
        return [dict(t) for t in self.types]


# =============================================================================
# Builders
# =============================================================================

def make_type(type_id: int, name: str, code: str = None, model_type: str = "statistic",
              parent_id: int = None) -> Dict[str, Any]:
    """A raw type as returned by the core/types endpoint."""
    code = code or name.lower().replace(" ", "-")
    return {
        "id": type_id,
        "parent_id": parent_id,
        "name": name,
        "code": code,
        "developer_name": code.upper().replace("-", "_"),
        "model_type": model_type,
        "group": None,
        "stat_group": "offensive" if model_type == "statistic" else None,
    }


def make_fixture(fixture_id: int, team_id: int, season_id: int, location: str = "home",
                 corners: Optional[Any] = None, state: str = "FT",
                 opponent_id: int = 999) -> Dict[str, Any]:
    """A raw team fixture with participants, state and statistics."""
    other = "away" if location == "home" else "home"
    statistics = [
        {"type_id": 34, "participant_id": opponent_id, "data": {"value": 3}},
        {"type_id": 45, "participant_id": team_id, "data": {"value": 55}},
    ]
    if corners is not None:
        data = corners if isinstance(corners, dict) else {"value": corners}
        statistics.append({"type_id": 34, "participant_id": team_id, "data": data})
    return {
        "id": fixture_id,
        "season_id": season_id,
        "state": {"id": 5, "state": state},
        "participants": [
            {"id": team_id, "name": "Team", "meta": {"location": location}},
            {"id": opponent_id, "name": "Opponent", "meta": {"location": other}},
        ],
        "statistics": statistics,
    }


TYPE_ROWS = [
    make_type(14, "Goal", model_type="event"),
    make_type(19, "Yellowcard", model_type="event"),
    make_type(34, "Corners"),
    make_type(45, "Ball Possession %", code="ball-possession"),
    make_type(535, "Hamstring Injury", model_type="injury_suspension"),
]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ttl_cache(clock):
    return TTLCache(clock=clock, coalesce_timeout=5.0)


@pytest.fixture
def sportmonks():
    return FakeSportMonks()


@pytest.fixture
def session_factory():
    """Session factory bound to a fresh in-memory database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def today():
    return date(2025, 3, 1)


@pytest.fixture
def upstream_down():
    return UpstreamError("livescores/inplay", "connection refused")
