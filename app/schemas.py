"""
Pydantic schemas for API request/response models
Field names are snake_case in Python and camelCase on the wire
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


# ===== CORNER SCHEMAS =====

class CornerStats(CamelModel):
    """Corner total, game count and average for one split"""
    total: int
    games: int
    average: float


class CornerSplit(CamelModel):
    home: CornerStats
    away: CornerStats
    overall: CornerStats


class CornerAverages(CamelModel):
    """Corner averages for a team in one season"""
    team_id: int
    season_id: int
    season_name: Optional[str] = None
    league_name: Optional[str] = None
    corners: CornerSplit
    skipped_fixtures: List[Any] = []
    cached_at: str
    from_cache: bool


class CacheClearResult(CamelModel):
    message: str
    cache_key: str
    deleted: bool


# ===== TYPE SCHEMAS =====

class ReferenceTypeOut(CamelModel):
    """One SportMonks type"""
    id: int
    name: str
    code: Optional[str] = None
    developer_name: str
    model_type: str
    group: Optional[str] = None
    stat_group: Optional[str] = None
    parent_id: Optional[int] = None
    last_synced_at: Optional[str] = None


class TypesCacheStatus(CamelModel):
    loaded: bool
    loaded_at: Optional[str] = None
    total_types: int
    model_types: List[str]


class TypeSyncResult(CamelModel):
    total_from_api: int
    inserted: int
    updated: int
    duration_ms: int
    synced_at: str


# ===== FIXTURE SCHEMAS =====

class FixtureList(CamelModel):
    """Raw SportMonks fixtures with a count"""
    count: int
    fixtures: List[Dict[str, Any]]


class OverlayRequest(CamelModel):
    """A fixture list to refresh with live state and scores"""
    fixtures: List[Dict[str, Any]]
