"""
TTL configuration and cache key construction.

Keys follow a "category:id1:id2" format so every (category, parameters)
combination maps to exactly one key.
"""
from typing import Dict, Union

from config.settings import settings

from .core import DataCategory


# TTL by category (in seconds)
TTL_CONFIG: Dict[DataCategory, int] = {
    DataCategory.CORNERS: settings.corners_ttl_seconds,    # 12 hours
    DataCategory.SEASON: settings.season_ttl_seconds,      # 24 hours
    DataCategory.DEFAULT: settings.default_ttl_seconds,    # 6 hours
}

Identifier = Union[int, str]


def get_ttl_for_category(category: DataCategory) -> int:
    """Get the TTL in seconds for a data category."""
    return TTL_CONFIG.get(category, TTL_CONFIG[DataCategory.DEFAULT])


def corners_key(team_id: Identifier, season_id: Identifier) -> str:
    """Key for a team's corner averages in one season."""
    return f"{DataCategory.CORNERS.value}:{int(team_id)}:{int(season_id)}"


def season_key(season_id: Identifier) -> str:
    """Key for season metadata (dates, name, league)."""
    return f"{DataCategory.SEASON.value}:{int(season_id)}"
