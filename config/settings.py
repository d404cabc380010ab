"""Configuration management using pydantic-settings."""
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # SportMonks configuration
    sportmonks_api_key: Optional[str] = None
    sportmonks_base_url: str = "https://api.sportmonks.com/v3/football"
    sportmonks_core_url: str = "https://api.sportmonks.com/v3/core"
    request_timeout: float = 30.0
    upstream_max_retries: int = 3

    # Pagination
    types_page_size: int = 100
    fixtures_page_size: int = 50

    # Database (reference types)
    database_url: str = "sqlite:///./fixture_desk.db"

    # Cache settings
    corners_ttl_seconds: int = 12 * 60 * 60
    season_ttl_seconds: int = 24 * 60 * 60
    default_ttl_seconds: int = 6 * 60 * 60
    coalesce_timeout: float = 120.0

    # SportMonks statistic type for corner kicks
    corners_type_id: int = 34

    # Premier League (8), FA Cup (24), Carabao Cup (27)
    # Empty list disables league filtering of fixture lists
    allowed_league_ids: List[int] = [8, 24, 27]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
