"""
Fixture Desk - Main FastAPI Application
Corner averages, live fixture overlays and SportMonks type lookups
"""
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Query

from app.cache import TTLCache, corners_key, get_cache
from app.corners import CornerAveragesService
from app.db import init_db
from app.errors import LiveFeedError, ResyncError, SeasonNotFoundError, UpstreamError
from app.live_match import LiveOverlayService
from app.reference_types import ReferenceTypeCache, get_type_cache
from app.schemas import (
    CacheClearResult,
    CornerAverages,
    FixtureList,
    OverlayRequest,
    ReferenceTypeOut,
    TypesCacheStatus,
    TypeSyncResult,
)
from app.sportmonks_client import SportMonksClient, get_sportmonks_client

logger = logging.getLogger("main")

# Version tracking
APP_VERSION = "v0.3.0"
APP_NAME = "Fixture Desk"


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title=APP_NAME,
    description="Fixtures, corner averages and live scores from SportMonks",
    version=APP_VERSION,
    lifespan=lifespan,
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_corners_service(
    client: SportMonksClient = Depends(get_sportmonks_client),
    cache: TTLCache = Depends(get_cache),
) -> CornerAveragesService:
    return CornerAveragesService(client, cache)


def get_live_overlay_service(
    client: SportMonksClient = Depends(get_sportmonks_client),
) -> LiveOverlayService:
    return LiveOverlayService(client)


def parse_iso_date(value: str, label: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{label} must be a YYYY-MM-DD date")


# =============================================================================
# HEALTH
# =============================================================================

@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok", "source": "sportmonks"}


@app.get("/version")
def version_info():
    """Version information endpoint."""
    return {"name": APP_NAME, "version": APP_VERSION}


@app.get("/cache/stats")
def cache_stats(cache: TTLCache = Depends(get_cache)):
    """Get cache statistics."""
    return cache.get_stats()


# =============================================================================
# CORNER AVERAGES
# =============================================================================

@app.get("/teams/{team_id}/corners/seasons/{season_id}", response_model=CornerAverages)
def team_corner_averages(
    team_id: int,
    season_id: int,
    service: CornerAveragesService = Depends(get_corners_service),
):
    """
    Home and away corner averages of a team in one season.

    Served from cache for 12 hours after the first computation.
    """
    try:
        return service.get_corner_averages(team_id, season_id)
    except SeasonNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamError as e:
        logger.error(f"Get team corner averages error: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except TimeoutError as e:
        logger.error(f"Get team corner averages timed out: {e}")
        raise HTTPException(status_code=504, detail=str(e))


@app.delete("/teams/{team_id}/corners/seasons/{season_id}/cache", response_model=CacheClearResult)
def clear_team_corners_cache(
    team_id: int,
    season_id: int,
    service: CornerAveragesService = Depends(get_corners_service),
):
    """Drop cached corner averages so the next request recomputes them."""
    deleted = service.invalidate(team_id, season_id)
    message = (
        f"Cache cleared for team {team_id}, season {season_id}"
        if deleted
        else f"No cached data found for team {team_id}, season {season_id}"
    )
    return {"message": message, "cacheKey": corners_key(team_id, season_id), "deleted": deleted}


# =============================================================================
# FIXTURES & LIVE SCORES
# =============================================================================

@app.get("/fixtures/between/{start_date}/{end_date}", response_model=FixtureList)
def fixtures_between(
    start_date: str,
    end_date: str,
    service: LiveOverlayService = Depends(get_live_overlay_service),
):
    """Fixtures in a date window with live state and scores applied."""
    start = parse_iso_date(start_date, "Start date")
    end = parse_iso_date(end_date, "End date")
    if start > end:
        raise HTTPException(status_code=400, detail="Start date must be on or before end date")

    try:
        fixtures = service.fixtures_between(start.isoformat(), end.isoformat())
    except (LiveFeedError, UpstreamError) as e:
        logger.error(f"Get fixtures error: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    return {"count": len(fixtures), "fixtures": fixtures}


@app.post("/fixtures/live-overlay", response_model=FixtureList)
def refresh_live_overlay(
    request: OverlayRequest,
    service: LiveOverlayService = Depends(get_live_overlay_service),
):
    """Re-apply the live feeds to an already loaded fixture list."""
    try:
        fixtures = service.overlay(request.fixtures)
    except LiveFeedError as e:
        logger.error(f"Live overlay error: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    return {"count": len(fixtures), "fixtures": fixtures}


@app.get("/fixtures/{fixture_id}")
def get_fixture(
    fixture_id: int,
    include_sidelined: bool = Query(False, description="Include injured/suspended players"),
    client: SportMonksClient = Depends(get_sportmonks_client),
    types: ReferenceTypeCache = Depends(get_type_cache),
):
    """A single fixture with type names added to statistics, events and sidelined entries."""
    try:
        fixture = client.get_fixture(fixture_id, include_sidelined=include_sidelined)
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=str(e))
    if fixture is None:
        raise HTTPException(status_code=404, detail=f"Fixture with ID {fixture_id} not found")

    types.enrich_fixture(fixture)
    return {"includes": {"sidelined": include_sidelined}, "fixture": fixture}


@app.get("/livescores", response_model=FixtureList)
def livescores(client: SportMonksClient = Depends(get_sportmonks_client)):
    """Matches live or about to start today."""
    try:
        fixtures = client.get_livescores()
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"count": len(fixtures), "fixtures": fixtures}


@app.get("/livescores/inplay", response_model=FixtureList)
def livescores_inplay(client: SportMonksClient = Depends(get_sportmonks_client)):
    """Matches currently being played."""
    try:
        fixtures = client.get_livescores_inplay()
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"count": len(fixtures), "fixtures": fixtures}


# =============================================================================
# REFERENCE TYPES
# =============================================================================

@app.get("/types/status", response_model=TypesCacheStatus)
def types_status(types: ReferenceTypeCache = Depends(get_type_cache)):
    """Type cache status: load time, size and categories."""
    return types.status()


@app.get("/types/code/{code}", response_model=ReferenceTypeOut)
def type_by_code(code: str, types: ReferenceTypeCache = Depends(get_type_cache)):
    ref = types.get_by_code(code)
    if ref is None:
        raise HTTPException(status_code=404, detail=f"Type with code '{code}' not found")
    return ref.to_dict()


@app.get("/types/category/{model_type}", response_model=List[ReferenceTypeOut])
def types_by_category(model_type: str, types: ReferenceTypeCache = Depends(get_type_cache)):
    return [ref.to_dict() for ref in types.get_by_category(model_type)]


@app.get("/types/{type_id}", response_model=ReferenceTypeOut)
def type_by_id(type_id: int, types: ReferenceTypeCache = Depends(get_type_cache)):
    ref = types.get_by_id(type_id)
    if ref is None:
        raise HTTPException(status_code=404, detail=f"Type {type_id} not found")
    return ref.to_dict()


@app.post("/admin/types/sync", response_model=TypeSyncResult)
def sync_types(types: ReferenceTypeCache = Depends(get_type_cache)):
    """Pull the full type taxonomy from SportMonks and rebuild the type cache."""
    try:
        return types.resync()
    except ResyncError as e:
        logger.error(f"Type sync error: {e}")
        raise HTTPException(status_code=502, detail=str(e))
