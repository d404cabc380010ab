"""
Sportmonks API Client
Handles the Sportmonks v3 calls used by the caching and aggregation core
"""
import logging
from typing import Any, Dict, List, Optional

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.errors import UpstreamError
from config.settings import settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("sportmonks_client")

# Match states by state_id
MATCH_STATES = {
    1: {"short": "NS", "long": "Not Started", "is_live": False, "is_finished": False},
    2: {"short": "INPLAY_1ST_HALF", "long": "First Half", "is_live": True, "is_finished": False},
    3: {"short": "HT", "long": "Half Time", "is_live": True, "is_finished": False},
    4: {"short": "BREAK", "long": "Regular Time Finished", "is_live": True, "is_finished": False},
    5: {"short": "FT", "long": "Full Time", "is_live": False, "is_finished": True},
    6: {"short": "INPLAY_ET", "long": "Extra Time", "is_live": True, "is_finished": False},
    7: {"short": "AET", "long": "After Extra Time", "is_live": False, "is_finished": True},
    8: {"short": "FT_PEN", "long": "Full Time After Penalties", "is_live": False, "is_finished": True},
    9: {"short": "INPLAY_PENALTIES", "long": "Penalty Shootout", "is_live": True, "is_finished": False},
    10: {"short": "POSTPONED", "long": "Postponed", "is_live": False, "is_finished": False},
    11: {"short": "SUSPENDED", "long": "Suspended", "is_live": False, "is_finished": False},
    12: {"short": "CANCELLED", "long": "Cancelled", "is_live": False, "is_finished": False},
    13: {"short": "TBA", "long": "To Be Announced", "is_live": False, "is_finished": False},
    14: {"short": "WO", "long": "Walk Over", "is_live": False, "is_finished": False},
    15: {"short": "ABANDONED", "long": "Abandoned", "is_live": False, "is_finished": False},
    16: {"short": "DELAYED", "long": "Delayed", "is_live": False, "is_finished": False},
    17: {"short": "AWARDED", "long": "Awarded", "is_live": False, "is_finished": False},
    18: {"short": "INTERRUPTED", "long": "Interrupted", "is_live": False, "is_finished": False},
    22: {"short": "INPLAY_2ND_HALF", "long": "Second Half", "is_live": True, "is_finished": False},
}

# Terminal states that count as a completed match
FINISHED_STATES = {info["short"] for info in MATCH_STATES.values() if info["is_finished"]}


class UpstreamUnavailable(UpstreamError):
    """Transient failure (connection error, timeout, 5xx) worth retrying."""


class SportMonksClient:
    """
    Thin wrapper over the Sportmonks v3 REST API.

    Every failure is raised as ``UpstreamError``; nothing is turned into an
    empty result. Transient failures are retried with exponential backoff.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = settings.sportmonks_base_url,
        core_url: str = settings.sportmonks_core_url,
        timeout: float = settings.request_timeout,
        session: Optional[requests.Session] = None,
    ):
        self._api_key = api_key if api_key is not None else settings.sportmonks_api_key
        self._base_url = base_url.rstrip("/")
        self._core_url = core_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    @retry(
        stop=stop_after_attempt(settings.upstream_max_retries),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(UpstreamUnavailable),
        reraise=True,
    )
    def _get(self, url: str, params: Dict[str, Any], endpoint: str) -> requests.Response:
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.warning(f"Sportmonks transport error on {endpoint}: {e}")
            raise UpstreamUnavailable(endpoint, str(e))
        except requests.RequestException as e:
            logger.error(f"Sportmonks request error on {endpoint}: {e}")
            raise UpstreamError(endpoint, str(e))
        if response.status_code >= 500:
            raise UpstreamUnavailable(endpoint, response.reason or "server error", response.status_code)
        return response

    def _request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        include: Optional[List[str]] = None,
        core: bool = False,
        allow_not_found: bool = False,
    ) -> Dict[str, Any]:
        """
        Make a request to the Sportmonks API.

        Returns the decoded JSON body. With ``allow_not_found`` a 404 comes
        back as ``{"data": None}`` instead of raising.
        """
        if not self._api_key:
            raise UpstreamError(endpoint, "SPORTMONKS_API_KEY not configured")

        url = f"{self._core_url if core else self._base_url}/{endpoint}"
        request_params = {"api_token": self._api_key}
        if params:
            request_params.update(params)
        if include:
            request_params["include"] = ";".join(include)

        logger.info(f"Sportmonks request: {endpoint}")
        response = self._get(url, request_params, endpoint)

        if response.status_code == 404 and allow_not_found:
            return {"data": None}
        if not response.ok:
            detail = _error_message(response)
            logger.error(f"Sportmonks API error on {endpoint}: {response.status_code} {detail}")
            raise UpstreamError(endpoint, detail, response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(endpoint, f"invalid JSON: {e}", response.status_code)

    def _request_paginated(
        self,
        endpoint: str,
        include: Optional[List[str]] = None,
        per_page: int = settings.fixtures_page_size,
        core: bool = False,
    ) -> List[Dict[str, Any]]:
        """Fetch every page of a list endpoint, looping while has_more is set."""
        items: List[Dict[str, Any]] = []
        page = 1

        while True:
            data = self._request(
                endpoint,
                params={"per_page": per_page, "page": page},
                include=include,
                core=core,
            )
            items.extend(data.get("data") or [])

            pagination = data.get("pagination") or {}
            if not pagination.get("has_more", False):
                break
            page += 1

        logger.info(f"Fetched {len(items)} items from {endpoint} across {page} page(s)")
        return items

    # =========================================================================
    # SEASONS
    # =========================================================================

    def get_season(self, season_id: int) -> Optional[Dict[str, Any]]:
        """Get a season with its league, or None if it does not exist."""
        data = self._request(f"seasons/{season_id}", include=["league"], allow_not_found=True)
        return data.get("data") or None

    # =========================================================================
    # FIXTURES
    # =========================================================================

    def get_team_fixtures_with_stats(
        self,
        start_date: str,
        end_date: str,
        team_id: int,
    ) -> List[Dict[str, Any]]:
        """
        All fixtures of a team between two dates (YYYY-MM-DD), every
        competition, with statistics, participants and state.
        """
        return self._request_paginated(
            f"fixtures/between/{start_date}/{end_date}/{team_id}",
            include=["statistics", "participants", "state", "scores"],
        )

    def get_fixtures_between(self, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        """All fixtures between two dates (YYYY-MM-DD)."""
        return self._request_paginated(
            f"fixtures/between/{start_date}/{end_date}",
            include=["participants", "scores", "league", "state", "venue"],
        )

    def get_fixture(self, fixture_id: int, include_sidelined: bool = False) -> Optional[Dict[str, Any]]:
        """Get one fixture with statistics and events, or None if missing."""
        includes = ["participants", "scores", "league", "season", "state", "venue", "statistics", "events"]
        if include_sidelined:
            includes.extend(["sidelined.player", "sidelined.sideline", "sidelined.type"])
        data = self._request(f"fixtures/{fixture_id}", include=includes, allow_not_found=True)
        return data.get("data") or None

    # =========================================================================
    # LIVE SCORES
    # =========================================================================

    def get_livescores(self) -> List[Dict[str, Any]]:
        """Matches live or about to start today (the broad live feed)."""
        data = self._request("livescores", include=["participants", "scores", "league", "state"])
        return data.get("data") or []

    def get_livescores_inplay(self) -> List[Dict[str, Any]]:
        """Matches currently being played (the narrow, most real-time feed)."""
        data = self._request(
            "livescores/inplay",
            include=["participants", "scores", "league", "state", "events"],
        )
        return data.get("data") or []

    # =========================================================================
    # CORE: TYPES
    # =========================================================================

    def fetch_types(self, per_page: int = settings.types_page_size) -> List[Dict[str, Any]]:
        """Fetch the complete type taxonomy from the core API."""
        return self._request_paginated("types", per_page=per_page, core=True)


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason or f"HTTP {response.status_code}"


# Global client instance
_client: Optional[SportMonksClient] = None


def get_sportmonks_client() -> SportMonksClient:
    """Get or create the shared Sportmonks client."""
    global _client
    if _client is None:
        _client = SportMonksClient()
    return _client
