"""
Merge live feeds onto a base fixture list.

Schedule data (participants, venue, kickoff, metadata) comes from the base
list; ``state`` and ``scores`` come from the freshest live feed that knows the
fixture. The in-play feed is more real-time than the livescores feed and wins
on conflict.
"""
from typing import Any, Dict, Iterable, List, Optional

from .models import LiveOverlayMap, LiveSnapshot

OVERLAY_FIELDS = ("state", "scores")


def build_overlay_map(
    recent: Iterable[Dict[str, Any]],
    inplay: Iterable[Dict[str, Any]],
) -> LiveOverlayMap:
    """Index both feeds by fixture id, in-play entries overwriting livescores."""
    overlay: LiveOverlayMap = {}
    for fixture in recent:
        overlay[fixture.get("id")] = LiveSnapshot.from_fixture(fixture)
    for fixture in inplay:
        overlay[fixture.get("id")] = LiveSnapshot.from_fixture(fixture)
    return overlay


def apply_overlay(
    base: List[Dict[str, Any]],
    overlay: LiveOverlayMap,
) -> List[Dict[str, Any]]:
    """
    Replace ``state`` and ``scores`` of every base fixture the overlay knows.

    The base list and its dicts are not mutated: overlaid fixtures are
    shallow copies, all others are the original objects. Order is kept.
    """
    merged = []
    for fixture in base:
        live = overlay.get(fixture.get("id"))
        if live is None:
            merged.append(fixture)
        else:
            merged.append({**fixture, "state": live.state, "scores": live.scores})
    return merged


def merge_live_feeds(
    base: List[Dict[str, Any]],
    recent: Iterable[Dict[str, Any]],
    inplay: Iterable[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    return apply_overlay(base, build_overlay_map(recent, inplay))


def filter_leagues(
    fixtures: List[Dict[str, Any]],
    league_ids: Optional[Iterable[int]],
) -> List[Dict[str, Any]]:
    """Keep fixtures of the allowed leagues. No allow-list keeps everything."""
    allowed = set(league_ids or ())
    if not allowed:
        return list(fixtures)
    return [f for f in fixtures if f.get("league_id") in allowed]
