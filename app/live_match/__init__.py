"""
Live overlay: fixture lists whose state and scores come from the live feeds.
"""
from .models import LiveOverlayMap, LiveSnapshot
from .overlay import (
    apply_overlay,
    build_overlay_map,
    filter_leagues,
    merge_live_feeds,
)
from .provider import LiveFeedProvider, LiveOverlayService

__all__ = [
    # Models
    "LiveOverlayMap",
    "LiveSnapshot",
    # Merge
    "apply_overlay",
    "build_overlay_map",
    "filter_leagues",
    "merge_live_feeds",
    # Service
    "LiveFeedProvider",
    "LiveOverlayService",
]
