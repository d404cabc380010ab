"""
Data models for the live overlay.

The overlay map is request-scoped: built from the two live feeds, used for
one merge, then discarded.
"""
from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class LiveSnapshot:
    """The live fields of one fixture as reported by a live feed."""
    fixture_id: Any
    state: Any
    scores: Any

    @classmethod
    def from_fixture(cls, fixture: Dict[str, Any]) -> "LiveSnapshot":
        return cls(
            fixture_id=fixture.get("id"),
            state=fixture.get("state"),
            scores=fixture.get("scores"),
        )


# fixture id -> freshest live fields
LiveOverlayMap = Dict[Any, LiveSnapshot]
