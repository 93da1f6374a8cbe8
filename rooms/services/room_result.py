"""Detected room value type and its JSON form."""

from dataclasses import dataclass, field
from typing import Any

from .entities import Entity
from .geometry import Bounds, Point


@dataclass
class Room:
    """
    A candidate room produced by one detection run.

    ``is_enclosed`` is True when the room comes from a single closed shape
    (polyline or circle) and False when it was reconstructed from four
    independent wall lines. Rooms have no identity across runs.
    """
    id: str
    bounds: Bounds
    area: float
    entities: list[Entity] = field(default_factory=list)
    is_enclosed: bool = True

    @property
    def center(self) -> Point:
        return self.bounds.center


def room_to_dict(room: Room, index: int) -> dict[str, Any]:
    """
    JSON-safe representation of ``room``.

    ``index`` is the room's position in the result list; ``number`` is the
    1-based label drawn next to the room.
    """
    center = room.center
    return {
        "id": room.id,
        "number": index + 1,
        "bounds": room.bounds.to_dict(),
        "area": room.area,
        "center": {"x": center.x, "y": center.y},
        "is_enclosed": room.is_enclosed,
        "entity_handles": [e.handle for e in room.entities],
        "entity_types": [e.type_name for e in room.entities],
        "layers": sorted({e.layer for e in room.entities}),
    }
