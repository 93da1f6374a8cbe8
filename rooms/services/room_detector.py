"""
Room detection pipeline.

    entities + visible layers
        -> visibility filter
        -> closed-polygon stage
        -> rectangle stage (only when the polygon stage found too few rooms)
        -> circle stage (always)
        -> one merged room list

Detection is a pure function of its inputs: nothing is cached between runs
and every run builds its rooms from scratch. Callers that need a busy flag
or a stored result keep it themselves (see ``rooms.models.DetectionRun``).
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional
import logging

from .circle_detector import CircularRoomDetector
from .detection_config import DetectionConfig
from .dxf_loader import DXFData
from .entities import Entity, normalize_entity
from .layers import filter_visible
from .polygon_detector import ClosedPolygonDetector
from .rectangle_detector import RectangleReconstructor
from .room_result import Room


logger = logging.getLogger(__name__)


@dataclass
class DetectionResult:
    """Rooms of one run plus per-stage counts for reporting."""
    rooms: list[Room] = field(default_factory=list)
    visible_entities: int = 0
    polygon_rooms: int = 0
    rectangle_rooms: int = 0
    circle_rooms: int = 0
    rectangle_stage_ran: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def as_entities(items: Iterable[Any]) -> list[Entity]:
    """Pass normalized entities through, normalize raw decoder records."""
    if isinstance(items, DXFData):
        items = items.entities
    return [item if isinstance(item, Entity) else normalize_entity(item) for item in items]


class RoomDetector:
    """Runs the three detection stages with one DetectionConfig."""

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()
        self.polygons = ClosedPolygonDetector(self.config)
        self.rectangles = RectangleReconstructor(self.config)
        self.circles = CircularRoomDetector(self.config)

    def detect(self, entities: Iterable[Any], visible_layers: Optional[Iterable[str]] = None) -> DetectionResult:
        """
        Detect rooms among the visible ``entities``.

        Never raises: an unexpected failure is logged and reported through
        ``DetectionResult.error`` with an empty room list, so a caller never
        sees a partially filled result.
        """
        try:
            return self._detect(entities, visible_layers)
        except Exception as exc:
            logger.exception("Room detection failed")
            return DetectionResult(error=str(exc) or exc.__class__.__name__)

    def _detect(self, entities: Iterable[Any], visible_layers: Optional[Iterable[str]]) -> DetectionResult:
        cfg = self.config
        visible = filter_visible(as_entities(entities), visible_layers)
        if len(visible) > cfg.max_entities:
            logger.warning("Examining the first %d of %d visible entities", cfg.max_entities, len(visible))
            visible = visible[: cfg.max_entities]

        result = DetectionResult(visible_entities=len(visible))
        if not visible:
            logger.info("No visible entities to analyze")
            return result

        polygon_rooms = self.polygons.detect(visible)

        rectangle_rooms: list[Room] = []
        trigger = cfg.rectangle_trigger_count
        if trigger is None or len(polygon_rooms) < trigger:
            existing = polygon_rooms if cfg.overlap_with_polygon_rooms else None
            rectangle_rooms = self.rectangles.detect(visible, existing=existing)
            result.rectangle_stage_ran = True

        circle_rooms = self.circles.detect(visible)

        result.rooms = polygon_rooms + rectangle_rooms + circle_rooms
        result.polygon_rooms = len(polygon_rooms)
        result.rectangle_rooms = len(rectangle_rooms)
        result.circle_rooms = len(circle_rooms)
        logger.info(
            "Detected %d rooms (%d polygon, %d rectangle, %d circle)",
            len(result.rooms),
            result.polygon_rooms,
            result.rectangle_rooms,
            result.circle_rooms,
        )
        return result


def detect_rooms(
    entities: Iterable[Any],
    visible_layers: Optional[Iterable[str]] = None,
    config: Optional[DetectionConfig] = None,
) -> list[Room]:
    """``(entities, visible_layers, config) -> rooms``; empty on failure."""
    return RoomDetector(config).detect(entities, visible_layers).rooms
