"""
Closed-polygon room detection.

The cheapest and most reliable stage: a closed POLYLINE / LWPOLYLINE whose
area and proportions look like a room is taken as a room as-is.
"""

from typing import Iterable
import logging

from .detection_config import DetectionConfig
from .entities import Entity, PolylineEntity
from .geometry import aspect_ratio, compute_bounds, polygon_area, within_tolerance
from .room_result import Room


logger = logging.getLogger(__name__)


class ClosedPolygonDetector:
    """Accepts closed polylines that pass the area and aspect-ratio gates."""

    def __init__(self, config: DetectionConfig):
        self.config = config

    def is_closed(self, polyline: PolylineEntity) -> bool:
        """
        Closed flag, or first and last vertex within the closure tolerance.

        Drawings often contain polylines that end on their start point
        without setting the closed flag.
        """
        if polyline.closed:
            return True
        points = polyline.points()
        if len(points) <= 2:
            return False
        return within_tolerance(points[0], points[-1], self.config.closure_tolerance)

    def detect(self, entities: Iterable[Entity]) -> list[Room]:
        rooms: list[Room] = []
        polylines = 0

        for entity in entities:
            if not isinstance(entity, PolylineEntity):
                continue
            polylines += 1
            try:
                room = self._room_from_polyline(entity, len(rooms) + 1)
            except Exception:
                logger.warning(
                    "Skipping polyline %s on layer %r", entity.handle, entity.layer, exc_info=True
                )
                continue
            if room is not None:
                rooms.append(room)

        logger.info("Closed-polygon stage: %d polylines, %d rooms", polylines, len(rooms))
        return rooms

    def _room_from_polyline(self, polyline: PolylineEntity, number: int):
        cfg = self.config
        points = polyline.points()
        if len(points) < 3:
            return None
        if cfg.require_closed and not self.is_closed(polyline):
            return None

        area = polygon_area(points)
        if not (cfg.polygon_area_min <= area <= cfg.polygon_area_max):
            logger.debug("Polyline %s rejected: area %.0f out of range", polyline.handle, area)
            return None

        bounds = compute_bounds(points)
        if cfg.polygon_min_side and min(bounds.width, bounds.height) <= cfg.polygon_min_side:
            logger.debug("Polyline %s rejected: side below %.0f", polyline.handle, cfg.polygon_min_side)
            return None

        ratio = aspect_ratio(bounds)
        if ratio >= cfg.polygon_max_aspect_ratio:
            logger.debug("Polyline %s rejected: aspect ratio %.1f", polyline.handle, ratio)
            return None

        return Room(
            id=f"closed_room_{number}",
            bounds=bounds,
            area=area,
            entities=[polyline],
            is_enclosed=True,
        )
