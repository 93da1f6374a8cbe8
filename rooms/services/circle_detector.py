"""Round rooms from CIRCLE and ARC entities."""

from typing import Iterable
import logging
import math

from .detection_config import DetectionConfig
from .entities import CircleEntity, Entity
from .geometry import compute_bounds
from .room_result import Room


logger = logging.getLogger(__name__)


class CircularRoomDetector:
    """
    Classifies circles (and arcs, taken as full circles) as round rooms.

    Area is computed from the bounding-box diameter, so an arc counts as the
    whole circle it belongs to.
    """

    def __init__(self, config: DetectionConfig):
        self.config = config

    def detect(self, entities: Iterable[Entity]) -> list[Room]:
        cfg = self.config
        rooms: list[Room] = []

        for entity in entities:
            if not isinstance(entity, CircleEntity):
                continue
            try:
                points = entity.points()
                if len(points) < 2:
                    continue
                bounds = compute_bounds(points)
                diameter = bounds.max_x - bounds.min_x
                area = math.pi * (diameter / 2.0) ** 2
            except Exception:
                logger.warning("Skipping circle %s on layer %r", entity.handle, entity.layer, exc_info=True)
                continue

            if not (cfg.circle_area_min <= area <= cfg.circle_area_max):
                continue
            if diameter <= cfg.circle_min_diameter:
                continue

            rooms.append(
                Room(
                    id=f"circle_room_{len(rooms) + 1}",
                    bounds=bounds,
                    area=area,
                    entities=[entity],
                    is_enclosed=True,
                )
            )

        logger.info("Circle stage: %d rooms", len(rooms))
        return rooms
