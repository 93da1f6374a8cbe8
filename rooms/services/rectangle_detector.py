"""
Rectangle reconstruction from loose wall lines.

Many drawings have no closed room outlines at all, only individual LINE
entities for the walls. This stage pairs two horizontal and two vertical
segments into an axis-aligned rectangle and keeps the plausible ones.

Only axis-aligned rooms are supported; diagonal segments are dropped.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional
import logging
import math

from .detection_config import CANDIDATE_ORDER_AREA_DESC, DetectionConfig
from .entities import Entity, LineEntity
from .geometry import Bounds, Point, aspect_ratio, overlap_area, segment_length
from .room_result import Room


logger = logging.getLogger(__name__)

HORIZONTAL = "HORIZONTAL"
VERTICAL = "VERTICAL"


@dataclass
class Segment:
    """A LINE reduced to its two endpoints."""
    start: Point
    end: Point
    entity: Entity

    @property
    def dx(self) -> float:
        return self.end.x - self.start.x

    @property
    def dy(self) -> float:
        return self.end.y - self.start.y

    @property
    def length(self) -> float:
        return segment_length(self.start, self.end)

    @property
    def x(self) -> float:
        """Midpoint x; the wall position of a vertical segment."""
        return (self.start.x + self.end.x) / 2.0

    @property
    def y(self) -> float:
        """Midpoint y; the wall position of a horizontal segment."""
        return (self.start.y + self.end.y) / 2.0

    @property
    def min_x(self) -> float:
        return min(self.start.x, self.end.x)

    @property
    def max_x(self) -> float:
        return max(self.start.x, self.end.x)

    @property
    def min_y(self) -> float:
        return min(self.start.y, self.end.y)

    @property
    def max_y(self) -> float:
        return max(self.start.y, self.end.y)


@dataclass
class Candidate:
    bounds: Bounds
    area: float
    segments: tuple[Segment, Segment, Segment, Segment]


def classify_segment(segment: Segment, tolerance_deg: float) -> Optional[str]:
    """
    HORIZONTAL, VERTICAL or None for a diagonal segment.

    The angle is measured from the x-axis on absolute deltas, so it lies in
    [0, 90] degrees.
    """
    adx = abs(segment.dx)
    ady = abs(segment.dy)
    angle = math.degrees(math.atan2(ady, adx))
    if angle < tolerance_deg or angle > (90.0 - tolerance_deg):
        return HORIZONTAL if adx > ady else VERTICAL
    return None


def _x_overlap(a: Segment, b: Segment) -> float:
    return min(a.max_x, b.max_x) - max(a.min_x, b.min_x)


class RectangleReconstructor:
    """Builds rectangular rooms out of pairs of horizontal and vertical lines."""

    def __init__(self, config: DetectionConfig):
        self.config = config

    def collect_segments(self, entities: Iterable[Entity]) -> list[Segment]:
        """Two-point LINE segments at least ``min_line_length`` long."""
        cfg = self.config
        segments: list[Segment] = []
        for entity in entities:
            if len(segments) >= cfg.max_lines:
                break
            if not isinstance(entity, LineEntity):
                continue
            try:
                points = entity.points()
                if len(points) < 2:
                    continue
                segment = Segment(points[0], points[1], entity)
                if segment.length < cfg.min_line_length:
                    continue
            except Exception:
                logger.warning("Skipping line %s on layer %r", entity.handle, entity.layer, exc_info=True)
                continue
            segments.append(segment)
        return segments

    def split_by_direction(self, segments: list[Segment]) -> tuple[list[Segment], list[Segment]]:
        horizontal: list[Segment] = []
        vertical: list[Segment] = []
        for segment in segments:
            direction = classify_segment(segment, self.config.angle_tolerance_deg)
            if direction == HORIZONTAL:
                horizontal.append(segment)
            elif direction == VERTICAL:
                vertical.append(segment)

        if self.config.sort_segments:
            horizontal.sort(key=lambda s: s.y)
            vertical.sort(key=lambda s: s.x)

        limit = self.config.max_segments_per_axis
        return horizontal[:limit], vertical[:limit]

    def candidates(self, horizontal: list[Segment], vertical: list[Segment]) -> Iterator[Candidate]:
        """
        Geometrically plausible rectangles, in nested-loop enumeration order.

        Overlap with other rooms is not considered here.
        """
        cfg = self.config
        for i, h1 in enumerate(horizontal):
            for h2 in horizontal[i + 1:]:
                height = abs(h1.y - h2.y)
                if height < cfg.span_min or height > cfg.span_max:
                    continue
                if cfg.min_pair_overlap and _x_overlap(h1, h2) < cfg.min_pair_overlap:
                    continue

                for k, v1 in enumerate(vertical):
                    for v2 in vertical[k + 1:]:
                        width = abs(v1.x - v2.x)
                        if width < cfg.span_min or width > cfg.span_max:
                            continue

                        area = width * height
                        if area < cfg.rectangle_area_min or area > cfg.rectangle_area_max:
                            continue

                        bounds = Bounds(
                            min(v1.x, v2.x),
                            min(h1.y, h2.y),
                            max(v1.x, v2.x),
                            max(h1.y, h2.y),
                        )
                        if cfg.check_coverage and not self._walls_cover(bounds, h1, h2, v1, v2):
                            continue

                        if aspect_ratio(bounds) >= cfg.rectangle_max_aspect_ratio:
                            continue

                        yield Candidate(bounds, area, (h1, h2, v1, v2))

    def _walls_cover(self, bounds: Bounds, h1: Segment, h2: Segment, v1: Segment, v2: Segment) -> bool:
        """
        Each wall must span the rectangle side it bounds, within slack.

        Rejects quadruples that happen to be co-linear with a rectangle but
        lie far away from each other.
        """
        v_slack = self.config.vertical_cover_slack
        h_slack = self.config.horizontal_cover_slack
        for v in (v1, v2):
            if v.min_y > bounds.min_y + v_slack or v.max_y < bounds.max_y - v_slack:
                return False
        for h in (h1, h2):
            if h.min_x > bounds.min_x + h_slack or h.max_x < bounds.max_x - h_slack:
                return False
        return True

    def _overlaps(self, candidate: Candidate, accepted: list[Room]) -> bool:
        limit = candidate.area * self.config.overlap_ratio
        for room in accepted:
            if overlap_area(candidate.bounds, room.bounds) > limit:
                return True
        return False

    def detect(self, entities: Iterable[Entity], existing: Optional[list[Room]] = None) -> list[Room]:
        """
        Reconstructed rooms, at most ``max_rectangles`` of them.

        A candidate overlapping an already accepted room (or one of
        ``existing``) by more than ``overlap_ratio`` of its own area is
        dropped, so the first of two overlapping candidates wins. With
        ``candidate_order="area_desc"`` candidates are ranked by area before
        that check; otherwise enumeration order decides.
        """
        cfg = self.config
        horizontal, vertical = self.split_by_direction(self.collect_segments(entities))
        logger.info(
            "Rectangle stage: %d horizontal, %d vertical segments", len(horizontal), len(vertical)
        )

        candidates: Iterable[Candidate] = self.candidates(horizontal, vertical)
        if cfg.candidate_order == CANDIDATE_ORDER_AREA_DESC:
            candidates = sorted(candidates, key=lambda c: c.area, reverse=True)

        blocking = list(existing or [])
        rooms: list[Room] = []
        for candidate in candidates:
            if len(rooms) >= cfg.max_rectangles:
                break
            if self._overlaps(candidate, blocking + rooms):
                continue
            rooms.append(
                Room(
                    id=f"rect_room_{len(rooms) + 1}",
                    bounds=candidate.bounds,
                    area=candidate.area,
                    entities=[s.entity for s in candidate.segments],
                    is_enclosed=False,
                )
            )

        logger.info("Rectangle stage: %d rooms", len(rooms))
        return rooms
