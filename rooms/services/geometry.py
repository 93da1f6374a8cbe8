"""
Planar geometry primitives for the room detector.

Bounds folding, shoelace polygon area and bounding-box helpers. Everything
here works on plain 2D points in drawing units; no function raises for an
empty or degenerate point set.
"""

from dataclasses import dataclass
from typing import Iterable

from shapely.geometry import box


@dataclass(frozen=True)
class Point:
    """2D point in drawing units."""
    x: float
    y: float


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned bounding box."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Point:
        """Center of the box, used to center the view on a room."""
        return Point((self.min_x + self.max_x) / 2.0, (self.min_y + self.max_y) / 2.0)

    def expanded(self, margin: float) -> "Bounds":
        return Bounds(
            self.min_x - margin,
            self.min_y - margin,
            self.max_x + margin,
            self.max_y + margin,
        )

    def to_dict(self) -> dict[str, float]:
        return {
            "min_x": self.min_x,
            "min_y": self.min_y,
            "max_x": self.max_x,
            "max_y": self.max_y,
        }


# Returned when there is nothing to draw. Callers treat it as "empty
# drawing", not as an error.
FALLBACK_BOUNDS = Bounds(-100.0, -100.0, 100.0, 100.0)

# Fraction of the larger drawing side added around whole-drawing bounds.
DRAWING_MARGIN_RATIO = 0.1


def compute_bounds(points: Iterable[Point]) -> Bounds:
    """
    Fold min/max over the x and y coordinates of ``points``.

    Returns FALLBACK_BOUNDS when ``points`` is empty.
    """
    min_x = min_y = float("inf")
    max_x = max_y = float("-inf")
    count = 0
    for p in points:
        count += 1
        min_x = min(min_x, p.x)
        min_y = min(min_y, p.y)
        max_x = max(max_x, p.x)
        max_y = max(max_y, p.y)

    if count == 0:
        return FALLBACK_BOUNDS
    return Bounds(min_x, min_y, max_x, max_y)


def drawing_bounds(entities: Iterable) -> Bounds:
    """
    Bounds over every point of every entity, padded for display.

    ``entities`` are normalized entities; anything with a ``points()``
    method works. Entities that yield no points are ignored. The raw box is
    expanded on all sides by 10% of its larger side so drawings are not
    clipped at their edges.
    """
    all_points = [p for entity in entities for p in entity.points()]
    if not all_points:
        return FALLBACK_BOUNDS

    raw = compute_bounds(all_points)
    margin = max(raw.width, raw.height) * DRAWING_MARGIN_RATIO
    return raw.expanded(margin)


def polygon_area(points: list[Point]) -> float:
    """
    Area of a simple polygon using the shoelace formula.

    Self-intersecting polygons are not corrected. Fewer than three points
    give 0.
    """
    n = len(points)
    if n < 3:
        return 0.0

    area = 0.0
    for i in range(n):
        j = (i + 1) % n
        area += points[i].x * points[j].y
        area -= points[j].x * points[i].y
    return abs(area) / 2.0


def aspect_ratio(bounds: Bounds) -> float:
    """Longer side over shorter side; infinite for a zero-width box."""
    longer = max(bounds.width, bounds.height)
    shorter = min(bounds.width, bounds.height)
    if shorter <= 0:
        return float("inf")
    return longer / shorter


def overlap_area(a: Bounds, b: Bounds) -> float:
    """Area shared by two bounding boxes (0 when they are disjoint)."""
    shared = box(a.min_x, a.min_y, a.max_x, a.max_y).intersection(
        box(b.min_x, b.min_y, b.max_x, b.max_y)
    )
    return shared.area


def fit_scale(bounds: Bounds, view_width: float, view_height: float, fill: float = 0.8) -> float:
    """
    Scale factor that fits ``bounds`` into a viewport, using ``fill`` of it.

    A drawing with zero width or height keeps scale 1.
    """
    if bounds.width == 0 or bounds.height == 0:
        return 1.0
    scale_x = (view_width * fill) / bounds.width
    scale_y = (view_height * fill) / bounds.height
    return min(scale_x, scale_y)


def segment_length(start: Point, end: Point) -> float:
    dx = end.x - start.x
    dy = end.y - start.y
    return (dx * dx + dy * dy) ** 0.5


def within_tolerance(a: Point, b: Point, tolerance: float) -> bool:
    """True when ``a`` and ``b`` differ by less than ``tolerance`` on both axes."""
    return abs(a.x - b.x) < tolerance and abs(a.y - b.y) < tolerance
