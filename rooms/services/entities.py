"""
Normalization of decoded CAD entity records.

The two upstream decoders (DXF parser and DWG reader) name the same geometric
fields differently: a LINE start may be ``start``, ``startPoint`` or the first
of ``vertices``, a CIRCLE center ``center`` or ``centerPoint`` and so on.

All of that alias probing happens here, once per entity, when a drawing is
ingested. The result is one of the entity dataclasses below, each carrying
canonical fields, and the detectors only ever look at those.

Alias lookup is fixed-order and first-match-wins: for each semantic field the
aliases are tried in order and the first present, well-typed value is used.
Later aliases are not consulted once an earlier one matched, even if a later
one would have produced more points.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Iterable, Optional
import logging
import math

from .geometry import Point


logger = logging.getLogger(__name__)


class EntityType(Enum):
    """CAD entity kinds understood by the detector."""
    LINE = "LINE"
    CIRCLE = "CIRCLE"
    ARC = "ARC"
    POLYLINE = "POLYLINE"
    LWPOLYLINE = "LWPOLYLINE"
    POINT = "POINT"
    TEXT = "TEXT"
    MTEXT = "MTEXT"
    INSERT = "INSERT"
    ELLIPSE = "ELLIPSE"
    SPLINE = "SPLINE"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_tag(cls, tag: Any) -> "EntityType":
        name = str(tag or "").strip().upper()
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN


# Alias tables, in lookup order.
LINE_START_FIELDS = ("start", "startPoint", "vertices")
LINE_END_FIELDS = ("end", "endPoint")
CIRCLE_CENTER_FIELDS = ("center", "centerPoint")
CIRCLE_RADIUS_FIELDS = ("radius", "r")
POLYLINE_VERTEX_FIELDS = ("vertices", "points")
POINT_POSITION_FIELDS = ("position", "point", "location")
TEXT_ANCHOR_FIELDS = ("startPoint", "position", "insertionPoint")
INSERT_POSITION_FIELDS = ("position", "insertionPoint", "basePoint")
SPLINE_POINT_FIELDS = ("controlPoints", "fitPoints", "vertices")
GENERIC_POINT_FIELDS = ("start", "end", "center", "position", "point", "vertices")


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def extract_point(raw: Any) -> Optional[Point]:
    """
    Coerce a raw coordinate value into a Point.

    - a list/tuple of length >= 2 is read positionally as (x, y)
    - a mapping with numeric ``x`` and ``y`` is read directly
    - anything else is "no point" (None)
    """
    if _is_sequence(raw):
        if len(raw) >= 2 and _is_number(raw[0]) and _is_number(raw[1]):
            return Point(float(raw[0]), float(raw[1]))
        return None

    if isinstance(raw, Mapping):
        x = raw.get("x")
        y = raw.get("y")
        if _is_number(x) and _is_number(y):
            return Point(float(x), float(y))

    return None


def _extract_point_list(values: Iterable[Any]) -> list[Point]:
    points = []
    for value in values:
        point = extract_point(value)
        if point is not None:
            points.append(point)
    return points


def _first_point(record: Mapping, fields: Iterable[str]) -> Optional[Point]:
    """First alias whose value coerces to a point."""
    for name in fields:
        point = extract_point(record.get(name))
        if point is not None:
            return point
    return None


def _first_list(record: Mapping, fields: Iterable[str]) -> Optional[list]:
    """First alias holding a list, even an empty one."""
    for name in fields:
        value = record.get(name)
        if _is_sequence(value):
            return list(value)
    return None


def _first_number(record: Mapping, fields: Iterable[str]) -> Optional[float]:
    for name in fields:
        value = record.get(name)
        if _is_number(value):
            return float(value)
    return None


def _layer_of(record: Mapping) -> str:
    layer = record.get("layer")
    if isinstance(layer, str):
        return layer
    return "0"


def _handle_of(record: Mapping) -> Optional[str]:
    handle = record.get("handle")
    if handle is None:
        return None
    return str(handle)


@dataclass(eq=False)
class Entity:
    """
    Base class of all normalized entities.

    ``raw`` keeps the decoder record the entity was built from so detected
    rooms can point back at what the caller passed in. Entities compare by
    identity, like the records they wrap.
    """
    kind: ClassVar[EntityType] = EntityType.UNKNOWN

    layer: str = "0"
    handle: Optional[str] = None
    raw: Mapping = field(default_factory=dict, repr=False)

    @property
    def type_name(self) -> str:
        return self.kind.value

    def points(self) -> list[Point]:
        """Canonical ordered point list (possibly empty)."""
        return []


@dataclass(eq=False)
class LineEntity(Entity):
    kind: ClassVar[EntityType] = EntityType.LINE

    start: Optional[Point] = None
    end: Optional[Point] = None

    def points(self) -> list[Point]:
        # Either both endpoints or nothing.
        if self.start is None or self.end is None:
            return []
        return [self.start, self.end]


@dataclass(eq=False)
class CircleEntity(Entity):
    """CIRCLE or ARC; arcs are treated as their full circle."""
    kind: ClassVar[EntityType] = EntityType.CIRCLE

    center: Optional[Point] = None
    radius: Optional[float] = None
    is_arc: bool = False

    @property
    def type_name(self) -> str:
        return EntityType.ARC.value if self.is_arc else EntityType.CIRCLE.value

    def points(self) -> list[Point]:
        """The two corners of the bounding square, not a polygon approximation."""
        if self.center is None or not self.radius:
            return []
        r = self.radius
        return [
            Point(self.center.x - r, self.center.y - r),
            Point(self.center.x + r, self.center.y + r),
        ]


@dataclass(eq=False)
class PolylineEntity(Entity):
    kind: ClassVar[EntityType] = EntityType.POLYLINE

    vertices: list[Point] = field(default_factory=list)
    closed: bool = False
    lightweight: bool = False

    @property
    def type_name(self) -> str:
        return EntityType.LWPOLYLINE.value if self.lightweight else EntityType.POLYLINE.value

    def points(self) -> list[Point]:
        return list(self.vertices)


@dataclass(eq=False)
class PointEntity(Entity):
    kind: ClassVar[EntityType] = EntityType.POINT

    position: Optional[Point] = None

    def points(self) -> list[Point]:
        return [self.position] if self.position is not None else []


@dataclass(eq=False)
class TextEntity(Entity):
    kind: ClassVar[EntityType] = EntityType.TEXT

    anchor: Optional[Point] = None
    text: str = ""
    multiline: bool = False

    @property
    def type_name(self) -> str:
        return EntityType.MTEXT.value if self.multiline else EntityType.TEXT.value

    def points(self) -> list[Point]:
        return [self.anchor] if self.anchor is not None else []


@dataclass(eq=False)
class InsertEntity(Entity):
    kind: ClassVar[EntityType] = EntityType.INSERT

    position: Optional[Point] = None
    block_name: Optional[str] = None

    def points(self) -> list[Point]:
        return [self.position] if self.position is not None else []


@dataclass(eq=False)
class EllipseEntity(Entity):
    kind: ClassVar[EntityType] = EntityType.ELLIPSE

    center: Optional[Point] = None
    major_axis: Optional[Point] = None
    axis_ratio: float = 1.0

    def points(self) -> list[Point]:
        """Center, plus the bounding-box corners when the major axis is known."""
        if self.center is None:
            return []
        points = [self.center]
        if self.major_axis is not None:
            major = math.hypot(self.major_axis.x, self.major_axis.y)
            minor = major * self.axis_ratio
            points.append(Point(self.center.x - major, self.center.y - minor))
            points.append(Point(self.center.x + major, self.center.y + minor))
        return points


@dataclass(eq=False)
class SplineEntity(Entity):
    kind: ClassVar[EntityType] = EntityType.SPLINE

    control_points: list[Point] = field(default_factory=list)

    def points(self) -> list[Point]:
        return list(self.control_points)


@dataclass(eq=False)
class UnknownEntity(Entity):
    """Unrecognized type; keeps whatever coordinates a generic scan found."""
    kind: ClassVar[EntityType] = EntityType.UNKNOWN

    tag: str = ""
    found_points: list[Point] = field(default_factory=list)

    @property
    def type_name(self) -> str:
        return self.tag or EntityType.UNKNOWN.value

    def points(self) -> list[Point]:
        return list(self.found_points)


def _line_from_record(record: Mapping, common: dict) -> LineEntity:
    start = end = None
    from_vertices = False
    for name in LINE_START_FIELDS:
        value = record.get(name)
        if name == "vertices":
            if _is_sequence(value) and len(value) >= 2:
                start = extract_point(value[0])
                end = extract_point(value[1])
                from_vertices = True
                break
            continue
        start = extract_point(value)
        if start is not None:
            break

    if start is not None and not from_vertices:
        end = _first_point(record, LINE_END_FIELDS)

    return LineEntity(start=start, end=end, **common)


def _circle_from_record(record: Mapping, common: dict, is_arc: bool) -> CircleEntity:
    return CircleEntity(
        center=_first_point(record, CIRCLE_CENTER_FIELDS),
        radius=_first_number(record, CIRCLE_RADIUS_FIELDS),
        is_arc=is_arc,
        **common,
    )


def _polyline_from_record(record: Mapping, common: dict, lightweight: bool) -> PolylineEntity:
    values = _first_list(record, POLYLINE_VERTEX_FIELDS) or []
    return PolylineEntity(
        vertices=_extract_point_list(values),
        closed=record.get("closed") is True,
        lightweight=lightweight,
        **common,
    )


def _ellipse_from_record(record: Mapping, common: dict) -> EllipseEntity:
    ratio = record.get("axisRatio")
    # A missing or zero ratio means a circle-like ellipse.
    if not _is_number(ratio) or ratio == 0:
        ratio = 1.0
    return EllipseEntity(
        center=extract_point(record.get("center")),
        major_axis=extract_point(record.get("majorAxisEndpoint")),
        axis_ratio=float(ratio),
        **common,
    )


def _unknown_from_record(record: Mapping, common: dict) -> UnknownEntity:
    found: list[Point] = []
    for name in GENERIC_POINT_FIELDS:
        value = record.get(name)
        if _is_sequence(value) and (not value or not _is_number(value[0])):
            # A list of coordinates, not a single positional point.
            found.extend(_extract_point_list(value))
            continue
        point = extract_point(value)
        if point is not None:
            found.append(point)
    return UnknownEntity(tag=str(record.get("type") or ""), found_points=found, **common)


def normalize_entity(record: Mapping) -> Entity:
    """
    Build the canonical entity for one decoder record.

    Missing or malformed geometric fields never raise; they only leave the
    entity with fewer (or zero) points.
    """
    if not isinstance(record, Mapping):
        return UnknownEntity(raw={})

    common = {"layer": _layer_of(record), "handle": _handle_of(record), "raw": record}
    kind = EntityType.from_tag(record.get("type"))

    if kind is EntityType.LINE:
        return _line_from_record(record, common)
    if kind in (EntityType.CIRCLE, EntityType.ARC):
        return _circle_from_record(record, common, is_arc=kind is EntityType.ARC)
    if kind in (EntityType.POLYLINE, EntityType.LWPOLYLINE):
        return _polyline_from_record(record, common, lightweight=kind is EntityType.LWPOLYLINE)
    if kind is EntityType.POINT:
        return PointEntity(position=_first_point(record, POINT_POSITION_FIELDS), **common)
    if kind in (EntityType.TEXT, EntityType.MTEXT):
        text = record.get("text")
        return TextEntity(
            anchor=_first_point(record, TEXT_ANCHOR_FIELDS),
            text=text if isinstance(text, str) else "",
            multiline=kind is EntityType.MTEXT,
            **common,
        )
    if kind is EntityType.INSERT:
        name = record.get("name") or record.get("blockName")
        return InsertEntity(
            position=_first_point(record, INSERT_POSITION_FIELDS),
            block_name=str(name) if name else None,
            **common,
        )
    if kind is EntityType.ELLIPSE:
        return _ellipse_from_record(record, common)
    if kind is EntityType.SPLINE:
        values = _first_list(record, SPLINE_POINT_FIELDS) or []
        return SplineEntity(control_points=_extract_point_list(values), **common)
    return _unknown_from_record(record, common)


def normalize_entities(records: Iterable[Any]) -> list[Entity]:
    """
    Normalize a decoded entity list in one pass.

    A record that breaks normalization is logged and skipped; the rest of
    the drawing is still ingested.
    """
    entities: list[Entity] = []
    for index, record in enumerate(records or []):
        try:
            entities.append(normalize_entity(record))
        except Exception:
            logger.warning("Skipping entity #%s that could not be normalized", index, exc_info=True)
    return entities


def extract_points(entity: Any) -> list[Point]:
    """
    Ordered point list of an entity.

    Accepts either a normalized Entity or a raw decoder record, which is
    normalized on the fly.
    """
    if not isinstance(entity, Entity):
        entity = normalize_entity(entity)
    return entity.points()
