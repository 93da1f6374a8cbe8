"""
Tunable thresholds for room detection.

Every threshold used by the three detection stages is a named field of
DetectionConfig. The historical rule sets are kept as presets; "strict" is
the default. Deployments can override any field through the Django setting
``ROOM_DETECTION``::

    ROOM_DETECTION = {
        "preset": "strict",
        "polygon_max_aspect_ratio": 30,
    }
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional
import logging

from django.conf import settings


logger = logging.getLogger(__name__)

CANDIDATE_ORDER_ENUMERATION = "enumeration"
CANDIDATE_ORDER_AREA_DESC = "area_desc"


@dataclass(frozen=True)
class DetectionConfig:
    """Thresholds for the polygon, rectangle and circle stages (drawing units)."""

    # Input caps
    max_entities: int = 10000

    # Closed-polygon stage
    require_closed: bool = True
    closure_tolerance: float = 10.0
    polygon_area_min: float = 1000.0
    polygon_area_max: float = 10_000_000.0
    polygon_min_side: float = 0.0
    polygon_max_aspect_ratio: float = 20.0

    # Rectangle stage. None means it always runs.
    rectangle_trigger_count: Optional[int] = 10
    max_lines: int = 300
    max_segments_per_axis: int = 40
    min_line_length: float = 20.0
    angle_tolerance_deg: float = 15.0
    sort_segments: bool = True
    span_min: float = 50.0
    span_max: float = 10000.0
    min_pair_overlap: float = 50.0
    rectangle_area_min: float = 10.0
    rectangle_area_max: float = 1_000_000_000.0
    check_coverage: bool = True
    vertical_cover_slack: float = 200.0
    horizontal_cover_slack: float = 50.0
    rectangle_max_aspect_ratio: float = 50.0
    overlap_ratio: float = 0.3
    overlap_with_polygon_rooms: bool = False
    candidate_order: str = CANDIDATE_ORDER_ENUMERATION
    max_rectangles: int = 10

    # Circle stage
    circle_area_min: float = 500.0
    circle_area_max: float = 10_000_000.0
    circle_min_diameter: float = 50.0

    def with_overrides(self, overrides: Optional[Mapping[str, Any]]) -> "DetectionConfig":
        """Copy with ``overrides`` applied; unknown keys are logged and ignored."""
        if not overrides:
            return self
        known = {f.name for f in fields(self)}
        changes = {}
        for key, value in overrides.items():
            if key == "preset":
                continue
            if key not in known:
                logger.warning("Ignoring unknown room detection setting %r", key)
                continue
            changes[key] = value
        return replace(self, **changes)

    @classmethod
    def from_preset(cls, name: Optional[str]) -> "DetectionConfig":
        preset = PRESETS.get(name or DEFAULT_PRESET)
        if preset is None:
            raise ValueError(f"Unknown detection preset: {name}")
        return preset

    @classmethod
    def from_settings(cls, preset: Optional[str] = None) -> "DetectionConfig":
        """
        Build the config from ``settings.ROOM_DETECTION``.

        An explicit ``preset`` wins over the one named in settings.
        """
        overrides = getattr(settings, "ROOM_DETECTION", None) or {}
        name = preset or overrides.get("preset")
        return cls.from_preset(name).with_overrides(overrides)


DEFAULT_PRESET = "strict"

PRESETS: dict[str, DetectionConfig] = {
    # Closed polylines first, then rectangles with coverage and overlap checks.
    "strict": DetectionConfig(),
    # Very loose polygon gates for drawings with odd units or tiny rooms.
    "liberal": DetectionConfig(
        polygon_area_min=10.0,
        polygon_area_max=1_000_000_000.0,
        polygon_min_side=5.0,
        polygon_max_aspect_ratio=100.0,
    ),
    # Whatever is visible on screen: closure not required, no coverage checks.
    "canvas": DetectionConfig(
        require_closed=False,
        polygon_area_min=500.0,
        polygon_area_max=50_000_000.0,
        polygon_min_side=50.0,
        polygon_max_aspect_ratio=50.0,
        rectangle_trigger_count=None,
        max_segments_per_axis=15,
        angle_tolerance_deg=20.0,
        sort_segments=False,
        span_min=100.0,
        span_max=20000.0,
        min_pair_overlap=0.0,
        rectangle_area_min=50000.0,
        rectangle_area_max=500_000_000.0,
        check_coverage=False,
        max_rectangles=6,
        circle_area_min=1000.0,
    ),
    # Large rooms in millimetre drawings, biggest rectangles first.
    "improved": DetectionConfig(
        max_entities=1000,
        rectangle_trigger_count=5,
        max_segments_per_axis=30,
        sort_segments=False,
        span_min=500.0,
        span_max=50000.0,
        min_pair_overlap=0.0,
        rectangle_area_min=100000.0,
        check_coverage=False,
        candidate_order=CANDIDATE_ORDER_AREA_DESC,
        max_rectangles=5,
        circle_area_max=5_000_000.0,
    ),
}
