import pytest

from rooms.services.entities import (
    CircleEntity,
    EntityType,
    LineEntity,
    PolylineEntity,
    UnknownEntity,
    extract_point,
    extract_points,
    normalize_entities,
    normalize_entity,
)
from rooms.services.geometry import Point


def test_line_aliases_are_equivalent():
    canonical = {"type": "LINE", "start": {"x": 0, "y": 0}, "end": {"x": 10, "y": 5}}
    aliased = {"type": "LINE", "startPoint": {"x": 0, "y": 0}, "endPoint": {"x": 10, "y": 5}}
    assert extract_points(canonical) == extract_points(aliased) == [Point(0, 0), Point(10, 5)]


def test_line_from_vertices():
    record = {"type": "LINE", "vertices": [{"x": 1, "y": 2}, {"x": 3, "y": 4}]}
    assert extract_points(record) == [Point(1, 2), Point(3, 4)]


def test_line_needs_both_endpoints():
    entity = normalize_entity({"type": "LINE", "start": {"x": 0, "y": 0}})
    assert isinstance(entity, LineEntity)
    assert entity.points() == []


def test_first_matching_alias_wins():
    record = {
        "type": "LINE",
        "start": {"x": 0, "y": 0},
        "startPoint": {"x": 99, "y": 99},
        "end": {"x": 5, "y": 0},
    }
    assert extract_points(record)[0] == Point(0, 0)


def test_circle_gives_bounding_square_corners():
    entity = normalize_entity({"type": "CIRCLE", "center": {"x": 5, "y": 5}, "radius": 2})
    assert isinstance(entity, CircleEntity)
    assert entity.points() == [Point(3, 3), Point(7, 7)]


def test_arc_uses_center_alias_and_radius_alias():
    entity = normalize_entity({"type": "ARC", "centerPoint": [0, 0], "r": 1})
    assert entity.type_name == "ARC"
    assert entity.points() == [Point(-1, -1), Point(1, 1)]


def test_circle_without_radius_has_no_points():
    assert extract_points({"type": "CIRCLE", "center": {"x": 5, "y": 5}, "radius": 0}) == []


def test_polyline_vertices_and_points_alias():
    square = [{"x": 0, "y": 0}, {"x": 1, "y": 0}, {"x": 1, "y": 1}]
    lw = normalize_entity({"type": "LWPOLYLINE", "vertices": square, "closed": True})
    plain = normalize_entity({"type": "POLYLINE", "points": square})
    assert isinstance(lw, PolylineEntity)
    assert lw.closed and lw.type_name == "LWPOLYLINE"
    assert not plain.closed
    assert lw.points() == plain.points() == [Point(0, 0), Point(1, 0), Point(1, 1)]


def test_polyline_skips_malformed_vertices():
    record = {"type": "POLYLINE", "vertices": [{"x": 0, "y": 0}, {"x": "a"}, None, [2, 3]]}
    assert extract_points(record) == [Point(0, 0), Point(2, 3)]


def test_point_text_and_insert():
    assert extract_points({"type": "POINT", "position": [3, 4]}) == [Point(3, 4)]
    assert extract_points({"type": "TEXT", "startPoint": {"x": 1, "y": 1}, "text": "Kitchen"}) == [Point(1, 1)]
    assert extract_points({"type": "MTEXT", "position": {"x": 2, "y": 2}}) == [Point(2, 2)]
    insert = normalize_entity({"type": "INSERT", "insertionPoint": {"x": 7, "y": 8}, "name": "CHAIR"})
    assert insert.block_name == "CHAIR"
    assert insert.points() == [Point(7, 8)]


def test_ellipse_corners():
    record = {
        "type": "ELLIPSE",
        "center": {"x": 0, "y": 0},
        "majorAxisEndpoint": {"x": 10, "y": 0},
        "axisRatio": 0.5,
    }
    assert extract_points(record) == [Point(0, 0), Point(-10, -5), Point(10, 5)]


def test_ellipse_ratio_defaults_to_one():
    record = {"type": "ELLIPSE", "center": {"x": 0, "y": 0}, "majorAxisEndpoint": {"x": 0, "y": 4}}
    assert extract_points(record) == [Point(0, 0), Point(-4, -4), Point(4, 4)]


def test_spline_control_points():
    record = {"type": "SPLINE", "controlPoints": [{"x": 0, "y": 0}, {"x": 5, "y": 5}, {"x": 10, "y": 0}]}
    assert len(extract_points(record)) == 3


def test_unknown_type_scans_generic_fields():
    entity = normalize_entity({"type": "HATCH", "position": [1, 2], "vertices": [[0, 0], [1, 1]]})
    assert isinstance(entity, UnknownEntity)
    assert entity.type_name == "HATCH"
    assert entity.points() == [Point(1, 2), Point(0, 0), Point(1, 1)]


@pytest.mark.parametrize(
    "record",
    [
        None,
        "LINE",
        {},
        {"type": "LINE", "start": "abc", "end": None},
        {"type": "CIRCLE", "center": {"x": "1", "y": 2}, "radius": 5},
        {"type": "LWPOLYLINE", "vertices": "nope"},
        {"type": "POINT", "position": [float("nan"), 1]},
    ],
)
def test_malformed_records_give_no_points(record):
    assert extract_points(record) == []


def test_extract_point_rejects_booleans():
    assert extract_point({"x": True, "y": 1}) is None
    assert extract_point([1, 2, 3]) == Point(1, 2)


def test_type_tag_is_case_insensitive():
    assert EntityType.from_tag("line") is EntityType.LINE
    assert EntityType.from_tag(None) is EntityType.UNKNOWN


def test_layer_and_handle():
    entity = normalize_entity({"type": "LINE", "layer": 7, "handle": 42})
    assert entity.layer == "0"
    assert entity.handle == "42"


def test_normalize_entities_keeps_raw_records():
    records = [{"type": "LINE", "start": [0, 0], "end": [1, 0]}, None]
    entities = normalize_entities(records)
    assert len(entities) == 2
    assert entities[0].raw is records[0]


def test_earlier_list_alias_wins_even_with_fewer_points():
    polyline = {
        "type": "POLYLINE",
        "vertices": [{"x": 0, "y": 0}],
        "points": [{"x": 0, "y": 0}, {"x": 10, "y": 0}, {"x": 10, "y": 10}],
    }
    spline = {
        "type": "SPLINE",
        "controlPoints": [[0, 0], [5, 5]],
        "fitPoints": [[0, 0], [1, 1], [2, 2], [3, 3]],
    }
    assert extract_points(polyline) == [Point(0, 0)]
    assert extract_points(spline) == [Point(0, 0), Point(5, 5)]


def test_empty_vertex_list_still_wins():
    record = {"type": "LWPOLYLINE", "vertices": [], "points": [[0, 0], [1, 0], [1, 1]]}
    assert extract_points(record) == []


def test_unknown_type_reads_flat_pair_as_one_point():
    # A bare [x, y] in a list field is a position, not a list of points.
    entity = normalize_entity({"type": "WIPEOUT", "vertices": [5, 6]})
    assert entity.points() == [Point(5, 6)]
