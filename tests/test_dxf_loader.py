import ezdxf
import pytest

from rooms.services.dxf_loader import (
    DrawingLoadError,
    convert_dwg_database,
    convert_dwg_to_dxf,
    drawing_dxf_path,
    entity_to_record,
    load_drawing,
    load_dxf,
)
from rooms.services.entities import normalize_entities
from rooms.services.layers import available_layers
from rooms.services.room_detector import detect_rooms


def test_load_dxf_records(sample_dxf):
    data = load_dxf(sample_dxf)

    by_type = {record["type"]: record for record in data.entities}
    assert set(by_type) == {"LWPOLYLINE", "CIRCLE", "LINE"}

    polyline = by_type["LWPOLYLINE"]
    assert polyline["layer"] == "ROOMS"
    assert polyline["closed"] is True
    assert polyline["vertices"][2] == {"x": 100.0, "y": 200.0}

    circle = by_type["CIRCLE"]
    assert circle["center"] == {"x": 500.0, "y": 500.0}
    assert circle["radius"] == 50.0

    assert by_type["LINE"]["end"] == {"x": 1010.0, "y": 0.0}
    assert all(record["handle"] for record in data.entities)

    assert {"ROOMS", "FURNITURE", "WALLS"} <= set(data.tables["layers"])
    assert "$ACADVER" in data.header


def test_loaded_drawing_feeds_detection(sample_dxf):
    entities = normalize_entities(load_drawing(sample_dxf).entities)

    assert available_layers(entities) == ["FURNITURE", "ROOMS", "WALLS"]
    rooms = detect_rooms(entities)
    assert [room.id for room in rooms] == ["closed_room_1", "circle_room_1"]
    assert rooms[0].area == pytest.approx(20000)


def test_other_entity_types(tmp_path):
    doc = ezdxf.new()
    chair = doc.blocks.new(name="CHAIR")
    chair.add_line((0, 0), (1, 0))
    msp = doc.modelspace()
    text = msp.add_text("Kitchen")
    text.dxf.insert = (5, 6)
    msp.add_point((1, 2))
    msp.add_blockref("CHAIR", (3, 4))
    msp.add_arc((0, 0), 10, 0, 90)
    msp.add_ellipse((0, 0), major_axis=(10, 0), ratio=0.5)
    msp.add_polyline2d([(0, 0), (10, 0), (10, 10)], close=True)
    path = tmp_path / "misc.dxf"
    doc.saveas(str(path))

    data = load_dxf(path)
    by_type = {record["type"]: record for record in data.entities}

    assert by_type["TEXT"]["startPoint"] == {"x": 5.0, "y": 6.0}
    assert by_type["TEXT"]["text"] == "Kitchen"
    assert by_type["POINT"]["position"] == {"x": 1.0, "y": 2.0}
    assert by_type["INSERT"]["name"] == "CHAIR"
    assert by_type["ARC"]["radius"] == 10.0
    assert by_type["ELLIPSE"]["axisRatio"] == 0.5
    assert by_type["POLYLINE"]["closed"] is True
    assert len(by_type["POLYLINE"]["vertices"]) == 3
    assert "CHAIR" in data.blocks
    assert len(data.blocks["CHAIR"]["entities"]) == 1


def test_entity_to_record_keeps_unhandled_types():
    doc = ezdxf.new()
    solid = doc.modelspace().add_solid([(0, 0), (1, 0), (1, 1)])
    record = entity_to_record(solid)
    assert record["type"] == "SOLID"
    assert record["layer"] == "0"


def test_missing_file(tmp_path):
    with pytest.raises(DrawingLoadError):
        load_dxf(tmp_path / "missing.dxf")


def test_dwg_needs_converter(tmp_path, monkeypatch):
    monkeypatch.delenv("DWG_CONVERTER_CMD", raising=False)
    dwg = tmp_path / "plan.dwg"
    dwg.write_bytes(b"AC1032")
    with pytest.raises(DrawingLoadError, match="DWG_CONVERTER_CMD"):
        drawing_dxf_path(dwg)


def test_dwg_is_converted_with_configured_command(sample_dxf, tmp_path, monkeypatch):
    folder = tmp_path / "floor plans"
    folder.mkdir()
    dwg = folder / "plan.dwg"
    dwg.write_bytes(sample_dxf.read_bytes())
    monkeypatch.setenv("DWG_CONVERTER_CMD", "cp {input} {output}")

    assert drawing_dxf_path(dwg) == folder / "plan.dxf"
    data = load_drawing(dwg)
    assert len(data.entities) == 3


@pytest.mark.parametrize(
    "command, message",
    [
        ("false", "exit status 1"),
        ("true", "wrote no plan.dxf"),
        ("dwg2dxf {source} {target}", "placeholders"),
    ],
)
def test_dwg_converter_failures(tmp_path, monkeypatch, command, message):
    dwg = tmp_path / "plan.dwg"
    dwg.write_bytes(b"AC1032")
    monkeypatch.setenv("DWG_CONVERTER_CMD", command)
    with pytest.raises(DrawingLoadError, match=message):
        convert_dwg_to_dxf(dwg, tmp_path / "plan.dxf")


def test_dxf_path_is_used_as_is(sample_dxf):
    assert drawing_dxf_path(sample_dxf) == sample_dxf


def test_convert_dwg_database():
    database = {
        "entities": [
            {
                "type": "LINE",
                "layerName": "WALLS",
                "startPoint": {"x": 0, "y": 0},
                "endPoint": {"x": 10, "y": 0},
            },
            {"type": "INSERT", "objectHandle": "1F", "insertionPoint": {"x": 3, "y": 4}},
            {"objectType": "CIRCLE", "layer": "ROOMS", "center": {"x": 0, "y": 0}, "radius": 50},
            "garbage",
        ],
        "header": {"$INSUNITS": 4},
    }

    data = convert_dwg_database(database)

    line, insert, circle = data.entities
    assert line["layer"] == "WALLS"
    assert line["handle"] == "dwg_0"
    assert line["start"] == {"x": 0, "y": 0}
    assert line["end"] == {"x": 10, "y": 0}
    assert insert["handle"] == "1F"
    assert insert["position"] == {"x": 3, "y": 4}
    assert circle["type"] == "CIRCLE"
    assert data.header == {"$INSUNITS": 4}

    assert len(detect_rooms(data.entities)) == 1


def test_convert_dwg_database_model_space():
    database = {"modelSpace": {"entities": [{"type": "POINT", "position": [1, 1]}]}}
    assert convert_dwg_database(database).entities[0]["layer"] == "0"
