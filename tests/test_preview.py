from rooms.services.entities import normalize_entities
from rooms.services.dxf_loader import load_dxf
from rooms.services.preview import render_rooms_preview
from rooms.services.room_detector import detect_rooms


def test_render_preview(sample_dxf, tmp_path):
    rooms = detect_rooms(normalize_entities(load_dxf(sample_dxf).entities))
    png = tmp_path / "out" / "preview.png"

    assert render_rooms_preview(sample_dxf, rooms, png)
    assert png.read_bytes().startswith(b"\x89PNG")


def test_unreadable_drawing_gets_placeholder(tmp_path):
    png = tmp_path / "preview.png"
    assert render_rooms_preview(tmp_path / "missing.dxf", [], png) is True
    assert png.read_bytes().startswith(b"\x89PNG")
