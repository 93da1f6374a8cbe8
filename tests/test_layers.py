import pytest

from rooms.services.entities import normalize_entities
from rooms.services.layers import available_layers, filter_visible, normalize_layer_name
from rooms.services.room_detector import detect_rooms


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("���", "Layer"),
        ("A__��__B", "A_Layer_B"),
        ("  �_  ", "Layer_"),
        ("WALLS", "WALLS"),
        ("Wände", "Wände"),
        (None, "0"),
        (3, "0"),
    ],
)
def test_normalize_layer_name(raw, expected):
    assert normalize_layer_name(raw) == expected


def _entities():
    return normalize_entities(
        [
            {"type": "LINE", "layer": "WALLS", "start": [0, 0], "end": [1, 0]},
            {"type": "CIRCLE", "layer": "FURNITURE", "center": [0, 0], "radius": 1},
            {"type": "POINT", "layer": "��", "position": [0, 0]},
            {"type": "POINT", "position": [0, 0]},
        ]
    )


def test_available_layers_are_sorted_and_normalized():
    assert available_layers(_entities()) == ["0", "FURNITURE", "Layer", "WALLS"]


def test_none_means_everything_visible():
    assert len(filter_visible(_entities(), None)) == 4


def test_empty_selection_hides_everything():
    assert filter_visible(_entities(), []) == []


def test_filter_matches_normalized_names():
    visible = filter_visible(_entities(), ["Layer", "WALLS"])
    assert sorted(e.type_name for e in visible) == ["LINE", "POINT"]


@pytest.mark.parametrize("requested", ["A__ROOMS", "A_ROOMS", "  A__ROOMS "])
def test_raw_layer_names_select_the_same_layer(requested):
    entities = normalize_entities(
        [
            {
                "type": "LWPOLYLINE",
                "layer": "A__ROOMS",
                "closed": True,
                "vertices": [[0, 0], [100, 0], [100, 200], [0, 200]],
            }
        ]
    )
    assert len(filter_visible(entities, [requested])) == 1
    assert len(detect_rooms(entities, visible_layers=[requested])) == 1


def test_raw_garbled_name_selects_its_layer():
    entities = _entities()
    visible = filter_visible(entities, ["��"])
    assert [e.type_name for e in visible] == ["POINT"]
