from pathlib import Path

import ezdxf
import pytest
from django.core.files.uploadedfile import SimpleUploadedFile


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path / "media"
    settings.ROOM_DETECTION = {"preset": "strict"}
    return settings.MEDIA_ROOT


def build_sample_dxf(path: Path) -> Path:
    """
    Small plan: one 100 x 200 closed room outline on ROOMS, a round room of
    radius 50 on FURNITURE and a short wall stub on WALLS.
    """
    doc = ezdxf.new()
    for name in ("ROOMS", "FURNITURE", "WALLS"):
        doc.layers.add(name)
    msp = doc.modelspace()
    msp.add_lwpolyline(
        [(0, 0), (100, 0), (100, 200), (0, 200)],
        close=True,
        dxfattribs={"layer": "ROOMS"},
    )
    msp.add_circle((500, 500), 50, dxfattribs={"layer": "FURNITURE"})
    msp.add_line((1000, 0), (1010, 0), dxfattribs={"layer": "WALLS"})
    doc.saveas(str(path))
    return path


@pytest.fixture
def sample_dxf(tmp_path) -> Path:
    return build_sample_dxf(tmp_path / "plan.dxf")


@pytest.fixture
def make_drawing(sample_dxf, db):
    from rooms.models import UploadedDrawing

    def _make(name: str = "Ground floor") -> UploadedDrawing:
        upload = SimpleUploadedFile("plan.dxf", sample_dxf.read_bytes())
        return UploadedDrawing.objects.create(name=name, original_file=upload)

    return _make


@pytest.fixture
def no_preview(monkeypatch):
    """Skip matplotlib rendering in tests that only care about rooms."""
    monkeypatch.setattr("rooms.services.processor.render_rooms_preview", lambda *args, **kwargs: False)
