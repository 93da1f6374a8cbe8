"""
Drawing preview with detected rooms.

ezdxf's drawing add-on renders the modelspace through matplotlib and every
detected room is overlaid as a highlighted bounding box labelled with its
sequence number.
"""

from pathlib import Path
from typing import Sequence
import logging

from matplotlib.figure import Figure
from matplotlib.patches import Rectangle
from ezdxf.addons.drawing import Frontend, RenderContext
from ezdxf.addons.drawing.matplotlib import MatplotlibBackend

from .dxf_loader import DrawingLoadError, read_document
from .room_result import Room


logger = logging.getLogger(__name__)

ENCLOSED_COLOR = "#10b981"
RECONSTRUCTED_COLOR = "#f97316"


def _save_placeholder(png_path: Path, message: str) -> None:
    fig = Figure(figsize=(8.0, 5.0))
    ax = fig.add_subplot(111)
    ax.text(0.5, 0.5, message, ha="center", va="center", fontsize=11, weight="bold")
    ax.axis("off")
    png_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(str(png_path), dpi=180, bbox_inches="tight", facecolor="#ffffff")


def draw_rooms(ax, rooms: Sequence[Room]) -> None:
    """Overlay room boxes and 1-based labels on ``ax``."""
    for number, room in enumerate(rooms, start=1):
        b = room.bounds
        color = ENCLOSED_COLOR if room.is_enclosed else RECONSTRUCTED_COLOR
        ax.add_patch(
            Rectangle(
                (b.min_x, b.min_y),
                b.width,
                b.height,
                facecolor=color,
                edgecolor=color,
                alpha=0.25,
                linewidth=1.2,
                zorder=15,
            )
        )
        center = room.center
        ax.text(
            center.x,
            center.y,
            str(number),
            color=color,
            fontsize=9,
            weight="bold",
            ha="center",
            va="center",
            zorder=16,
            bbox=dict(facecolor="#ffffff", edgecolor=color, boxstyle="round,pad=0.22", linewidth=0.8),
        )


def render_rooms_preview(dxf_path: Path, rooms: Sequence[Room], png_path: Path) -> bool:
    """
    Render ``dxf_path`` with ``rooms`` highlighted into ``png_path``.

    Returns True when a PNG was written, a placeholder image when ezdxf
    cannot read the drawing. Returns False instead of raising when no
    image could be made, so previews never break a detection run.
    """
    try:
        try:
            doc = read_document(dxf_path)
        except DrawingLoadError:
            logger.warning("Generating placeholder preview for %s", dxf_path)
            _save_placeholder(png_path, "Preview not available\n(Invalid DXF structure)")
            return True

        fig = Figure(figsize=(8.0, 5.0))
        ax = fig.add_axes([0, 0, 1, 1])
        Frontend(RenderContext(doc), MatplotlibBackend(ax)).draw_layout(doc.modelspace(), finalize=True)
        draw_rooms(ax, rooms)
        ax.set_aspect("equal", adjustable="datalim")
        ax.axis("off")

        png_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(str(png_path), dpi=240, bbox_inches="tight", facecolor="#ffffff")
        return True
    except Exception:
        logger.exception("Failed to generate preview for %s -> %s", dxf_path, png_path)
        return False
