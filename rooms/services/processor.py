from pathlib import Path
from typing import Iterable, NamedTuple, Optional
from datetime import timedelta
import logging
import tempfile

from django.conf import settings
from django.core.files import File
from django.db import transaction
from django.utils import timezone

from ..models import DetectionRun, UploadedDrawing
from .detection_config import DetectionConfig
from .dxf_loader import DrawingLoadError, drawing_dxf_path, load_drawing, load_dxf
from .entities import normalize_entities
from .geometry import Bounds, drawing_bounds
from .layers import available_layers
from .preview import render_rooms_preview
from .room_detector import RoomDetector
from .room_result import room_to_dict


logger = logging.getLogger(__name__)

NO_ROOMS_MESSAGE = "No rooms found."

# Seconds after which a RUNNING run without progress no longer blocks the
# drawing. Overridable through settings.ROOM_DETECTION_RUN_TIMEOUT.
DEFAULT_RUN_TIMEOUT = 600


class DetectionBusyError(Exception):
    """A detection run is already in progress for the drawing."""

    def __init__(self, run: DetectionRun):
        super().__init__(f"Detection run {run.pk} is still running for drawing {run.drawing_id}")
        self.run = run


class DrawingOverview(NamedTuple):
    layers: list[str]
    bounds: Bounds


def drawing_overview(drawing: UploadedDrawing) -> DrawingOverview:
    """Sorted, normalized layer names and padded extents of the drawing."""
    data = load_drawing(Path(drawing.original_file.path))
    entities = normalize_entities(data.entities)
    return DrawingOverview(available_layers(entities), drawing_bounds(entities))


def _expire_stale_runs(drawing: UploadedDrawing) -> int:
    """Fail RUNNING runs of ``drawing`` whose worker is presumed dead."""
    timeout = getattr(settings, "ROOM_DETECTION_RUN_TIMEOUT", DEFAULT_RUN_TIMEOUT)
    cutoff = timezone.now() - timedelta(seconds=timeout)
    stale = drawing.detection_runs.filter(status=DetectionRun.STATUS_RUNNING, updated_at__lt=cutoff)
    expired = stale.update(
        status=DetectionRun.STATUS_FAILED,
        rooms=[],
        room_count=0,
        log=f"Processing did not finish within {timeout}s.\n{NO_ROOMS_MESSAGE}",
    )
    if expired:
        logger.warning("Expired %d stale detection run(s) for drawing %s", expired, drawing.pk)
    return expired


def start_detection(
    drawing: UploadedDrawing,
    visible_layers: Optional[Iterable[str]] = None,
    preset: Optional[str] = None,
    render_preview: bool = True,
) -> DetectionRun:
    """
    Create a run for ``drawing`` and process it synchronously.

    Raises DetectionBusyError when the drawing already has a RUNNING run;
    the request is refused, not queued. Runs stuck in RUNNING for longer
    than the run timeout are failed first and do not block.
    """
    layers = list(visible_layers) if visible_layers is not None else None

    with transaction.atomic():
        # Lock the drawing row so two requests cannot both pass the check.
        UploadedDrawing.objects.select_for_update().filter(pk=drawing.pk).first()
        _expire_stale_runs(drawing)
        running = drawing.detection_runs.filter(status=DetectionRun.STATUS_RUNNING).first()
        if running is not None:
            raise DetectionBusyError(running)
        run = DetectionRun.objects.create(
            drawing=drawing,
            preset=preset or "",
            visible_layers=layers,
            status=DetectionRun.STATUS_RUNNING,
        )

    return process_drawing(drawing, run, render_preview=render_preview)


def _failed(run: DetectionRun, message: str) -> DetectionRun:
    run.status = DetectionRun.STATUS_FAILED
    run.rooms = []
    run.room_count = 0
    run.log = f"{message}\n{NO_ROOMS_MESSAGE}"
    run.save()
    return run


def _save_preview(run: DetectionRun, dxf_path: Path, rooms) -> bool:
    with tempfile.TemporaryDirectory() as tmp:
        png_path = Path(tmp) / f"drawing_{run.drawing_id}_run_{run.pk}.png"
        if not render_rooms_preview(dxf_path, rooms, png_path):
            return False
        with png_path.open("rb") as fh:
            run.preview.save(png_path.name, File(fh), save=False)
    return True


def process_drawing(
    drawing: UploadedDrawing,
    run: DetectionRun,
    render_preview: bool = True,
) -> DetectionRun:
    """
    Detect rooms in ``drawing`` and store them on ``run``.

    The run always ends DONE or FAILED. Rooms are written in one go at the
    end; a failure anywhere leaves an empty room list and a log that says
    why.

    Args:
        drawing: Uploaded DXF/DWG drawing
        run: DetectionRun carrying preset and visible layers
        render_preview: Also render a PNG with the rooms highlighted

    Returns:
        Updated DetectionRun instance
    """

    try:
        run.status = DetectionRun.STATUS_RUNNING
        run.log = "Starting room detection...\n"
        run.save(update_fields=["status", "log", "updated_at"])

        input_path = Path(drawing.original_file.path)

        try:
            dxf_path = drawing_dxf_path(input_path)
            data = load_dxf(dxf_path)
        except DrawingLoadError as load_exc:
            logger.warning("Drawing %s could not be loaded: %s", drawing.pk, load_exc)
            return _failed(
                run,
                "Processing failed: drawing could not be loaded.\n"
                f"{load_exc}\n"
                "Hint: upload a valid DXF file, or configure DWG_CONVERTER_CMD\n"
                "for DWG uploads, for example:\n"
                '  DWG_CONVERTER_CMD="dwg2dxf {input} {output}"',
            )

        config = DetectionConfig.from_settings(run.preset or None)
        entities = normalize_entities(data.entities)
        result = RoomDetector(config).detect(entities, run.visible_layers)

        if not result.ok:
            return _failed(run, f"Room detection failed: {result.error}")

        run.rooms = [room_to_dict(room, i) for i, room in enumerate(result.rooms)]
        run.room_count = len(result.rooms)

        preview_line = "Preview: skipped"
        if render_preview:
            preview_ok = _save_preview(run, dxf_path, result.rooms)
            preview_line = "Preview: generated" if preview_ok else "Preview: not available"

        if run.visible_layers is None:
            layers_line = "Visible layers: all"
        else:
            layers_line = f"Visible layers: {', '.join(run.visible_layers) or 'none'}"

        log_lines = [
            "Room detection completed.",
            "",
            f"Preset: {run.preset or 'default'}",
            layers_line,
            f"Entities loaded: {len(entities)}",
            f"Entities analyzed: {result.visible_entities}",
            "",
            f"Rooms detected: {run.room_count}",
            f"Closed polygons: {result.polygon_rooms}",
            f"Reconstructed rectangles: {result.rectangle_rooms}"
            + ("" if result.rectangle_stage_ran else " (stage skipped)"),
            f"Circular rooms: {result.circle_rooms}",
            preview_line,
        ]
        if not result.rooms:
            log_lines.append(NO_ROOMS_MESSAGE)

        run.status = DetectionRun.STATUS_DONE
        run.log = "\n".join(log_lines)
        run.save()

    except Exception as exc:  # noqa: BLE001
        logger.exception("Room detection run %s failed", run.pk)
        return _failed(run, f"Processing failed: {exc}")
    finally:
        # Interrupted workers must not leave the drawing blocked.
        if run.status == DetectionRun.STATUS_RUNNING:
            _failed(run, "Processing was interrupted.")

    return run
