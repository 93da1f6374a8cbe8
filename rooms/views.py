import json

from django.http import HttpRequest, HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.urls import reverse
from django.views import View

from .models import DetectionRun, UploadedDrawing
from .services.detection_config import PRESETS
from .services.dxf_loader import DrawingLoadError
from .services.geometry import fit_scale
from .services.processor import DetectionBusyError, drawing_overview, start_detection


class BadRequest(ValueError):
    pass


def _read_options(request: HttpRequest) -> tuple:
    """
    ``(visible_layers, preset)`` from a JSON body or form fields.

    A missing ``visible_layers`` means every layer is visible; an explicit
    empty JSON list hides them all.
    """
    if request.content_type == "application/json":
        try:
            payload = json.loads(request.body or b"{}")
        except ValueError:
            raise BadRequest("request body is not valid JSON")
        if not isinstance(payload, dict):
            raise BadRequest("request body must be a JSON object")
        visible_layers = payload.get("visible_layers")
        preset = payload.get("preset") or None
    else:
        visible_layers = request.POST.getlist("visible_layers") if "visible_layers" in request.POST else None
        preset = request.POST.get("preset") or None

    if visible_layers is not None:
        if not isinstance(visible_layers, list) or not all(isinstance(name, str) for name in visible_layers):
            raise BadRequest("visible_layers must be a list of layer names")
    if preset is not None and preset not in PRESETS:
        raise BadRequest(f"unknown preset {preset!r}; choose one of {', '.join(sorted(PRESETS))}")
    return visible_layers, preset


def upload_view(request: HttpRequest) -> HttpResponse:
    """
    Handles drawing upload and runs room detection on it.
    """

    if request.method == "POST":
        uploaded_file = request.FILES.get("file")
        name = request.POST.get("name") or (uploaded_file.name if uploaded_file else "")

        if not uploaded_file:
            return render(
                request,
                "rooms/upload.html",
                {"error": "Please choose a DXF or DWG file to upload.", "presets": sorted(PRESETS)},
            )

        try:
            _, preset = _read_options(request)
        except BadRequest as exc:
            return render(request, "rooms/upload.html", {"error": str(exc), "presets": sorted(PRESETS)})

        drawing = UploadedDrawing.objects.create(name=name, original_file=uploaded_file)

        # Synchronous for now; the run status already works as a busy flag
        # should this move to a background worker.
        start_detection(drawing, preset=preset)

        return redirect(reverse("rooms:drawing_detail", args=[drawing.pk]))

    recent_drawings = UploadedDrawing.objects.order_by("-created_at")[:5]

    return render(
        request,
        "rooms/upload.html",
        {"recent_drawings": recent_drawings, "presets": sorted(PRESETS)},
    )


def drawing_detail_view(request: HttpRequest, pk: int) -> HttpResponse:
    """
    Shows the latest run's status, log, rooms and preview.
    """

    drawing = get_object_or_404(UploadedDrawing, pk=pk)
    run = drawing.latest_run()

    context = {
        "drawing": drawing,
        "run": run,
        "rooms": run.rooms if run else [],
        "presets": sorted(PRESETS),
    }
    return render(request, "rooms/detail.html", context)


class DetectRoomsAPI(View):
    """
    JSON endpoint that runs room detection on an uploaded drawing.

    Accepts optional ``visible_layers`` and ``preset``. Answers 409 while
    another run for the same drawing is still RUNNING.
    """

    def post(self, request: HttpRequest, pk: int) -> JsonResponse:
        drawing = get_object_or_404(UploadedDrawing, pk=pk)

        try:
            visible_layers, preset = _read_options(request)
        except BadRequest as exc:
            return JsonResponse({"error": str(exc)}, status=400)

        try:
            run = start_detection(drawing, visible_layers=visible_layers, preset=preset)
        except DetectionBusyError as exc:
            return JsonResponse(
                {"error": "detection already running", "run_id": exc.run.pk},
                status=409,
            )

        return JsonResponse(
            {
                "drawing_id": drawing.pk,
                "run_id": run.pk,
                "status": run.status,
                "room_count": run.room_count,
                "rooms": run.rooms,
                "log": run.log,
            }
        )


def _as_positive_float(value: str | None) -> float | None:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    return v if v > 0 else None


def layers_view(request: HttpRequest, pk: int) -> JsonResponse:
    """
    Layer names and padded extents of a drawing.

    With ``?width=&height=`` (viewport size in pixels) the response also
    carries the scale that fits the drawing into that viewport.
    """
    drawing = get_object_or_404(UploadedDrawing, pk=pk)
    try:
        overview = drawing_overview(drawing)
    except DrawingLoadError as exc:
        return JsonResponse({"error": str(exc)}, status=400)

    width = _as_positive_float(request.GET.get("width"))
    height = _as_positive_float(request.GET.get("height"))
    scale = fit_scale(overview.bounds, width, height) if width and height else None

    return JsonResponse(
        {
            "drawing_id": drawing.pk,
            "layers": overview.layers,
            "bounds": overview.bounds.to_dict(),
            "center": {"x": overview.bounds.center.x, "y": overview.bounds.center.y},
            "scale": scale,
        }
    )


def run_rooms_view(request: HttpRequest, pk: int) -> JsonResponse:
    run = get_object_or_404(DetectionRun, pk=pk)
    return JsonResponse(
        {
            "run_id": run.pk,
            "drawing_id": run.drawing_id,
            "status": run.status,
            "preset": run.preset,
            "visible_layers": run.visible_layers,
            "room_count": run.room_count,
            "rooms": run.rooms,
            "preview_url": run.preview.url if run.preview else None,
        }
    )
