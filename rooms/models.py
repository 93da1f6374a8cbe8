from django.db import models


class UploadedDrawing(models.Model):
    """
    Stores an uploaded CAD drawing (DXF, or DWG converted to DXF on load).
    """

    name = models.CharField(max_length=255, blank=True)
    original_file = models.FileField(upload_to="drawings/")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.name or f"Drawing {self.pk}"

    def latest_run(self):
        return self.detection_runs.order_by("-created_at", "-pk").first()


class DetectionRun(models.Model):
    """
    One room detection request and its result.

    The status doubles as the busy flag: while a run is RUNNING no other run
    is started for the same drawing. Rooms are replaced wholesale by each
    new run and are never partially filled.
    """

    STATUS_PENDING = "PENDING"
    STATUS_RUNNING = "RUNNING"
    STATUS_DONE = "DONE"
    STATUS_FAILED = "FAILED"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_RUNNING, "Running"),
        (STATUS_DONE, "Done"),
        (STATUS_FAILED, "Failed"),
    ]

    drawing = models.ForeignKey(
        UploadedDrawing,
        on_delete=models.CASCADE,
        related_name="detection_runs",
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING
    )
    preset = models.CharField(max_length=32, blank=True)
    # None means every layer was visible.
    visible_layers = models.JSONField(null=True, blank=True)
    rooms = models.JSONField(default=list, blank=True)
    room_count = models.PositiveIntegerField(default=0)
    preview = models.FileField(upload_to="previews/", blank=True, null=True)
    log = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"Detection {self.pk} for {self.drawing}"
