from django.contrib import admin

from .models import DetectionRun, UploadedDrawing


@admin.register(UploadedDrawing)
class UploadedDrawingAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "original_file", "created_at")
    search_fields = ("name",)
    ordering = ("-created_at",)


@admin.register(DetectionRun)
class DetectionRunAdmin(admin.ModelAdmin):
    list_display = ("id", "drawing", "status", "preset", "room_count", "created_at", "updated_at")
    list_filter = ("status", "preset")
    ordering = ("-created_at",)
