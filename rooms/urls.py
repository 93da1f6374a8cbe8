from django.urls import path

from . import views

app_name = "rooms"

urlpatterns = [
    path("", views.upload_view, name="upload"),
    path("upload/", views.upload_view, name="upload_explicit"),
    path("drawings/<int:pk>/", views.drawing_detail_view, name="drawing_detail"),
    path("drawings/<int:pk>/detect/", views.DetectRoomsAPI.as_view(), name="detect_rooms"),
    path("drawings/<int:pk>/layers/", views.layers_view, name="drawing_layers"),
    path("runs/<int:pk>/rooms/", views.run_rooms_view, name="run_rooms"),
]
