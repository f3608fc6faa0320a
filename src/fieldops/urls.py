"""URL configuration for the FieldOps project."""

from django.contrib import admin
from django.urls import include, path

from fieldops.views import health_check

urlpatterns = [
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/tickets/", include("tickets.urls")),
    path("api/", include("assets.urls")),
]
