"""URL configuration for the example ticketing server."""

from django.contrib import admin
from django.urls import include, path
from django.views.generic import RedirectView

urlpatterns = [
    path("", RedirectView.as_view(pattern_name="events:list"), name="root"),
    path("admin/", admin.site.urls),
    path("", include("boletera.urls")),
]
