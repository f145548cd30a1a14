"""URL configuration for the public event catalog."""

from django.urls import path

from boletera.events.views import PublicEventDetailView, PublicEventListView

app_name = "events"

urlpatterns = [
    path("", PublicEventListView.as_view(), name="list"),
    path("<slug:event_slug>/", PublicEventDetailView.as_view(), name="detail"),
]
