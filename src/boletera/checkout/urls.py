"""URL configuration for the checkout API."""

from django.urls import path

from boletera.checkout.views import (
    AltchaChallengeView,
    CaptureOrderView,
    CreateOrderView,
    FlowView,
    PreregistrationView,
)

app_name = "checkout"

urlpatterns = [
    path("events/<slug:event_slug>/flow/", FlowView.as_view(), name="flow"),
    path("payments/create-order", CreateOrderView.as_view(), name="create-order"),
    path("payments/capture", CaptureOrderView.as_view(), name="capture"),
    path("altcha", AltchaChallengeView.as_view(), name="altcha"),
    path("preregistrations", PreregistrationView.as_view(), name="preregistrations"),
]
