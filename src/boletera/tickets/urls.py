"""URL configuration for ticket and scanner endpoints."""

from django.urls import path

from boletera.tickets.views import (
    ManualCheckInView,
    MyTicketsView,
    OrderTicketsView,
    TicketDetailView,
    ValidateTicketView,
)

app_name = "tickets"

urlpatterns = [
    path("tickets/mine", MyTicketsView.as_view(), name="mine"),
    path("tickets/order/<str:reference>", OrderTicketsView.as_view(), name="order"),
    path("tickets/<int:ticket_id>", TicketDetailView.as_view(), name="detail"),
    path("validate/<str:qr_id>", ValidateTicketView.as_view(), name="validate"),
    path("scanner/manual-checkin", ManualCheckInView.as_view(), name="manual-checkin"),
]
