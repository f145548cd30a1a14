"""URL configuration for the support desk API."""

from django.urls import path

from boletera.support import views

app_name = "support"

urlpatterns = [
    path("orphan-tickets", views.OrphanTicketListView.as_view(), name="orphan-list"),
    path("orphan-tickets/select", views.SelectCandidateView.as_view(), name="orphan-select"),
    path("users/search", views.UserSearchView.as_view(), name="user-search"),
    path("link-ticket", views.LinkTicketView.as_view(), name="link-ticket"),
    path("courtesy-tickets", views.CourtesyTicketsView.as_view(), name="courtesy-tickets"),
    path("courtesy-orders/<str:reference>", views.CourtesyOrderView.as_view(), name="courtesy-order"),
]
