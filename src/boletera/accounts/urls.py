"""URL configuration for the authentication helper endpoints."""

from django.urls import path

from boletera.accounts.views import CheckEmailView, CurrentUserView, TokenLoginView

app_name = "accounts"

urlpatterns = [
    path("check-email", CheckEmailView.as_view(), name="check-email"),
    path("token-login", TokenLoginView.as_view(), name="token-login"),
    path("me", CurrentUserView.as_view(), name="me"),
]
