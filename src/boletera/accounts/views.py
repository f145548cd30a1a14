"""Authentication helper endpoints used by the checkout client."""

import logging
from typing import TYPE_CHECKING

from django.contrib.auth import login
from django.http import JsonResponse

from boletera.accounts.roles import user_roles
from boletera.accounts.services.provisioning import email_status, normalize_email
from boletera.accounts.tokens import issue_api_token, resolve_login_token
from boletera.api import JsonView, error_response, parse_json

if TYPE_CHECKING:
    from django.http import HttpRequest

logger = logging.getLogger(__name__)


class CheckEmailView(JsonView):
    """Report whether an email already has an account.

    The checkout client calls this while the buyer types (debounced) to
    switch off account creation for emails that are already registered.
    """

    def post(self, request: "HttpRequest") -> JsonResponse:
        """Return ``{"exists": bool, "verified": bool}``."""
        email = normalize_email(str(parse_json(request).get("email") or ""))
        if not email:
            return error_response("Email is required", 400)
        exists, verified = email_status(email)
        return JsonResponse({"exists": exists, "verified": verified})


class TokenLoginView(JsonView):
    """Exchange a one-time login token for a session and an API token."""

    def post(self, request: "HttpRequest") -> JsonResponse:
        """Log the token's user in.

        Returns:
            ``{"userId", "apiToken"}`` on success, 401 for an invalid,
            expired, or already used token.
        """
        token = str(parse_json(request).get("token") or "")
        user = resolve_login_token(token) if token else None
        if user is None:
            return error_response("Invalid or expired login token", 401)
        login(request, user, backend="django.contrib.auth.backends.ModelBackend")
        logger.info("User %s logged in with a checkout token", user.pk)
        return JsonResponse({"userId": user.pk, "apiToken": issue_api_token(user)})


class CurrentUserView(JsonView):
    """Describe the requesting user and their roles."""

    def get(self, request: "HttpRequest") -> JsonResponse:
        """Return the user's id, email, and roles, or 401 when anonymous."""
        user = request.user
        if not user.is_authenticated:
            return error_response("Authentication required", 401)
        roles = sorted(role.value for role in user_roles(user))
        return JsonResponse({"userId": user.pk, "email": user.email, "roles": roles})
