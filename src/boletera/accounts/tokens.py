"""Signed tokens for auto-login and API access.

Two kinds of token are issued with :class:`~django.core.signing.TimestampSigner`,
each with its own salt so one can never be used as the other:

* **login tokens** are handed to a buyer whose account was just created at
  checkout. They embed the user's ``last_login`` so they stop working as soon
  as the user logs in once, and expire after ``login_token_max_age``.
* **API tokens** authenticate ``Authorization: Bearer`` requests and expire
  after ``api_token_max_age``.
"""

import logging
from typing import TYPE_CHECKING, Any

from django.contrib.auth import get_user_model
from django.core import signing

from boletera.settings import get_config

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser
    from django.http import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)

LOGIN_SALT = "boletera.accounts.login"
API_SALT = "boletera.accounts.api"


def _login_state(user: "AbstractBaseUser") -> str:
    last_login = user.last_login
    return last_login.isoformat() if last_login else ""


def issue_login_token(user: "AbstractBaseUser") -> str:
    """Return a one-time token that logs ``user`` in."""
    return signing.TimestampSigner(salt=LOGIN_SALT).sign_object({"uid": user.pk, "ll": _login_state(user)})


def issue_api_token(user: "AbstractBaseUser") -> str:
    """Return a bearer token for API requests made as ``user``."""
    return signing.TimestampSigner(salt=API_SALT).sign_object({"uid": user.pk})


def _load_user(token: str, salt: str, max_age: int) -> tuple[Any, dict[str, Any]] | None:
    try:
        data = signing.TimestampSigner(salt=salt).unsign_object(token, max_age=max_age)
    except signing.SignatureExpired:
        logger.info("Rejected expired token (%s)", salt)
        return None
    except signing.BadSignature:
        return None
    user = get_user_model().objects.filter(pk=data.get("uid"), is_active=True).first()
    if user is None:
        return None
    return user, data


def resolve_login_token(token: str) -> Any | None:
    """Return the user for a valid, unused login token, else ``None``."""
    loaded = _load_user(token, LOGIN_SALT, get_config().login_token_max_age)
    if loaded is None:
        return None
    user, data = loaded
    if data.get("ll") != _login_state(user):
        logger.info("Rejected reused login token for user %s", user.pk)
        return None
    return user


def resolve_api_token(token: str) -> Any | None:
    """Return the user for a valid API token, else ``None``."""
    loaded = _load_user(token, API_SALT, get_config().api_token_max_age)
    return loaded[0] if loaded else None


class BearerTokenMiddleware:
    """Authenticate ``Authorization: Bearer <token>`` requests.

    Must come after ``AuthenticationMiddleware``. A request carrying a
    valid token runs as the token's user and skips CSRF enforcement, since
    bearer tokens are never sent by the browser on its own.
    """

    def __init__(self, get_response: Any) -> None:
        self.get_response = get_response

    def __call__(self, request: "HttpRequest") -> "HttpResponse":
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            user = resolve_api_token(token.strip())
            if user is not None:
                request.user = user
                request._dont_enforce_csrf_checks = True  # noqa: SLF001
        return self.get_response(request)
