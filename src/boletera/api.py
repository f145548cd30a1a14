"""Shared helpers for the JSON API views.

Every endpoint answers with JSON. Errors are always shaped as
``{"error": "...", "details": ...}`` so clients can show a single message
and optionally inspect the details.
"""

import json
import logging
from typing import TYPE_CHECKING, Any

from django.core.exceptions import PermissionDenied, ValidationError
from django.http import Http404, JsonResponse
from django.views import View

if TYPE_CHECKING:
    from django.http import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)


class JsonBodyError(ValueError):
    """Raised when a request body is not a JSON object."""


def error_response(message: str, status: int, details: object = None) -> JsonResponse:
    """Build a JSON error response.

    Args:
        message: Human readable error message.
        status: HTTP status code.
        details: Optional extra payload for the client.

    Returns:
        A ``JsonResponse`` with ``error`` and, when given, ``details``.
    """
    body: dict[str, object] = {"error": message}
    if details is not None:
        body["details"] = details
    return JsonResponse(body, status=status)


def validation_message(exc: ValidationError) -> str:
    """Flatten a ``ValidationError`` into a single display string."""
    return "; ".join(str(message) for message in exc.messages)


def parse_json(request: "HttpRequest") -> dict[str, Any]:
    """Decode the request body as a JSON object.

    Args:
        request: The incoming HTTP request.

    Returns:
        The decoded object. An empty body decodes to ``{}``.

    Raises:
        JsonBodyError: If the body is not valid JSON or not an object.
    """
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        msg = "Request body must be valid JSON"
        raise JsonBodyError(msg) from exc
    if not isinstance(data, dict):
        msg = "Request body must be a JSON object"
        raise JsonBodyError(msg)
    return data


class JsonView(View):
    """Base class for JSON endpoints.

    Maps the common exceptions raised by services to JSON error bodies:
    ``ValidationError`` and malformed bodies become 400, ``PermissionDenied``
    becomes 403 and ``Http404`` becomes 404.
    """

    def dispatch(self, request: "HttpRequest", *args: Any, **kwargs: Any) -> "HttpResponse":
        """Dispatch the request and translate service exceptions."""
        try:
            return super().dispatch(request, *args, **kwargs)
        except JsonBodyError as exc:
            return error_response(str(exc), 400)
        except ValidationError as exc:
            return error_response(validation_message(exc), 400)
        except PermissionDenied as exc:
            return error_response(str(exc) or "Forbidden", 403)
        except Http404 as exc:
            return error_response(str(exc) or "Not found", 404)
