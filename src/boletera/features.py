"""Feature toggle utilities for boletera.

Provides functions to check whether specific features are enabled
in the current configuration, and a mixin for views that require
specific features.

Features are resolved at two levels:

1. **Settings defaults** -- ``BOLETERA["features"]`` in Django settings.
2. **Per-event switches** -- an ``Event`` that disallows preregistration
   turns the ``preregistration`` feature off for that event only.
"""

from typing import TYPE_CHECKING

from django.http import Http404, HttpRequest, HttpResponse

from boletera.settings import get_config

if TYPE_CHECKING:
    from boletera.events.models import Event

_EVENT_SWITCHES = {"preregistration": "allow_preregistration"}


def is_feature_enabled(feature: str, event: "Event | None" = None) -> bool:
    """Check if a feature is enabled, with optional per-event switch.

    Args:
        feature: Feature name (e.g. ``"purchase"``, ``"support"``).
        event: Optional event. When given, event-level switches such as
            ``allow_preregistration`` are consulted after the settings
            default.

    Returns:
        ``True`` if the feature is enabled, ``False`` otherwise.

    Raises:
        ValueError: If the feature name is not recognized.
    """
    config = get_config().features
    attr = f"{feature}_enabled"

    if not hasattr(config, attr):
        msg = f"Unknown feature: {feature!r}"
        raise ValueError(msg)

    if not getattr(config, attr):
        return False

    switch = _EVENT_SWITCHES.get(feature)
    if event is not None and switch is not None:
        return bool(getattr(event, switch, True))
    return True


def require_feature(feature: str, event: "Event | None" = None) -> None:
    """Raise :class:`~django.http.Http404` if a feature is disabled.

    Args:
        feature: Feature name to check.
        event: Optional event for per-event switches.

    Raises:
        Http404: If the feature is disabled.
    """
    if not is_feature_enabled(feature, event=event):
        raise Http404(f"Feature {feature!r} is not enabled")


class FeatureRequiredMixin:
    """View mixin that returns 404 when a required feature is disabled.

    Set ``required_feature`` on the view class to the feature name or a
    tuple of feature names (all must be enabled). Event-level switches are
    not applied here because most API views resolve their event from the
    request body; services check those themselves.

    Example::

        class CaptureOrderView(FeatureRequiredMixin, JsonView):
            required_feature = "purchase"
    """

    required_feature: str | tuple[str, ...] = ""

    def dispatch(self, request: HttpRequest, *args: object, **kwargs: object) -> HttpResponse:
        """Check the feature toggle(s) before dispatching the view."""
        features = self.required_feature
        if isinstance(features, str):
            features = (features,) if features else ()
        for feature in features:
            require_feature(feature)
        return super().dispatch(request, *args, **kwargs)  # type: ignore[misc]
