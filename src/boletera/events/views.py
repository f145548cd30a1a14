"""Public catalog views for the events app.

Expose published events and their purchasable ticket types as JSON for the
checkout client.
"""

from typing import TYPE_CHECKING

from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import ensure_csrf_cookie

from boletera.api import JsonView
from boletera.events.models import Event, TicketType
from boletera.features import is_feature_enabled
from boletera.settings import get_config

if TYPE_CHECKING:
    from django.http import HttpRequest


def ticket_type_payload(ticket_type: TicketType) -> dict[str, object]:
    """Serialize a ticket type for the catalog and the selection UI."""
    return {
        "id": ticket_type.pk,
        "name": ticket_type.name,
        "slug": ticket_type.slug,
        "description": ticket_type.public_description or ticket_type.description,
        "features": ticket_type.features,
        "price": str(ticket_type.price),
        "currency": ticket_type.currency,
        "accessType": ticket_type.access_type,
        "availableDays": [day.isoformat() for day in ticket_type.selectable_days()],
        "remainingStock": ticket_type.remaining_stock,
        "maxPerOrder": ticket_type.max_per_order,
        "onSale": ticket_type.is_on_sale,
    }


def event_payload(event: Event) -> dict[str, object]:
    """Serialize the public fields of an event."""
    return {
        "id": event.pk,
        "name": event.name,
        "slug": event.slug,
        "startDate": event.start_date.isoformat(),
        "endDate": event.end_date.isoformat(),
        "location": event.location,
        "description": event.public_description or event.description,
        "featuredImageUrl": event.featured_image_url,
        "contactEmail": event.contact_email,
        "allowPreregistration": is_feature_enabled("preregistration", event=event),
        "preregistrationMessage": event.preregistration_message,
    }


def public_ticket_types(event: Event) -> list[TicketType]:
    """Return the active, non-courtesy ticket types of an event."""
    return list(event.ticket_types.filter(is_active=True, is_courtesy=False).select_related("event"))


class PublicEventListView(JsonView):
    """List published events, soonest first."""

    @method_decorator(ensure_csrf_cookie)
    def get(self, request: "HttpRequest") -> JsonResponse:  # noqa: ARG002
        """Return the published events."""
        events = Event.objects.filter(published=True).order_by("start_date")
        return JsonResponse({"events": [event_payload(event) for event in events]})


class PublicEventDetailView(JsonView):
    """Return one published event with its purchasable ticket types.

    The response also advertises the client-side debounce to use for the
    email existence lookup during checkout.
    """

    @method_decorator(ensure_csrf_cookie)
    def get(self, request: "HttpRequest", event_slug: str) -> JsonResponse:  # noqa: ARG002
        """Return the event, ticket types, and client hints."""
        event = get_object_or_404(Event, slug=event_slug, published=True)
        payload = event_payload(event)
        payload["ticketTypes"] = [ticket_type_payload(tt) for tt in public_ticket_types(event)]
        payload["eventDays"] = [day.isoformat() for day in event.event_days()]
        payload["emailLookupDebounceMs"] = get_config().email_lookup_debounce_ms
        return JsonResponse(payload)
