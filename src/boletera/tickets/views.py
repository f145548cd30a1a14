"""JSON views for tickets: owner access, attendee setup, and door scanning."""

import logging
from datetime import date
from itertools import groupby
from typing import TYPE_CHECKING, Any

from django.contrib.auth.mixins import LoginRequiredMixin
from django.core.exceptions import PermissionDenied, ValidationError
from django.http import JsonResponse
from django.shortcuts import get_object_or_404

from boletera.accounts.roles import SCANNER_ROLES, RoleRequiredMixin, has_any_role
from boletera.api import JsonView, error_response, parse_json
from boletera.checkout.models import Order
from boletera.features import FeatureRequiredMixin
from boletera.tickets.models import Ticket
from boletera.tickets.services.checkin import CheckInService
from boletera.tickets.services.issuance import configure_ticket

if TYPE_CHECKING:
    from django.http import HttpRequest

logger = logging.getLogger(__name__)


def ticket_payload(ticket: Ticket) -> dict[str, Any]:
    """Serialize a ticket for owners and staff."""
    return {
        "id": ticket.pk,
        "qrId": ticket.qr_id,
        "eventId": ticket.event_id,
        "eventName": ticket.event.name,
        "orderReference": ticket.order.reference,
        "ticketTypeId": ticket.ticket_type_id,
        "ticketTypeName": ticket.ticket_type_name,
        "status": ticket.status,
        "userId": ticket.user_id,
        "customerName": ticket.customer_name,
        "customerEmail": ticket.customer_email,
        "amountPaid": str(ticket.amount_paid),
        "currency": ticket.currency,
        "authorizedDays": ticket.authorized_days,
        "usedDays": ticket.used_days,
        "attendeeName": ticket.attendee_name,
        "attendeeEmail": ticket.attendee_email,
        "attendeePhone": ticket.attendee_phone,
        "specialRequirements": ticket.special_requirements,
        "isCourtesy": ticket.is_courtesy,
        "createdAt": ticket.created_at.isoformat(),
    }


def _tickets() -> Any:
    return Ticket.objects.select_related("event", "order")


class _AuthenticatedJsonView(LoginRequiredMixin, JsonView):
    """JSON view that answers 401 instead of redirecting to a login page."""

    def handle_no_permission(self) -> JsonResponse:
        return error_response("Authentication required", 401)


class TicketDetailView(_AuthenticatedJsonView):
    """Read a ticket (owner or staff) or set its attendee (owner)."""

    def get(self, request: "HttpRequest", ticket_id: int) -> JsonResponse:
        """Return one ticket."""
        ticket = get_object_or_404(_tickets(), pk=ticket_id)
        if ticket.user_id != request.user.pk and not has_any_role(request.user, SCANNER_ROLES):
            raise PermissionDenied("You can only view your own tickets")
        return JsonResponse(ticket_payload(ticket))

    def put(self, request: "HttpRequest", ticket_id: int) -> JsonResponse:
        """Configure the attendee of a ticket owned by the requester."""
        ticket = get_object_or_404(Ticket, pk=ticket_id)
        updated = configure_ticket(ticket, request.user, parse_json(request))
        return JsonResponse(ticket_payload(_tickets().get(pk=updated.pk)))


class OrderTicketsView(_AuthenticatedJsonView):
    """List the tickets of one order for its owner or staff."""

    def get(self, request: "HttpRequest", reference: str) -> JsonResponse:
        """Return ``{"order", "tickets"}``."""
        order = get_object_or_404(Order.objects.select_related("event"), reference=reference)
        tickets = list(_tickets().filter(order=order).order_by("pk"))
        owns = order.user_id == request.user.pk or any(t.user_id == request.user.pk for t in tickets)
        if not owns and not has_any_role(request.user, SCANNER_ROLES):
            raise PermissionDenied("You can only view your own orders")
        return JsonResponse(
            {
                "order": {
                    "reference": order.reference,
                    "eventName": order.event.name,
                    "status": order.status,
                    "total": str(order.total),
                    "currency": order.currency,
                },
                "tickets": [ticket_payload(ticket) for ticket in tickets],
            },
        )


class MyTicketsView(_AuthenticatedJsonView):
    """List the requester's tickets grouped by event."""

    def get(self, request: "HttpRequest") -> JsonResponse:
        """Return ``{"events": [{"eventId", "eventName", "tickets"}]}``."""
        tickets = _tickets().filter(user=request.user).order_by("event__start_date", "event_id", "pk")
        events = [
            {
                "eventId": event_id,
                "eventName": group[0].event.name,
                "tickets": [ticket_payload(ticket) for ticket in group],
            }
            for event_id, group in ((key, list(items)) for key, items in groupby(tickets, key=lambda t: t.event_id))
        ]
        return JsonResponse({"events": events})


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------


def _checkin_response(checkin: Any, message: str) -> JsonResponse:
    ticket = checkin.ticket
    return JsonResponse(
        {
            "success": True,
            "message": message,
            "ticket": ticket_payload(_tickets().get(pk=ticket.pk)),
            "checkin": {
                "id": checkin.pk,
                "day": checkin.day.isoformat(),
                "createdAt": checkin.created_at.isoformat(),
                "undoneAt": checkin.undone_at.isoformat() if checkin.undone_at else None,
            },
        },
    )


class ValidateTicketView(FeatureRequiredMixin, RoleRequiredMixin, JsonView):
    """Inspect a scanned QR code, check it in, or undo the last check-in."""

    required_feature = "scanner"
    required_roles = SCANNER_ROLES

    def get(self, request: "HttpRequest", qr_id: str) -> JsonResponse:  # noqa: ARG002
        """Return the scanned ticket."""
        return JsonResponse({"ticket": ticket_payload(get_object_or_404(_tickets(), qr_id=qr_id))})

    def post(self, request: "HttpRequest", qr_id: str) -> JsonResponse:
        """Apply ``{"action": "checkin" | "undo"}`` to the scanned ticket."""
        ticket = get_object_or_404(Ticket, qr_id=qr_id)
        data = parse_json(request)
        action = data.get("action", "checkin")
        if action == "checkin":
            checkin = CheckInService.check_in(
                ticket,
                day=_parse_day(data.get("day")),
                performed_by=request.user,
                notes=str(data.get("notes") or ""),
            )
            return _checkin_response(checkin, f"Check-in successful for {checkin.day.isoformat()}")
        if action == "undo":
            checkin = CheckInService.undo(ticket, performed_by=request.user)
            return _checkin_response(checkin, f"Check-in for {checkin.day.isoformat()} undone")
        return error_response(f"Unknown action: {action!r}", 400)


class ManualCheckInView(FeatureRequiredMixin, RoleRequiredMixin, JsonView):
    """Check in a ticket looked up by id when its QR code cannot be scanned."""

    required_feature = "scanner"
    required_roles = SCANNER_ROLES

    def post(self, request: "HttpRequest") -> JsonResponse:
        """Check in ``ticketId`` for ``eventId`` on ``selectedDay`` (optional)."""
        data = parse_json(request)
        if not data.get("ticketId") or not data.get("eventId"):
            return error_response("ticketId and eventId are required", 400)
        if not str(data["ticketId"]).isdigit():
            return error_response("Invalid ticketId", 400)
        ticket = get_object_or_404(Ticket, pk=int(data["ticketId"]))
        if str(ticket.event_id) != str(data["eventId"]):
            return error_response("Ticket does not belong to this event", 400)
        checkin = CheckInService.check_in(
            ticket,
            day=_parse_day(data.get("selectedDay")),
            performed_by=request.user,
            notes=str(data.get("notes") or ""),
        )
        return _checkin_response(checkin, f"Check-in successful for {checkin.day.isoformat()}")


def _parse_day(raw: object) -> date | None:
    if raw in (None, ""):
        return None
    try:
        return date.fromisoformat(str(raw))
    except ValueError as exc:
        raise ValidationError("Day must be an ISO date (YYYY-MM-DD).") from exc
