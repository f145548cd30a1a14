"""JSON views for the support desk: orphan reconciliation and courtesy tickets."""

import logging
from typing import TYPE_CHECKING, Any

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.shortcuts import get_object_or_404

from boletera.accounts.roles import SUPPORT_ROLES, Role, RoleRequiredMixin
from boletera.api import JsonView, error_response, parse_json
from boletera.checkout.models import Order
from boletera.events.models import Event, TicketType
from boletera.features import FeatureRequiredMixin
from boletera.support.reconciliation import ReconciliationBoard
from boletera.support.services.courtesy import CourtesyRequest, CourtesyService
from boletera.support.services.orphans import OrphanService, orphan_tickets
from boletera.tickets.models import Ticket
from boletera.tickets.views import ticket_payload

if TYPE_CHECKING:
    from django.http import HttpRequest

logger = logging.getLogger(__name__)


def user_payload(user: Any) -> dict[str, Any]:
    """Serialize a candidate account."""
    return {
        "id": user.pk,
        "email": user.email,
        "name": user.get_full_name(),
        "dateJoined": user.date_joined.isoformat(),
    }


def orphan_payload(ticket: Ticket) -> dict[str, Any]:
    """Serialize an orphan ticket with its recovery state."""
    recovery = getattr(ticket, "recovery", None)
    return {
        **ticket_payload(ticket),
        "recovery": {
            "status": recovery.recovery_status,
            "targetEmail": recovery.target_email,
            "accountRequested": recovery.account_requested,
            "failureReason": recovery.failure_reason,
            "createdAt": recovery.created_at.isoformat(),
        }
        if recovery is not None
        else None,
    }


def _int(value: object, name: str) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"A valid {name} is required.") from exc


class _SupportView(FeatureRequiredMixin, RoleRequiredMixin, JsonView):
    required_feature = "support"
    required_roles = SUPPORT_ROLES


# ---------------------------------------------------------------------------
# Orphan reconciliation
# ---------------------------------------------------------------------------


class OrphanTicketListView(_SupportView):
    """List orphan tickets with recovery statistics."""

    required_roles = (Role.ADMIN,)

    def get(self, request: "HttpRequest") -> JsonResponse:
        """Return ``{"tickets", "stats", "board"}``."""
        tickets = OrphanService.list_orphans()
        return JsonResponse(
            {
                "tickets": [orphan_payload(ticket) for ticket in tickets],
                "stats": OrphanService.stats(),
                "board": ReconciliationBoard(request.session).snapshot(),
            },
        )


class UserSearchView(_SupportView):
    """Search accounts to link to an orphan ticket.

    ``ticket`` and ``seq`` are optional. When both are given, the results
    are recorded on the reconciliation board for that ticket, and a
    response for a sequence older than the newest one already recorded is
    flagged as ``stale``.
    """

    def get(self, request: "HttpRequest") -> JsonResponse:
        """Return ``{"users", "found", "user", "seq", "stale"}``."""
        term = request.GET.get("email", "")
        seq = _int(request.GET["seq"], "seq") if request.GET.get("seq") else None
        users = [user_payload(user) for user in OrphanService.search_users(term)]

        stale = False
        ticket_id = request.GET.get("ticket")
        if ticket_id:
            stale = not ReconciliationBoard(request.session).record_search(_int(ticket_id, "ticket"), seq, users)

        return JsonResponse(
            {
                "users": users,
                "found": bool(users),
                "user": users[0] if len(users) == 1 else None,
                "seq": seq,
                "stale": stale,
            },
        )


class SelectCandidateView(_SupportView):
    """Remember which candidate account was picked for an orphan ticket."""

    def post(self, request: "HttpRequest") -> JsonResponse:
        """Select ``userId`` for ``ticketId``."""
        data = parse_json(request)
        ticket = get_object_or_404(orphan_tickets(), pk=_int(data.get("ticketId"), "ticketId"))
        user = get_object_or_404(get_user_model(), pk=_int(data.get("userId"), "userId"))
        board = ReconciliationBoard(request.session)
        board.select(ticket.pk, user.pk)
        return JsonResponse({"ticketId": ticket.pk, "selected": user_payload(user)})


class LinkTicketView(_SupportView):
    """Link an orphan ticket to an account. This cannot be undone."""

    required_roles = (Role.ADMIN,)

    def post(self, request: "HttpRequest") -> JsonResponse:
        """Link ``ticketId`` to ``userId`` or to the candidate selected earlier."""
        data = parse_json(request)
        ticket = get_object_or_404(Ticket, pk=_int(data.get("ticketId"), "ticketId"))
        board = ReconciliationBoard(request.session)
        user_id = data.get("userId") or board.selected(ticket.pk)
        if user_id is None:
            return error_response("userId is required", 400)
        user = get_object_or_404(get_user_model(), pk=_int(user_id, "userId"))

        linked = OrphanService.link_ticket(ticket, user, linked_by=request.user)
        board.forget(ticket.pk)
        return JsonResponse(
            {
                "success": True,
                "message": f"Ticket linked to {user.email}",
                "ticket": ticket_payload(linked),
            },
        )


# ---------------------------------------------------------------------------
# Courtesy tickets
# ---------------------------------------------------------------------------


def courtesy_order_payload(order: Order) -> dict[str, Any]:
    """Serialize a courtesy order with its tickets."""
    return {
        "reference": order.reference,
        "eventId": order.event_id,
        "eventName": order.event.name,
        "recipientName": order.customer_name,
        "recipientEmail": order.customer_email,
        "courtesyType": order.courtesy_type,
        "notes": order.notes,
        "userId": order.user_id,
        "createdBy": order.created_by_id,
        "createdAt": order.created_at.isoformat(),
        "tickets": [ticket_payload(ticket) for ticket in order.tickets.select_related("event", "order")],
    }


class CourtesyTicketsView(_SupportView):
    """List courtesy orders or issue new courtesy tickets."""

    def get(self, request: "HttpRequest") -> JsonResponse:
        """List courtesy orders, optionally filtered by ``event_id``."""
        event = None
        if request.GET.get("event_id"):
            event = get_object_or_404(Event, pk=_int(request.GET["event_id"], "event_id"))
        orders = CourtesyService.list_orders(event)
        return JsonResponse({"orders": [courtesy_order_payload(order) for order in orders]})

    def post(self, request: "HttpRequest") -> JsonResponse:
        """Issue courtesy tickets and return the new order with status 201."""
        data = parse_json(request)
        event = get_object_or_404(Event, pk=_int(data.get("eventId"), "eventId"))
        ticket_type = get_object_or_404(TicketType, pk=_int(data.get("ticketTypeId"), "ticketTypeId"), event=event)
        courtesy = CourtesyRequest(
            event=event,
            ticket_type=ticket_type,
            email=str(data.get("email") or ""),
            name=str(data.get("name") or ""),
            phone=str(data.get("phone") or ""),
            courtesy_type=str(data.get("courtesyType") or ""),
            notes=str(data.get("notes") or ""),
            quantity=_int(data.get("quantity", 1), "quantity"),
            auto_link=bool(data.get("autoLink", False)),
        )
        order, _tickets = CourtesyService.issue(courtesy, created_by=request.user)
        return JsonResponse(courtesy_order_payload(order), status=201)


class CourtesyOrderView(_SupportView):
    """Read or withdraw a single courtesy order."""

    def _order(self, reference: str) -> Order:
        return get_object_or_404(
            Order.objects.select_related("event"),
            reference=reference,
            kind=Order.Kind.COURTESY,
        )

    def get(self, request: "HttpRequest", reference: str) -> JsonResponse:  # noqa: ARG002
        """Return one courtesy order."""
        return JsonResponse(courtesy_order_payload(self._order(reference)))

    def delete(self, request: "HttpRequest", reference: str) -> JsonResponse:  # noqa: ARG002
        """Delete the order and its tickets."""
        deleted = CourtesyService.delete_order(self._order(reference))
        return JsonResponse({"success": True, "ticketsDeleted": deleted})
