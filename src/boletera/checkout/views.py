"""JSON views for the checkout app.

Covers the session-backed flow controller, the two PayPal phases, the
proof-of-work challenge, and preregistrations.
"""

import logging
from typing import TYPE_CHECKING, Any

from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import ensure_csrf_cookie

from boletera.accounts.roles import SCANNER_ROLES, has_any_role
from boletera.accounts.services.provisioning import email_status
from boletera.api import JsonView, error_response, parse_json
from boletera.checkout.altcha import create_challenge
from boletera.checkout.flow import CustomerData, FlowState, FlowStore, Transition
from boletera.checkout.models import Preregistration
from boletera.checkout.paypal_client import PayPalError
from boletera.checkout.selection import build_selection, parse_days, parse_quantity
from boletera.checkout.services.payment import PaymentService
from boletera.checkout.services.preregistration import PreregistrationService
from boletera.events.models import Event, TicketType
from boletera.features import FeatureRequiredMixin

if TYPE_CHECKING:
    from collections.abc import Callable

    from django.http import HttpRequest

logger = logging.getLogger(__name__)


def _event_from(data: dict[str, Any], *keys: str) -> Event:
    for key in keys:
        raw = data.get(key)
        if raw not in (None, ""):
            try:
                pk = int(raw)
            except (TypeError, ValueError) as exc:
                raise ValidationError("Invalid event id.") from exc
            return get_object_or_404(Event, pk=pk)
    raise ValidationError("Event id is required.")


def _ticket_type_id(data: dict[str, Any]) -> int:
    try:
        return int(data.get("ticketTypeId", data.get("ticket_type_id")))
    except (TypeError, ValueError) as exc:
        raise ValidationError("A valid ticketTypeId is required.") from exc


def _transition_payload(transition: Transition) -> dict[str, Any]:
    return {"transition": {"step": transition.step.value, "moved": transition.moved, "reason": transition.reason}}


def _paypal_error_response(exc: PayPalError) -> JsonResponse:
    if exc.is_client_error:
        return error_response("The payment was declined by PayPal", 400, details=exc.details)
    return error_response("The payment provider could not be reached", 502, details=exc.details)


# ---------------------------------------------------------------------------
# Flow controller
# ---------------------------------------------------------------------------


class FlowView(JsonView):
    """Read and drive the visitor's checkout flow for one event.

    POST bodies carry an ``action`` field dispatched to a handler:
    ``set_method``, ``add_ticket``, ``update_quantity``, ``remove_ticket``,
    ``clear_selection``, ``submit_customer``, ``check_email``, ``next``,
    ``back`` and ``reset``.
    """

    def _load(self, request: "HttpRequest", event_slug: str) -> tuple[Event, FlowStore, FlowState]:
        event = get_object_or_404(Event, slug=event_slug, published=True)
        store = FlowStore(request)
        return event, store, store.load(event)

    @method_decorator(ensure_csrf_cookie)
    def get(self, request: "HttpRequest", event_slug: str) -> JsonResponse:
        """Return the current flow state."""
        _event, _store, state = self._load(request, event_slug)
        return JsonResponse(state.public_payload())

    def post(self, request: "HttpRequest", event_slug: str) -> JsonResponse:
        """Apply one flow action and return the new state."""
        event, store, state = self._load(request, event_slug)
        data = parse_json(request)
        handlers: dict[str, Callable[[Event, FlowState, dict[str, Any]], dict[str, Any]]] = {
            "set_method": self._handle_set_method,
            "add_ticket": self._handle_add_ticket,
            "update_quantity": self._handle_update_quantity,
            "remove_ticket": self._handle_remove_ticket,
            "clear_selection": self._handle_clear_selection,
            "submit_customer": self._handle_submit_customer,
            "check_email": self._handle_check_email,
            "next": self._handle_next,
            "back": self._handle_back,
        }
        action = str(data.get("action") or "")
        if action == "reset":
            store.discard(event.slug)
            return JsonResponse(FlowState.initialize(event).public_payload())

        handler = handlers.get(action)
        if handler is None:
            return error_response(f"Unknown flow action: {action!r}", 400)

        extra = handler(event, state, data)
        store.save(state)
        return JsonResponse({**state.public_payload(), **extra})

    def _handle_set_method(self, event: Event, state: FlowState, data: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG002
        state.set_method(str(data.get("method") or ""))
        return {}

    def _handle_add_ticket(self, event: Event, state: FlowState, data: dict[str, Any]) -> dict[str, Any]:
        state.ensure_editable()
        ticket_type = get_object_or_404(
            TicketType.objects.select_related("event"),
            pk=_ticket_type_id(data),
            event=event,
            is_active=True,
            is_courtesy=False,
        )
        state.selection.add_ticket(
            ticket_type,
            parse_quantity(data.get("quantity", 1)),
            parse_days(data.get("selectedDays", data.get("selected_days"))),
            enforce_availability=not state.is_preregistration,
        )
        return {}

    def _handle_update_quantity(self, event: Event, state: FlowState, data: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG002
        state.ensure_editable()
        state.selection.update_quantity(_ticket_type_id(data), parse_quantity(data.get("quantity", 0)))
        return {}

    def _handle_remove_ticket(self, event: Event, state: FlowState, data: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG002
        state.ensure_editable()
        state.selection.remove(_ticket_type_id(data))
        return {}

    def _handle_clear_selection(self, event: Event, state: FlowState, data: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG002
        state.ensure_editable()
        state.selection.clear()
        return {}

    def _handle_submit_customer(self, event: Event, state: FlowState, data: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG002
        customer = CustomerData.from_payload(data.get("customerData", data))
        exists, _verified = email_status(customer.email)
        transition = state.submit_customer(customer.with_email_check(exists))
        return _transition_payload(transition)

    def _handle_check_email(self, event: Event, state: FlowState, data: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG002
        email = str(data.get("email") or "")
        if not email.strip():
            raise ValidationError("Email is required.")
        exists, verified = email_status(email)
        if "customerData" in data:
            state.customer = CustomerData.from_payload(data["customerData"])
        state.apply_email_check(exists)
        return {"emailCheck": {"exists": exists, "verified": verified}}

    def _handle_next(self, event: Event, state: FlowState, data: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG002
        transition = state.go_next()
        return _transition_payload(transition)

    def _handle_back(self, event: Event, state: FlowState, data: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG002
        transition = state.go_back()
        return _transition_payload(transition)


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


class CreateOrderView(FeatureRequiredMixin, JsonView):
    """Phase one: store the order and register it with PayPal.

    The body may carry ``tickets`` and ``customer`` explicitly; when
    ``tickets`` is omitted the visitor's session flow is used instead.
    """

    required_feature = "purchase"

    def post(self, request: "HttpRequest") -> JsonResponse:
        """Return ``{"orderID", "status", "reference", "links"}``."""
        data = parse_json(request)
        event = _event_from(data, "eventId", "event_id")

        if "tickets" in data:
            if not data["tickets"]:
                raise ValidationError("No tickets selected.")
            selection = build_selection(event, data["tickets"])
            customer = CustomerData.from_payload(data.get("customer", data.get("customerData")))
        else:
            state = FlowStore(request).load(event)
            if not state.can_pay:
                return error_response("The checkout is not ready for payment", 400, details=state.blocked_reason())
            selection = build_selection(event, state.selection.to_payload())
            customer = state.customer or CustomerData()

        currency = data.get("currency")
        if currency and not selection.is_empty and str(currency).upper() != selection.currency:
            raise ValidationError("Currency does not match the selected tickets.")

        try:
            order, paypal_order = PaymentService.create_order(
                event,
                selection,
                customer,
                client_total=data.get("totalAmount"),
            )
        except PayPalError as exc:
            return _paypal_error_response(exc)
        except ValueError as exc:
            logger.exception("PayPal is not configured for event %s", event.slug)
            return error_response("Payments are not configured for this event", 503, details=str(exc))

        return JsonResponse(
            {
                "orderID": order.provider_order_id,
                "status": paypal_order.get("status", ""),
                "reference": order.reference,
                "links": paypal_order.get("links", []),
            },
        )


class CaptureOrderView(FeatureRequiredMixin, JsonView):
    """Phase two: capture the funds, provision the account, issue tickets."""

    required_feature = "purchase"

    def post(self, request: "HttpRequest") -> JsonResponse:
        """Return the serialized :class:`CaptureResult`."""
        data = parse_json(request)
        order_id = str(data.get("orderID") or data.get("orderId") or "")
        customer = CustomerData.from_payload(data.get("customerData", data.get("customer")))
        lines = data.get("tickets")
        if lines is not None and not isinstance(lines, list):
            raise ValidationError("tickets must be a list.")

        try:
            result = PaymentService.capture(order_id, customer, lines=lines, requester=request.user)
        except PayPalError as exc:
            logger.warning("Capture of PayPal order %s failed: %s", order_id, exc)
            return _paypal_error_response(exc)
        except ValueError as exc:
            logger.exception("PayPal is not configured for order %s", order_id)
            return error_response("Payments are not configured for this event", 503, details=str(exc))

        FlowStore(request).discard(result.order.event.slug)
        return JsonResponse(result.to_payload())


# ---------------------------------------------------------------------------
# Preregistration
# ---------------------------------------------------------------------------


class AltchaChallengeView(JsonView):
    """Issue a proof-of-work challenge for the preregistration widget."""

    @method_decorator(ensure_csrf_cookie)
    def get(self, request: "HttpRequest") -> JsonResponse:  # noqa: ARG002
        """Return a fresh challenge."""
        return JsonResponse(create_challenge())


def preregistration_payload(preregistration: Preregistration) -> dict[str, Any]:
    """Serialize a preregistration for staff listings."""
    return {
        "id": preregistration.pk,
        "eventId": preregistration.event_id,
        "name": preregistration.name,
        "email": preregistration.email,
        "phone": preregistration.phone,
        "company": preregistration.company,
        "interestedTickets": preregistration.interested_tickets,
        "status": preregistration.status,
        "source": preregistration.source,
        "emailSent": preregistration.email_sent,
        "createdAt": preregistration.created_at.isoformat(),
    }


class PreregistrationView(JsonView):
    """Create preregistrations (public) and list them (staff)."""

    def get(self, request: "HttpRequest") -> JsonResponse:
        """List preregistrations, optionally filtered by ``event_id``."""
        if not request.user.is_authenticated:
            return error_response("Authentication required", 401)
        if not has_any_role(request.user, SCANNER_ROLES):
            return error_response("You do not have permission to perform this action", 403)
        queryset = Preregistration.objects.all()
        event_id = request.GET.get("event_id")
        if event_id:
            if not event_id.isdigit():
                return error_response("Invalid event id", 400)
            queryset = queryset.filter(event_id=int(event_id))
        return JsonResponse({"preregistrations": [preregistration_payload(p) for p in queryset]})

    def post(self, request: "HttpRequest") -> JsonResponse:
        """Store a preregistration after checking the proof-of-work payload."""
        data = parse_json(request)
        event = _event_from(data, "event_id", "eventId")
        customer = CustomerData.from_payload(data.get("customer_data", data.get("customerData")))
        interested = data.get("interested_tickets", data.get("interestedTickets")) or []
        if not isinstance(interested, list):
            raise ValidationError("interested_tickets must be a list.")

        preregistration = PreregistrationService.submit(
            event,
            customer,
            interested,
            altcha_payload=data.get("altcha"),
            user=request.user,
        )
        FlowStore(request).discard(event.slug)
        return JsonResponse(
            {"success": True, "preregistrationId": preregistration.pk, "emailSent": preregistration.email_sent},
            status=201,
        )
