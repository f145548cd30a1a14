"""Two-phase PayPal payment orchestration.

Phase one (:meth:`PaymentService.create_order`) stores a local order with a
price snapshot and registers it with PayPal. Phase two
(:meth:`PaymentService.capture`) captures the funds and is the only place
where purchased tickets are issued and buyer accounts are provisioned.
Captures are idempotent on the PayPal order id.
"""

import logging
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.http import Http404
from django.utils import timezone

from boletera import notifications
from boletera.accounts.services.provisioning import OUTCOME_EXISTING, OUTCOME_FAILED, provision_account
from boletera.checkout.models import Order, OrderLineItem, generate_order_reference
from boletera.checkout.paypal_client import PayPalClient, PayPalError, first_capture_id
from boletera.checkout.selection import parse_quantity
from boletera.checkout.signals import order_captured
from boletera.events.models import TicketType
from boletera.settings import get_config
from boletera.tickets.models import Ticket
from boletera.tickets.services.issuance import RecoveryInfo, TicketIssuer

if TYPE_CHECKING:
    from boletera.checkout.flow import CustomerData
    from boletera.checkout.selection import Selection
    from boletera.events.models import Event

logger = logging.getLogger(__name__)

CAPTURE_COMPLETED = "COMPLETED"
PAYPAL_TEXT_LIMIT = 127


def _money(amount: Decimal, currency: str) -> dict[str, str]:
    return {"currency_code": currency, "value": f"{amount.quantize(Decimal('0.01'))}"}


def build_order_payload(order: Order) -> dict[str, Any]:
    """Build the PayPal Orders v2 request body for ``order``.

    Args:
        order: A saved order with line items.

    Returns:
        The ``intent=CAPTURE`` payload with items and an amount breakdown.
    """
    paypal = get_config().paypal
    items = [
        {
            "name": line.description[:PAYPAL_TEXT_LIMIT],
            "quantity": str(line.quantity),
            "unit_amount": _money(line.unit_price, line.currency),
            "category": "DIGITAL_GOODS",
        }
        for line in order.line_items.all()
    ]
    context: dict[str, Any] = {
        "brand_name": paypal.brand_name,
        "user_action": "PAY_NOW",
        "shipping_preference": "NO_SHIPPING",
    }
    if paypal.return_url:
        context["return_url"] = paypal.return_url
    if paypal.cancel_url:
        context["cancel_url"] = paypal.cancel_url
    return {
        "intent": "CAPTURE",
        "purchase_units": [
            {
                "reference_id": f"event_{order.event_id}_{order.reference}",
                "custom_id": order.reference,
                "description": f"Tickets for {order.event.name}"[:PAYPAL_TEXT_LIMIT],
                "amount": {
                    **_money(order.total, order.currency),
                    "breakdown": {"item_total": _money(order.total, order.currency)},
                },
                "items": items,
            },
        ],
        "application_context": context,
    }


@dataclass(frozen=True, slots=True)
class CaptureResult:
    """Everything the client needs after a capture.

    ``replayed`` is set when the order had already been captured and the
    stored result is returned again; replays never carry a login token.
    """

    order: Order
    tickets: list[Ticket] = field(default_factory=list)
    account_outcome: str = Order.AccountOutcome.NONE
    login_token: str = ""
    account_error: str = ""
    replayed: bool = False

    @property
    def email_existed(self) -> bool:
        return self.account_outcome == Order.AccountOutcome.EXISTING

    @property
    def next_action(self) -> str:
        """``login`` when the buyer must sign in first, else ``configure_attendees``."""
        return "login" if self.email_existed else "configure_attendees"

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the capture endpoint."""
        order = self.order
        tickets_path = f"/my-tickets/{order.reference}"
        if self.email_existed:
            next_steps = {"login": f"/login?next={tickets_path}"}
        else:
            next_steps = {"configureTickets": tickets_path}
        return {
            "success": True,
            "paymentId": order.capture_id,
            "orderId": order.provider_order_id,
            "reference": order.reference,
            "status": CAPTURE_COMPLETED,
            "replayed": self.replayed,
            "ticketsCreated": len(self.tickets),
            "ticketIds": [ticket.pk for ticket in self.tickets],
            "userAccount": {
                "created": self.account_outcome == Order.AccountOutcome.CREATED,
                "failed": self.account_outcome == Order.AccountOutcome.FAILED,
                "emailExisted": self.email_existed,
                "linked": self.account_outcome == Order.AccountOutcome.LINKED,
                "customToken": self.login_token or None,
                "userId": order.user_id,
                "error": self.account_error or None,
            },
            "nextAction": self.next_action,
            "nextSteps": next_steps,
            "details": {
                "customerEmail": order.customer_email,
                "eventName": order.event.name,
                "totalAmount": str(order.total),
                "currency": order.currency,
            },
        }


def _line_counts(lines: Iterable[Mapping[str, Any]]) -> Counter[int]:
    counts: Counter[int] = Counter()
    for item in lines:
        if not isinstance(item, Mapping):
            raise ValidationError("Each ticket must be an object.")
        raw_id = item.get("ticketTypeId", item.get("ticket_type_id"))
        try:
            ticket_type_id = int(raw_id)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Each ticket needs a valid ticketTypeId.") from exc
        counts[ticket_type_id] += parse_quantity(item.get("quantity", 1))
    return counts


class PaymentService:
    """Stateless service for the create-order and capture phases."""

    @staticmethod
    def create_order(
        event: "Event",
        selection: "Selection",
        customer: "CustomerData",
        *,
        client_total: object = None,
        client: PayPalClient | None = None,
    ) -> tuple[Order, dict[str, Any]]:
        """Store a local order and register it with PayPal.

        Args:
            event: The event the tickets belong to.
            selection: Validated ticket selection, priced from the database.
            customer: Buyer contact details.
            client_total: Total the client displayed; must match the
                server-side total when given.
            client: PayPal client override, used by tests.

        Returns:
            ``(order, paypal_order)`` where ``paypal_order`` is PayPal's
            response with ``id``, ``status`` and ``links``.

        Raises:
            ValidationError: If the selection is empty, the customer is
                incomplete, or the totals are invalid.
            PayPalError: If PayPal rejects the order; the local order is
                marked ``failed``.
        """
        if not event.published:
            raise ValidationError("This event is not available for purchase.")
        if selection.is_empty:
            raise ValidationError("No tickets selected.")
        if not customer.is_complete:
            raise ValidationError("Customer name and email are required.")
        total = selection.total_amount
        if total <= 0:
            raise ValidationError("Order total must be greater than zero.")
        if client_total is not None:
            try:
                matches = Decimal(str(client_total)) == total
            except InvalidOperation:
                matches = False
            if not matches:
                raise ValidationError("Order total does not match current ticket prices.")

        with transaction.atomic():
            order = Order.objects.create(
                event=event,
                reference=generate_order_reference(),
                customer_name=customer.name,
                customer_email=customer.normalized_email,
                customer_phone=customer.phone,
                customer_company=customer.company,
                total=total,
                currency=selection.currency,
            )
            OrderLineItem.objects.bulk_create(
                [
                    OrderLineItem(
                        order=order,
                        ticket_type_id=line.ticket_type_id,
                        description=line.ticket_type_name,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        currency=line.currency,
                        line_total=line.total_price,
                        selected_days=[day.isoformat() for day in line.selected_days],
                    )
                    for line in selection
                ],
            )

        paypal = client or PayPalClient.for_event(event)
        try:
            paypal_order = paypal.create_order(build_order_payload(order), request_id=f"create-{order.reference}")
        except PayPalError as exc:
            order.status = Order.Status.FAILED
            order.failure_reason = str(exc)
            order.save(update_fields=["status", "failure_reason", "updated_at"])
            logger.warning("PayPal rejected order %s: %s", order.reference, exc)
            raise

        order.provider_order_id = paypal_order["id"]
        order.save(update_fields=["provider_order_id", "updated_at"])
        logger.info(
            "Created order %s (PayPal %s) for %s %s",
            order.reference,
            order.provider_order_id,
            total,
            order.currency,
        )
        return order, paypal_order

    @staticmethod
    def capture(
        provider_order_id: str,
        customer: "CustomerData",
        *,
        lines: Iterable[Mapping[str, Any]] | None = None,
        requester: Any = None,
        client: PayPalClient | None = None,
    ) -> CaptureResult:
        """Capture an approved PayPal order and issue its tickets.

        Running this twice for the same PayPal order returns the stored
        result of the first capture without calling PayPal again.

        Args:
            provider_order_id: The PayPal order id from phase one.
            customer: Buyer details, including account creation choices.
            lines: Ticket lines the client believes it bought; when given
                they must match the order.
            requester: The requesting user, possibly anonymous.
            client: PayPal client override, used by tests.

        Returns:
            The :class:`CaptureResult`.

        Raises:
            Http404: If no order matches ``provider_order_id``.
            ValidationError: If the order cannot be captured, the lines or
                customer do not match, or PayPal did not complete the payment.
            PayPalError: If the capture call itself fails.
        """
        if not provider_order_id:
            raise ValidationError("Order ID is required.")

        with transaction.atomic():
            order = (
                Order.objects.select_for_update()
                .select_related("event")
                .filter(provider_order_id=provider_order_id, kind=Order.Kind.PURCHASE)
                .first()
            )
            if order is None:
                raise Http404("Order not found")
            if order.status == Order.Status.CAPTURED:
                logger.info("Order %s already captured, returning stored result", order.reference)
                return CaptureResult(
                    order=order,
                    tickets=list(order.tickets.order_by("pk")),
                    account_outcome=order.account_outcome,
                    replayed=True,
                )
            if order.status != Order.Status.CREATED:
                raise ValidationError(f"Order cannot be captured (status: {order.status}).")
            if customer.normalized_email != order.customer_email.lower():
                raise ValidationError("Customer email does not match the order.")
            if lines is not None:
                expected = Counter({item.ticket_type_id: item.quantity for item in order.line_items.all()})
                if _line_counts(lines) != expected:
                    raise ValidationError("Tickets do not match the order.")

            paypal = client or PayPalClient.for_event(order.event)
            capture = paypal.capture_order(provider_order_id, request_id=f"capture-{order.reference}")
            status = capture.get("status")
            if status != CAPTURE_COMPLETED:
                logger.warning("PayPal order %s not completed (status %s)", provider_order_id, status)
                raise ValidationError(f"Payment not completed (status: {status}).")

            outcome = provision_account(customer, requester=requester)
            recovery = None
            if outcome.user is None:
                recovery = RecoveryInfo(
                    target_email=order.customer_email,
                    account_requested=customer.create_account,
                    password_provided=bool(customer.password),
                    failure_reason=outcome.error,
                )

            order.user = outcome.user
            order.account_outcome = outcome.kind
            order.status = Order.Status.CAPTURED
            order.capture_id = first_capture_id(capture)
            order.provider_payload = capture
            order.captured_at = timezone.now()
            order.save()

            tickets = TicketIssuer.issue_for_order(order, user=outcome.user, recovery=recovery)
            for line in order.line_items.exclude(ticket_type__isnull=True):
                TicketType.objects.filter(pk=line.ticket_type_id).update(sold_count=F("sold_count") + line.quantity)

        logger.info(
            "Captured order %s (PayPal %s): %d ticket(s), account %s",
            order.reference,
            provider_order_id,
            len(tickets),
            outcome.kind,
        )
        order_captured.send(sender=Order, order=order, tickets=tickets, account_outcome=outcome.kind)

        notifications.send_purchase_confirmation(order, tickets)
        if outcome.kind == OUTCOME_FAILED:
            notifications.send_account_recovery(order)
        elif outcome.kind == OUTCOME_EXISTING:
            notifications.send_existing_account_notice(order)

        return CaptureResult(
            order=order,
            tickets=tickets,
            account_outcome=outcome.kind,
            login_token=outcome.login_token,
            account_error=outcome.error,
        )
