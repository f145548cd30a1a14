"""Courtesy (complimentary) ticket issuance by staff."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from boletera.accounts.services.provisioning import find_user_by_email, normalize_email
from boletera.checkout.models import Order, OrderLineItem, generate_order_reference
from boletera.events.models import TicketType
from boletera.settings import get_config
from boletera.tickets.models import Ticket
from boletera.tickets.services.issuance import RecoveryInfo, TicketIssuer

if TYPE_CHECKING:
    from boletera.events.models import Event

logger = logging.getLogger(__name__)

COURTESY_REFERENCE_PREFIX = "CRT"


@dataclass(frozen=True, slots=True)
class CourtesyRequest:
    """What staff asked for when issuing courtesy tickets."""

    event: "Event"
    ticket_type: TicketType
    email: str
    name: str
    courtesy_type: str
    phone: str = ""
    notes: str = ""
    quantity: int = 1
    auto_link: bool = False


class CourtesyService:
    """Stateless service for issuing and withdrawing courtesy tickets."""

    @staticmethod
    def validate(request: CourtesyRequest) -> None:
        """Check a courtesy request.

        Raises:
            ValidationError: If a required field is missing, the ticket type
                belongs to another event, or the quantity is out of range.
                More than one ticket can only be issued with auto-link.
        """
        if not normalize_email(request.email) or not request.name.strip():
            raise ValidationError("Recipient name and email are required.")
        if not request.courtesy_type.strip():
            raise ValidationError("Courtesy type is required.")
        if request.ticket_type.event_id != request.event.pk:
            raise ValidationError("Ticket type does not belong to this event.")
        maximum = get_config().max_courtesy_quantity
        if not 1 <= request.quantity <= maximum:
            raise ValidationError(f"Quantity must be between 1 and {maximum}.")
        if request.quantity > 1 and not request.auto_link:
            raise ValidationError("Issuing more than one courtesy ticket requires linking them to the recipient.")

    @staticmethod
    @transaction.atomic
    def issue(request: CourtesyRequest, *, created_by: Any) -> tuple[Order, list[Ticket]]:
        """Issue a batch of courtesy tickets under a single zero-priced order.

        With ``auto_link`` the tickets go straight to the account registered
        with the recipient's email, or wait for it as pending orphans when no
        such account exists yet. Without ``auto_link`` the ticket is
        standalone and never shows up as an orphan.

        Returns:
            ``(order, tickets)``.
        """
        CourtesyService.validate(request)
        email = normalize_email(request.email)
        user = find_user_by_email(email) if request.auto_link else None

        order = Order.objects.create(
            event=request.event,
            user=user,
            created_by=created_by,
            kind=Order.Kind.COURTESY,
            status=Order.Status.CAPTURED,
            reference=generate_order_reference(COURTESY_REFERENCE_PREFIX),
            customer_name=request.name.strip(),
            customer_email=email,
            customer_phone=request.phone.strip(),
            total=Decimal("0"),
            currency=request.ticket_type.currency,
            account_outcome=Order.AccountOutcome.LINKED if user else Order.AccountOutcome.NONE,
            courtesy_type=request.courtesy_type.strip(),
            notes=request.notes,
            captured_at=timezone.now(),
        )
        selected_days = []
        if request.ticket_type.access_type == TicketType.AccessType.ANY_SINGLE_DAY:
            selected_days = [request.event.start_date.isoformat()]
        OrderLineItem.objects.create(
            order=order,
            ticket_type=request.ticket_type,
            description=request.ticket_type.name,
            quantity=request.quantity,
            unit_price=Decimal("0"),
            currency=request.ticket_type.currency,
            line_total=Decimal("0"),
            selected_days=selected_days,
        )

        if user is not None:
            created_via, linked_via, recovery = Ticket.CreatedVia.COURTESY_LINKED_IMMEDIATE, Ticket.LinkedVia.MANUAL_ADMIN, None
        elif request.auto_link:
            created_via, linked_via, recovery = Ticket.CreatedVia.COURTESY_LINKED, "", RecoveryInfo(target_email=email)
        else:
            created_via, linked_via, recovery = Ticket.CreatedVia.COURTESY_STANDALONE, "", None

        tickets = TicketIssuer.issue_for_order(
            order,
            user=user,
            recovery=recovery,
            created_via=created_via,
            linked_via=linked_via,
            courtesy_type=order.courtesy_type,
        )
        logger.info(
            "Issued courtesy order %s: %d x %s for %s (%s)",
            order.reference,
            request.quantity,
            request.ticket_type.name,
            email,
            created_via,
        )
        return order, tickets

    @staticmethod
    def list_orders(event: "Event | None" = None) -> QuerySet[Order]:
        """Return courtesy orders, newest first, optionally for one event."""
        queryset = Order.objects.filter(kind=Order.Kind.COURTESY).select_related("event", "created_by")
        if event is not None:
            queryset = queryset.filter(event=event)
        return queryset.prefetch_related("tickets").order_by("-created_at", "-pk")

    @staticmethod
    @transaction.atomic
    def delete_order(order: Order) -> int:
        """Withdraw a courtesy order and all of its tickets.

        Returns:
            Number of tickets deleted.

        Raises:
            ValidationError: If the order is not a courtesy order or one of
                its tickets has already been used at the door.
        """
        if order.kind != Order.Kind.COURTESY:
            raise ValidationError("Only courtesy orders can be deleted.")
        if order.tickets.filter(checkins__isnull=False, checkins__undone_at__isnull=True).exists():
            raise ValidationError("A ticket from this order has already been checked in.")
        count = order.tickets.count()
        reference = order.reference
        order.delete()
        logger.info("Deleted courtesy order %s with %d ticket(s)", reference, count)
        return count
