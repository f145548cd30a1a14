"""Ticket issuance and attendee configuration.

Tickets are only ever created here, from the line items of an order that
has been captured (or a courtesy order issued by staff).
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction
from django.utils import timezone

from boletera.tickets.models import OrphanRecovery, Ticket

if TYPE_CHECKING:
    from boletera.checkout.models import Order, OrderLineItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RecoveryInfo:
    """What to record on tickets that are issued without an account."""

    target_email: str
    account_requested: bool = False
    password_provided: bool = False
    failure_reason: str = ""


def authorized_days_for(line: "OrderLineItem", event: Any) -> list[str]:
    """Return the ISO days a ticket issued from ``line`` may be used on."""
    selected = [date.fromisoformat(day) for day in line.selected_days or ()]
    if line.ticket_type is None:
        days = event.event_days()
    else:
        days = line.ticket_type.authorized_days(selected)
    return [day.isoformat() for day in days]


class TicketIssuer:
    """Stateless service for creating tickets from orders."""

    @staticmethod
    @transaction.atomic
    def issue_for_order(
        order: "Order",
        *,
        user: Any = None,
        recovery: RecoveryInfo | None = None,
        created_via: str = Ticket.CreatedVia.PURCHASE,
        linked_via: str = "",
        courtesy_type: str = "",
    ) -> list[Ticket]:
        """Create one ticket per unit on every line of ``order``.

        Args:
            order: The order whose line items are turned into tickets.
            user: The owning account, or ``None`` for orphan tickets.
            recovery: When ``user`` is ``None``, recovery data attached to
                every ticket so support can reconcile it later.
            created_via: Provenance recorded on each ticket.
            linked_via: Link method when ``user`` was resolved by staff.
            courtesy_type: Courtesy category, for courtesy orders.

        Returns:
            The created tickets, in line order.
        """
        is_courtesy = order.kind == order.Kind.COURTESY
        now = timezone.now()
        tickets: list[Ticket] = []
        for line in order.line_items.select_related("ticket_type__event"):
            days = authorized_days_for(line, order.event)
            for _ in range(line.quantity):
                ticket = Ticket.objects.create(
                    event=order.event,
                    ticket_type=line.ticket_type,
                    order=order,
                    user=user,
                    ticket_type_name=line.description,
                    customer_name=order.customer_name,
                    customer_email=order.customer_email,
                    customer_phone=order.customer_phone,
                    amount_paid=line.unit_price,
                    currency=line.currency,
                    authorized_days=days,
                    is_courtesy=is_courtesy,
                    courtesy_type=courtesy_type,
                    created_via=created_via,
                    created_by=order.created_by,
                    linked_at=now if user is not None and linked_via else None,
                    linked_via=linked_via if user is not None else "",
                    linked_by=order.created_by if user is not None and linked_via else None,
                )
                if user is None and recovery is not None:
                    OrphanRecovery.objects.create(
                        ticket=ticket,
                        target_email=recovery.target_email,
                        account_requested=recovery.account_requested,
                        password_provided=recovery.password_provided,
                        failure_reason=recovery.failure_reason,
                    )
                tickets.append(ticket)

        logger.info(
            "Issued %d ticket(s) for order %s (%s)",
            len(tickets),
            order.reference,
            "orphan" if user is None else f"user {user.pk}",
        )
        return tickets


ATTENDEE_FIELDS = ("attendee_name", "attendee_email", "attendee_phone", "special_requirements")
_ATTENDEE_KEYS = {
    "attendee_name": ("attendeeName", "attendee_name"),
    "attendee_email": ("attendeeEmail", "attendee_email"),
    "attendee_phone": ("attendeePhone", "attendee_phone"),
    "special_requirements": ("specialRequirements", "special_requirements"),
}


@transaction.atomic
def configure_ticket(ticket: Ticket, user: Any, data: dict[str, Any]) -> Ticket:
    """Set the attendee details of a ticket owned by ``user``.

    Args:
        ticket: The ticket to configure.
        user: The requesting user, who must own the ticket.
        data: Attendee fields, camelCase or snake_case.

    Returns:
        The updated ticket, now ``configured``.

    Raises:
        PermissionDenied: If ``user`` does not own the ticket.
        ValidationError: If the ticket is already used or has no attendee name.
    """
    ticket = Ticket.objects.select_for_update().get(pk=ticket.pk)
    if ticket.user_id is None or ticket.user_id != user.pk:
        raise PermissionDenied("You can only configure your own tickets")
    if ticket.status == Ticket.Status.USED:
        raise ValidationError("A used ticket can no longer be changed.")

    for field_name, keys in _ATTENDEE_KEYS.items():
        for key in keys:
            if key in data:
                setattr(ticket, field_name, str(data[key] or "").strip())
                break
    if not ticket.attendee_name:
        raise ValidationError("Attendee name is required.")

    ticket.status = Ticket.Status.CONFIGURED
    ticket.save(update_fields=[*ATTENDEE_FIELDS, "status", "updated_at"])
    logger.info("Configured ticket %s for attendee %s", ticket.qr_id, ticket.attendee_name)
    return ticket
