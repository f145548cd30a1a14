"""Preregistration submission behind the proof-of-work gate."""

import logging
from typing import TYPE_CHECKING, Any

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from boletera import notifications
from boletera.checkout.altcha import verify_solution
from boletera.checkout.models import Preregistration
from boletera.checkout.selection import build_selection
from boletera.checkout.signals import preregistration_submitted
from boletera.features import is_feature_enabled

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from boletera.checkout.flow import CustomerData
    from boletera.events.models import Event

logger = logging.getLogger(__name__)


class PreregistrationService:
    """Stateless service for storing preregistrations."""

    @staticmethod
    def submit(
        event: "Event",
        customer: "CustomerData",
        interested: "Iterable[Mapping[str, Any]] | None",
        *,
        altcha_payload: Any,
        user: Any = None,
    ) -> Preregistration:
        """Store a preregistration and send the marketing email.

        The anti-bot payload is checked before anything else; nothing is
        stored without a valid solution. ``interested`` may be empty, which
        records general interest in the event.

        Args:
            event: The event being preregistered for.
            customer: Visitor contact details.
            interested: Ticket lines the visitor is interested in.
            altcha_payload: The proof-of-work solution from the widget.
            user: The requesting user, if signed in.

        Returns:
            The stored :class:`Preregistration`.

        Raises:
            ValidationError: If verification fails, preregistration is
                closed, the customer is incomplete, or a line is invalid.
        """
        if not altcha_payload or not verify_solution(altcha_payload):
            raise ValidationError("Verification failed. Please complete the challenge again.")
        if not is_feature_enabled("preregistration", event=event):
            raise ValidationError("This event does not accept preregistrations.")
        if not customer.is_complete:
            raise ValidationError("Name and email are required.")

        selection = build_selection(event, interested, enforce_availability=False)
        interested_tickets = [
            {
                "ticketTypeId": line.ticket_type_id,
                "ticketTypeName": line.ticket_type_name,
                "quantity": line.quantity,
                "unitPrice": str(line.unit_price),
                "currency": line.currency,
                "selectedDays": [day.isoformat() for day in line.selected_days],
            }
            for line in selection
        ]

        with transaction.atomic():
            preregistration = Preregistration.objects.create(
                event=event,
                user=user if user is not None and user.is_authenticated else None,
                name=customer.name,
                email=customer.normalized_email,
                phone=customer.phone,
                company=customer.company,
                interested_tickets=interested_tickets,
            )
        logger.info("Stored preregistration %s for event %s", preregistration.pk, event.slug)
        preregistration_submitted.send(sender=Preregistration, preregistration=preregistration)

        if notifications.send_preregistration_email(preregistration):
            preregistration.email_sent = True
            preregistration.email_sent_at = timezone.now()
            preregistration.save(update_fields=["email_sent", "email_sent_at", "updated_at"])
        return preregistration
