"""Door check-in for issued tickets."""

import logging
from datetime import date, timedelta
from typing import Any

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from boletera.events.models import TicketType
from boletera.settings import get_config
from boletera.tickets.models import CheckIn, Ticket

logger = logging.getLogger(__name__)


def resolve_checkin_day(authorized: list[date], requested: date | None, today: date) -> date:
    """Pick the day a check-in counts for.

    The requested day wins; otherwise today when authorized; otherwise the
    only authorized day.

    Raises:
        ValidationError: If no day can be inferred for a multi-day ticket.
    """
    if requested is not None:
        return requested
    if today in authorized:
        return today
    if len(authorized) == 1:
        return authorized[0]
    raise ValidationError("Please specify which day to check in for this multi-day ticket.")


class CheckInService:
    """Stateless service for admitting tickets at the door."""

    @staticmethod
    @transaction.atomic
    def check_in(
        ticket: Ticket,
        *,
        day: date | None = None,
        performed_by: Any = None,
        notes: str = "",
    ) -> CheckIn:
        """Admit a ticket for one event day.

        Args:
            ticket: The ticket presented at the door.
            day: The day to record; inferred when omitted.
            performed_by: Staff member doing the check-in.
            notes: Free-text notes for the audit trail.

        Returns:
            The created :class:`CheckIn`.

        Raises:
            ValidationError: If the event is not running, the ticket has no
                attendee, or the day is not authorized or already used.
        """
        ticket = Ticket.objects.select_for_update().select_related("event", "ticket_type").get(pk=ticket.pk)
        event = ticket.event
        today = timezone.localdate()
        if today < event.start_date:
            raise ValidationError("Event has not started yet.")
        if today > event.end_date:
            raise ValidationError("Event has already ended.")
        if ticket.status == Ticket.Status.PURCHASED or not ticket.attendee_name:
            raise ValidationError("This ticket has no attendee configured yet.")

        authorized = [date.fromisoformat(value) for value in ticket.authorized_days]
        used = [date.fromisoformat(value) for value in ticket.used_days]
        checkin_day = resolve_checkin_day(authorized, day, today)

        if checkin_day not in authorized:
            raise ValidationError("This ticket is not authorized for the selected day.")
        if checkin_day in used:
            raise ValidationError(f"Already checked in for {checkin_day.isoformat()}.")
        single_use = ticket.ticket_type is not None and (
            ticket.ticket_type.access_type == TicketType.AccessType.ANY_SINGLE_DAY
        )
        if single_use and used:
            raise ValidationError(f"This single-use ticket was already used on {used[0].isoformat()}.")

        used.append(checkin_day)
        ticket.used_days = sorted(value.isoformat() for value in used)
        if single_use or set(authorized) <= set(used):
            ticket.status = Ticket.Status.USED
        ticket.save(update_fields=["used_days", "status", "updated_at"])

        checkin = CheckIn.objects.create(ticket=ticket, day=checkin_day, performed_by=performed_by, notes=notes)
        logger.info(
            "Checked in ticket %s for %s (by %s)",
            ticket.qr_id,
            checkin_day,
            getattr(performed_by, "pk", None),
        )
        return checkin

    @staticmethod
    @transaction.atomic
    def undo(ticket: Ticket, *, performed_by: Any = None) -> CheckIn:
        """Revert the most recent check-in of a ticket.

        Only allowed within ``checkin_undo_minutes`` of the check-in.

        Returns:
            The reverted :class:`CheckIn`.

        Raises:
            ValidationError: If there is nothing to undo or the window passed.
        """
        ticket = Ticket.objects.select_for_update().get(pk=ticket.pk)
        checkin = ticket.checkins.filter(undone_at__isnull=True).order_by("-created_at", "-pk").first()
        if checkin is None:
            raise ValidationError("There is no check-in to undo.")
        window = timedelta(minutes=get_config().checkin_undo_minutes)
        now = timezone.now()
        if now > checkin.created_at + window:
            raise ValidationError("The undo window for this check-in has passed.")

        ticket.used_days = [value for value in ticket.used_days if value != checkin.day.isoformat()]
        ticket.status = Ticket.Status.CONFIGURED
        ticket.save(update_fields=["used_days", "status", "updated_at"])
        checkin.undone_at = now
        checkin.save(update_fields=["undone_at"])
        logger.info(
            "Undid check-in of ticket %s for %s (by %s)",
            ticket.qr_id,
            checkin.day,
            getattr(performed_by, "pk", None),
        )
        return checkin
