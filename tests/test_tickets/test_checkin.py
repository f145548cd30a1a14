"""Tests for door check-in in boletera.tickets.services.checkin."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import override_settings
from django.utils import timezone

from boletera.checkout.models import Order
from boletera.events.models import Event, TicketType
from boletera.tickets.models import CheckIn, Ticket
from boletera.tickets.services.checkin import CheckInService, resolve_checkin_day

User = get_user_model()

D1 = date(2027, 5, 1)
D2 = date(2027, 5, 2)
D3 = date(2027, 5, 3)


@pytest.mark.unit
class TestResolveCheckinDay:
    def test_requested_day_wins(self):
        assert resolve_checkin_day([D1, D2], D2, today=D1) == D2

    def test_today_when_authorized(self):
        assert resolve_checkin_day([D1, D2, D3], None, today=D2) == D2

    def test_single_authorized_day(self):
        assert resolve_checkin_day([D3], None, today=D1) == D3

    def test_multi_day_needs_explicit_day(self):
        with pytest.raises(ValidationError, match="specify which day"):
            resolve_checkin_day([D1, D3], None, today=D2)


# =============================================================================
# CheckInService
# =============================================================================


@pytest.fixture
def today():
    return timezone.localdate()


@pytest.fixture
def event(db, today):
    return Event.objects.create(
        name="Feria",
        slug="feria-checkin",
        start_date=today - timedelta(days=1),
        end_date=today + timedelta(days=1),
    )


@pytest.fixture
def order(event):
    return Order.objects.create(
        event=event,
        reference="BOL-CHECKIN1",
        customer_name="Sara",
        customer_email="sara@example.com",
        status=Order.Status.CAPTURED,
    )


@pytest.fixture
def staff(db):
    return User.objects.create_user(username="puerta", email="puerta@example.com", password="x")


def make_ticket(event, order, *, access_type=TicketType.AccessType.ALL_DAYS, days=None, configured=True):
    ticket_type = TicketType.objects.create(
        event=event,
        name=f"Tipo {access_type}",
        slug=f"tipo-{access_type}-{TicketType.objects.count()}",
        price=Decimal("100.00"),
        access_type=access_type,
    )
    authorized = days if days is not None else [day.isoformat() for day in event.event_days()]
    return Ticket.objects.create(
        event=event,
        ticket_type=ticket_type,
        order=order,
        ticket_type_name=ticket_type.name,
        customer_name="Sara",
        customer_email="sara@example.com",
        authorized_days=authorized,
        status=Ticket.Status.CONFIGURED if configured else Ticket.Status.PURCHASED,
        attendee_name="Sara" if configured else "",
    )


@pytest.mark.django_db
class TestCheckIn:
    def test_defaults_to_today(self, event, order, staff, today):
        ticket = make_ticket(event, order)

        checkin = CheckInService.check_in(ticket, performed_by=staff, notes="puerta 2")

        assert checkin.day == today
        assert checkin.performed_by == staff
        ticket.refresh_from_db()
        assert ticket.used_days == [today.isoformat()]
        assert ticket.status == Ticket.Status.CONFIGURED

    def test_last_authorized_day_marks_used(self, event, order, today):
        ticket = make_ticket(event, order, days=[today.isoformat()])

        CheckInService.check_in(ticket)

        ticket.refresh_from_db()
        assert ticket.status == Ticket.Status.USED

    def test_explicit_future_day(self, event, order, today):
        ticket = make_ticket(event, order)
        tomorrow = today + timedelta(days=1)

        checkin = CheckInService.check_in(ticket, day=tomorrow)

        assert checkin.day == tomorrow

    def test_same_day_twice_rejected(self, event, order, today):
        ticket = make_ticket(event, order)
        CheckInService.check_in(ticket)

        with pytest.raises(ValidationError, match=f"Already checked in for {today.isoformat()}"):
            CheckInService.check_in(ticket)

    def test_unauthorized_day_rejected(self, event, order, today):
        ticket = make_ticket(event, order, days=[today.isoformat()])
        with pytest.raises(ValidationError, match="not authorized"):
            CheckInService.check_in(ticket, day=today + timedelta(days=1))

    def test_single_use_ticket(self, event, order, today):
        ticket = make_ticket(event, order, access_type=TicketType.AccessType.ANY_SINGLE_DAY)

        CheckInService.check_in(ticket)
        ticket.refresh_from_db()
        assert ticket.status == Ticket.Status.USED

        with pytest.raises(ValidationError, match="single-use"):
            CheckInService.check_in(ticket, day=today + timedelta(days=1))

    def test_unconfigured_ticket_rejected(self, event, order):
        ticket = make_ticket(event, order, configured=False)
        with pytest.raises(ValidationError, match="no attendee"):
            CheckInService.check_in(ticket)

    def test_event_not_started(self, event, order, today):
        event.start_date = today + timedelta(days=3)
        event.end_date = today + timedelta(days=4)
        event.save()
        ticket = make_ticket(event, order)

        with pytest.raises(ValidationError, match="not started"):
            CheckInService.check_in(ticket)

    def test_event_ended(self, event, order, today):
        event.start_date = today - timedelta(days=4)
        event.end_date = today - timedelta(days=3)
        event.save()
        ticket = make_ticket(event, order)

        with pytest.raises(ValidationError, match="already ended"):
            CheckInService.check_in(ticket)


@pytest.mark.django_db
class TestUndo:
    def test_undo_reverts_last_checkin(self, event, order, today):
        ticket = make_ticket(event, order, days=[today.isoformat()])
        CheckInService.check_in(ticket)

        checkin = CheckInService.undo(ticket)

        assert checkin.undone_at is not None
        ticket.refresh_from_db()
        assert ticket.used_days == []
        assert ticket.status == Ticket.Status.CONFIGURED
        # The day can be used again after an undo.
        CheckInService.check_in(ticket)

    def test_nothing_to_undo(self, event, order):
        ticket = make_ticket(event, order)
        with pytest.raises(ValidationError, match="no check-in to undo"):
            CheckInService.undo(ticket)

    def test_window_passed(self, event, order):
        ticket = make_ticket(event, order)
        checkin = CheckInService.check_in(ticket)
        CheckIn.objects.filter(pk=checkin.pk).update(created_at=timezone.now() - timedelta(minutes=6))

        with pytest.raises(ValidationError, match="undo window"):
            CheckInService.undo(ticket)

    @override_settings(BOLETERA={"checkin_undo_minutes": 30})
    def test_window_is_configurable(self, event, order):
        ticket = make_ticket(event, order)
        checkin = CheckInService.check_in(ticket)
        CheckIn.objects.filter(pk=checkin.pk).update(created_at=timezone.now() - timedelta(minutes=6))

        assert CheckInService.undo(ticket).pk == checkin.pk
