"""Tests for the ticket owner and scanner JSON views."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.test import Client, override_settings
from django.urls import reverse
from django.utils import timezone

from boletera.accounts.roles import Role, assign_role
from boletera.accounts.tokens import issue_api_token
from boletera.checkout.models import Order
from boletera.events.models import Event, TicketType
from boletera.tickets.models import Ticket

User = get_user_model()


@pytest.fixture
def event(db):
    today = timezone.localdate()
    return Event.objects.create(
        name="Feria del Libro",
        slug="feria-views",
        start_date=today,
        end_date=today + timedelta(days=1),
    )


@pytest.fixture
def later_event(db):
    return Event.objects.create(
        name="Congreso",
        slug="congreso-views",
        start_date=date(2030, 1, 10),
        end_date=date(2030, 1, 10),
    )


@pytest.fixture
def owner(db):
    return User.objects.create_user(username="ines", email="ines@example.com", password="x")


@pytest.fixture
def scanner(db):
    user = User.objects.create_user(username="scanner", email="scanner@example.com", password="x")
    assign_role(user, Role.COMPROBADOR)
    return user


@pytest.fixture
def stranger(db):
    return User.objects.create_user(username="otro", email="otro@example.com", password="x")


def make_ticket(event, user, *, reference="BOL-VIEWS001", configured=False):
    order, _created = Order.objects.get_or_create(
        reference=reference,
        defaults={
            "event": event,
            "user": user,
            "customer_name": "Inés",
            "customer_email": "ines@example.com",
            "status": Order.Status.CAPTURED,
            "total": Decimal("300.00"),
        },
    )
    ticket_type, _created = TicketType.objects.get_or_create(
        event=event,
        slug="general",
        defaults={"name": "General", "price": Decimal("300.00")},
    )
    return Ticket.objects.create(
        event=event,
        ticket_type=ticket_type,
        order=order,
        user=user,
        ticket_type_name="General",
        customer_name="Inés",
        customer_email="ines@example.com",
        amount_paid=Decimal("300.00"),
        authorized_days=[day.isoformat() for day in event.event_days()],
        status=Ticket.Status.CONFIGURED if configured else Ticket.Status.PURCHASED,
        attendee_name="Inés" if configured else "",
    )


def _client(user=None):
    client = Client()
    if user is not None:
        client.force_login(user)
    return client


# =============================================================================
# Owner views
# =============================================================================


@pytest.mark.django_db
class TestTicketDetailView:
    def test_requires_login(self, event, owner):
        ticket = make_ticket(event, owner)
        response = _client().get(reverse("tickets:detail", args=[ticket.pk]))
        assert response.status_code == 401

    def test_owner_reads_ticket(self, event, owner):
        ticket = make_ticket(event, owner)

        data = _client(owner).get(reverse("tickets:detail", args=[ticket.pk])).json()

        assert data["qrId"] == ticket.qr_id
        assert data["orderReference"] == "BOL-VIEWS001"
        assert data["amountPaid"] == "300.00"

    def test_scanner_reads_any_ticket(self, event, owner, scanner):
        ticket = make_ticket(event, owner)
        assert _client(scanner).get(reverse("tickets:detail", args=[ticket.pk])).status_code == 200

    def test_stranger_is_forbidden(self, event, owner, stranger):
        ticket = make_ticket(event, owner)
        response = _client(stranger).get(reverse("tickets:detail", args=[ticket.pk]))
        assert response.status_code == 403

    def test_owner_configures_attendee(self, event, owner):
        ticket = make_ticket(event, owner)

        response = _client(owner).put(
            reverse("tickets:detail", args=[ticket.pk]),
            data={"attendeeName": "Julia", "attendeePhone": "5511111111"},
            content_type="application/json",
        )

        assert response.status_code == 200
        assert response.json()["status"] == Ticket.Status.CONFIGURED
        assert response.json()["attendeeName"] == "Julia"

    def test_configure_without_name(self, event, owner):
        ticket = make_ticket(event, owner)
        response = _client(owner).put(
            reverse("tickets:detail", args=[ticket.pk]),
            data={"attendeeEmail": "julia@example.com"},
            content_type="application/json",
        )
        assert response.status_code == 400

    def test_scanner_cannot_configure(self, event, owner, scanner):
        ticket = make_ticket(event, owner)
        response = _client(scanner).put(
            reverse("tickets:detail", args=[ticket.pk]),
            data={"attendeeName": "Julia"},
            content_type="application/json",
        )
        assert response.status_code == 403


@pytest.mark.django_db
class TestOrderAndMyTickets:
    def test_order_tickets_for_owner(self, event, owner):
        make_ticket(event, owner)
        make_ticket(event, owner)

        data = _client(owner).get(reverse("tickets:order", args=["BOL-VIEWS001"])).json()

        assert data["order"]["status"] == Order.Status.CAPTURED
        assert len(data["tickets"]) == 2

    def test_order_tickets_for_stranger(self, event, owner, stranger):
        make_ticket(event, owner)
        response = _client(stranger).get(reverse("tickets:order", args=["BOL-VIEWS001"]))
        assert response.status_code == 403

    def test_unknown_order(self, owner):
        response = _client(owner).get(reverse("tickets:order", args=["BOL-NOPE"]))
        assert response.status_code == 404

    def test_my_tickets_grouped_by_event(self, event, later_event, owner, stranger):
        make_ticket(event, owner)
        make_ticket(later_event, owner, reference="BOL-VIEWS002")
        make_ticket(event, stranger, reference="BOL-VIEWS003")

        data = _client(owner).get(reverse("tickets:mine")).json()

        assert [group["eventName"] for group in data["events"]] == ["Feria del Libro", "Congreso"]
        assert all(len(group["tickets"]) == 1 for group in data["events"])

    def test_bearer_token_authenticates(self, event, owner):
        make_ticket(event, owner)
        response = Client().get(reverse("tickets:mine"), HTTP_AUTHORIZATION=f"Bearer {issue_api_token(owner)}")

        assert response.status_code == 200
        assert len(response.json()["events"]) == 1


# =============================================================================
# Scanner views
# =============================================================================


@pytest.mark.django_db
class TestValidateTicketView:
    def _post(self, client, ticket, **data):
        return client.post(
            reverse("tickets:validate", args=[ticket.qr_id]),
            data=data,
            content_type="application/json",
        )

    def test_requires_scanner_role(self, event, owner):
        ticket = make_ticket(event, owner, configured=True)
        assert _client().get(reverse("tickets:validate", args=[ticket.qr_id])).status_code == 401
        assert _client(owner).get(reverse("tickets:validate", args=[ticket.qr_id])).status_code == 403

    def test_lookup(self, event, owner, scanner):
        ticket = make_ticket(event, owner, configured=True)
        data = _client(scanner).get(reverse("tickets:validate", args=[ticket.qr_id])).json()
        assert data["ticket"]["id"] == ticket.pk

    def test_unknown_qr(self, scanner):
        response = _client(scanner).get(reverse("tickets:validate", args=["qr_missing"]))
        assert response.status_code == 404

    def test_checkin_then_undo(self, event, owner, scanner):
        ticket = make_ticket(event, owner, configured=True)
        client = _client(scanner)
        today = timezone.localdate().isoformat()

        data = self._post(client, ticket, action="checkin").json()
        assert data["success"] is True
        assert data["checkin"]["day"] == today
        assert data["ticket"]["usedDays"] == [today]

        data = self._post(client, ticket, action="undo").json()
        assert data["checkin"]["undoneAt"] is not None
        assert data["ticket"]["usedDays"] == []

    def test_duplicate_checkin(self, event, owner, scanner):
        ticket = make_ticket(event, owner, configured=True)
        client = _client(scanner)
        self._post(client, ticket)

        response = self._post(client, ticket)

        assert response.status_code == 400
        assert "Already checked in" in response.json()["error"]

    def test_bad_day(self, event, owner, scanner):
        ticket = make_ticket(event, owner, configured=True)
        response = self._post(_client(scanner), ticket, day="tomorrow")
        assert response.status_code == 400

    def test_unknown_action(self, event, owner, scanner):
        ticket = make_ticket(event, owner, configured=True)
        response = self._post(_client(scanner), ticket, action="burn")
        assert response.status_code == 400

    def test_scanner_feature_disabled(self, event, owner, scanner):
        ticket = make_ticket(event, owner, configured=True)
        with override_settings(BOLETERA={"features": {"scanner_enabled": False}}):
            response = _client(scanner).get(reverse("tickets:validate", args=[ticket.qr_id]))
        assert response.status_code == 404


@pytest.mark.django_db
class TestManualCheckInView:
    def _post(self, client, **data):
        return client.post(reverse("tickets:manual-checkin"), data=data, content_type="application/json")

    def test_manual_checkin(self, event, owner, scanner):
        ticket = make_ticket(event, owner, configured=True)
        tomorrow = (timezone.localdate() + timedelta(days=1)).isoformat()

        data = self._post(_client(scanner), ticketId=ticket.pk, eventId=event.pk, selectedDay=tomorrow).json()

        assert data["checkin"]["day"] == tomorrow

    def test_requires_ids(self, scanner):
        response = self._post(_client(scanner), ticketId=1)
        assert response.status_code == 400

    def test_wrong_event(self, event, later_event, owner, scanner):
        ticket = make_ticket(event, owner, configured=True)
        response = self._post(_client(scanner), ticketId=ticket.pk, eventId=later_event.pk)
        assert response.json()["error"] == "Ticket does not belong to this event"
