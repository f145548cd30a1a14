"""Tests for the PaymentService in boletera.checkout.services.payment."""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.core import mail
from django.core.exceptions import ValidationError
from django.http import Http404
from django.test import override_settings

from boletera.accounts.tokens import resolve_login_token
from boletera.checkout.flow import CustomerData
from boletera.checkout.models import Order
from boletera.checkout.paypal_client import PayPalError
from boletera.checkout.selection import Selection
from boletera.checkout.services.payment import PaymentService, build_order_payload
from boletera.checkout.signals import order_captured
from boletera.events.models import Event, TicketType
from boletera.tickets.models import OrphanRecovery, Ticket

User = get_user_model()

PAYPAL_ORDER_ID = "5O190127TN364715T"


# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def event(db):
    return Event.objects.create(
        name="Expo Boletera",
        slug="expo-payment",
        start_date=date(2027, 3, 1),
        end_date=date(2027, 3, 2),
        published=True,
    )


@pytest.fixture
def general(event):
    return TicketType.objects.create(event=event, name="General", slug="general", price=Decimal("500.00"))


@pytest.fixture
def vip(event):
    return TicketType.objects.create(event=event, name="VIP", slug="vip", price=Decimal("1200.00"))


@pytest.fixture
def selection(general, vip):
    selection = Selection()
    selection.add_ticket(general, 2)
    selection.add_ticket(vip, 1)
    return selection


@pytest.fixture
def customer():
    return CustomerData(name="Ana López", email="Ana@Example.com", phone="5512345678")


@pytest.fixture
def paypal():
    client = MagicMock()
    client.create_order.return_value = {
        "id": PAYPAL_ORDER_ID,
        "status": "CREATED",
        "links": [{"rel": "approve", "href": "https://www.sandbox.paypal.com/checkoutnow?token=X"}],
    }
    client.capture_order.return_value = {
        "id": PAYPAL_ORDER_ID,
        "status": "COMPLETED",
        "purchase_units": [{"payments": {"captures": [{"id": "3C679366HH908993F"}]}}],
    }
    return client


@pytest.fixture
def created_order(event, selection, customer, paypal):
    order, _paypal_order = PaymentService.create_order(event, selection, customer, client=paypal)
    return order


# =============================================================================
# create_order
# =============================================================================


@pytest.mark.django_db
class TestCreateOrder:
    def test_stores_order_with_price_snapshot(self, event, selection, customer, paypal):
        order, paypal_order = PaymentService.create_order(
            event,
            selection,
            customer,
            client_total="2200.00",
            client=paypal,
        )

        assert paypal_order["status"] == "CREATED"
        assert order.status == Order.Status.CREATED
        assert order.provider_order_id == PAYPAL_ORDER_ID
        assert order.total == Decimal("2200.00")
        assert order.customer_email == "ana@example.com"
        assert order.reference.startswith("BOL-")
        assert [(li.description, li.quantity, li.line_total) for li in order.line_items.all()] == [
            ("General", 2, Decimal("1000.00")),
            ("VIP", 1, Decimal("1200.00")),
        ]

    def test_paypal_payload(self, event, selection, customer, paypal):
        order, _ = PaymentService.create_order(event, selection, customer, client=paypal)

        payload = paypal.create_order.call_args.args[0]
        unit = payload["purchase_units"][0]
        assert payload["intent"] == "CAPTURE"
        assert unit["amount"]["value"] == "2200.00"
        assert unit["amount"]["currency_code"] == "MXN"
        assert unit["custom_id"] == order.reference
        assert unit["reference_id"] == f"event_{event.pk}_{order.reference}"
        assert [item["quantity"] for item in unit["items"]] == ["2", "1"]
        assert paypal.create_order.call_args.kwargs["request_id"] == f"create-{order.reference}"

    def test_client_total_mismatch_rejected(self, event, selection, customer, paypal):
        with pytest.raises(ValidationError, match="does not match"):
            PaymentService.create_order(event, selection, customer, client_total="100.00", client=paypal)
        assert not Order.objects.exists()
        paypal.create_order.assert_not_called()

    def test_empty_selection_rejected(self, event, customer, paypal):
        with pytest.raises(ValidationError, match="No tickets selected"):
            PaymentService.create_order(event, Selection(), customer, client=paypal)

    def test_incomplete_customer_rejected(self, event, selection, paypal):
        with pytest.raises(ValidationError, match="name and email"):
            PaymentService.create_order(event, selection, CustomerData(name="Ana"), client=paypal)

    def test_free_selection_rejected(self, event, customer, paypal):
        free = TicketType.objects.create(event=event, name="Free", slug="free", price=Decimal("0"))
        selection = Selection()
        selection.add_ticket(free, 1)
        with pytest.raises(ValidationError, match="greater than zero"):
            PaymentService.create_order(event, selection, customer, client=paypal)

    def test_unpublished_event_rejected(self, event, selection, customer, paypal):
        event.published = False
        with pytest.raises(ValidationError, match="not available"):
            PaymentService.create_order(event, selection, customer, client=paypal)

    def test_paypal_failure_marks_order_failed(self, event, selection, customer, paypal):
        paypal.create_order.side_effect = PayPalError("declined", status_code=422, details={"name": "UNPROCESSABLE"})

        with pytest.raises(PayPalError):
            PaymentService.create_order(event, selection, customer, client=paypal)

        order = Order.objects.get()
        assert order.status == Order.Status.FAILED
        assert order.failure_reason == "declined"


@pytest.mark.django_db
def test_build_order_payload_omits_empty_urls(created_order):
    context = build_order_payload(created_order)["application_context"]
    assert "return_url" not in context
    assert context["shipping_preference"] == "NO_SHIPPING"


# =============================================================================
# capture
# =============================================================================


@pytest.mark.django_db
class TestCaptureGuest:
    def test_issues_orphan_tickets(self, created_order, customer, paypal, general, vip):
        result = PaymentService.capture(PAYPAL_ORDER_ID, customer, requester=AnonymousUser(), client=paypal)

        created_order.refresh_from_db()
        assert created_order.status == Order.Status.CAPTURED
        assert created_order.capture_id == "3C679366HH908993F"
        assert created_order.account_outcome == Order.AccountOutcome.NONE
        assert len(result.tickets) == 3
        assert all(ticket.user_id is None for ticket in result.tickets)
        assert OrphanRecovery.objects.filter(target_email="ana@example.com").count() == 3
        paypal.capture_order.assert_called_once_with(PAYPAL_ORDER_ID, request_id=f"capture-{created_order.reference}")

    def test_updates_sold_counts(self, created_order, customer, paypal, general, vip):
        PaymentService.capture(PAYPAL_ORDER_ID, customer, client=paypal)

        general.refresh_from_db()
        vip.refresh_from_db()
        assert general.sold_count == 2
        assert vip.sold_count == 1

    def test_sends_confirmation_and_signal(self, created_order, customer, paypal):
        received = []

        def receiver(sender, **kwargs):
            received.append(kwargs)

        order_captured.connect(receiver)
        try:
            PaymentService.capture(PAYPAL_ORDER_ID, customer, client=paypal)
        finally:
            order_captured.disconnect(receiver)

        assert len(received) == 1
        assert received[0]["account_outcome"] == "none"
        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == ["ana@example.com"]
        assert created_order.reference in mail.outbox[0].body

    def test_payload_for_guest(self, created_order, customer, paypal):
        payload = PaymentService.capture(PAYPAL_ORDER_ID, customer, client=paypal).to_payload()

        assert payload["success"] is True
        assert payload["status"] == "COMPLETED"
        assert payload["ticketsCreated"] == 3
        assert payload["userAccount"]["customToken"] is None
        assert payload["nextAction"] == "configure_attendees"
        assert payload["nextSteps"] == {"configureTickets": f"/my-tickets/{created_order.reference}"}


@pytest.mark.django_db
class TestCaptureAccounts:
    def test_existing_email_attaches_and_asks_for_login(self, created_order, paypal):
        existing = User.objects.create_user(username="ana", email="ana@example.com", password="x")
        customer = CustomerData(name="Ana López", email="ana@example.com", create_account=True, password="N3w-pass!")

        result = PaymentService.capture(PAYPAL_ORDER_ID, customer, client=paypal)
        payload = result.to_payload()

        assert result.order.user == existing
        assert all(ticket.user_id == existing.pk for ticket in result.tickets)
        assert payload["userAccount"]["emailExisted"] is True
        assert payload["userAccount"]["created"] is False
        assert payload["userAccount"]["customToken"] is None
        assert payload["nextAction"] == "login"
        assert "login" in payload["nextSteps"]
        assert User.objects.filter(email__iexact="ana@example.com").count() == 1
        assert [message.subject for message in mail.outbox][-1].endswith("were added to your account")

    def test_creates_account_with_login_token(self, created_order, paypal):
        customer = CustomerData(name="Ana López", email="ana@example.com", create_account=True, password="N3w-pass!")

        result = PaymentService.capture(PAYPAL_ORDER_ID, customer, client=paypal)
        payload = result.to_payload()

        user = User.objects.get(email="ana@example.com")
        assert user.username == "ana@example.com"
        assert user.first_name == "Ana"
        assert user.check_password("N3w-pass!")
        assert payload["userAccount"]["created"] is True
        assert payload["userAccount"]["userId"] == user.pk
        assert resolve_login_token(payload["userAccount"]["customToken"]) == user
        assert not OrphanRecovery.objects.exists()

    @override_settings(
        AUTH_PASSWORD_VALIDATORS=[
            {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator", "OPTIONS": {"min_length": 12}},
        ],
    )
    def test_failed_account_creation_keeps_tickets_recoverable(self, created_order, paypal):
        customer = CustomerData(name="Ana López", email="ana@example.com", create_account=True, password="short")

        result = PaymentService.capture(PAYPAL_ORDER_ID, customer, client=paypal)
        payload = result.to_payload()

        assert result.order.status == Order.Status.CAPTURED
        assert payload["userAccount"]["failed"] is True
        assert "too short" in payload["userAccount"]["error"]
        recovery = OrphanRecovery.objects.first()
        assert recovery.account_requested is True
        assert recovery.password_provided is True
        assert "too short" in recovery.failure_reason
        assert any("Action needed" in message.subject for message in mail.outbox)

    def test_signed_in_requester_keeps_purchase(self, created_order, customer, paypal):
        buyer = User.objects.create_user(username="buyer", email="someone@example.com", password="x")

        result = PaymentService.capture(PAYPAL_ORDER_ID, customer, requester=buyer, client=paypal)

        assert result.account_outcome == Order.AccountOutcome.LINKED
        assert result.to_payload()["userAccount"]["linked"] is True
        assert Ticket.objects.filter(user=buyer).count() == 3


@pytest.mark.django_db
class TestCaptureGuards:
    def test_replay_returns_stored_result(self, created_order, paypal):
        customer = CustomerData(name="Ana López", email="ana@example.com", create_account=True, password="N3w-pass!")
        first = PaymentService.capture(PAYPAL_ORDER_ID, customer, client=paypal)

        second = PaymentService.capture(PAYPAL_ORDER_ID, customer, client=paypal)

        assert second.replayed is True
        assert [t.pk for t in second.tickets] == [t.pk for t in first.tickets]
        assert second.login_token == ""
        assert paypal.capture_order.call_count == 1
        assert Ticket.objects.count() == 3

    def test_unknown_order(self, db, customer, paypal):
        with pytest.raises(Http404):
            PaymentService.capture("NOPE", customer, client=paypal)

    def test_missing_order_id(self, db, customer, paypal):
        with pytest.raises(ValidationError, match="Order ID"):
            PaymentService.capture("", customer, client=paypal)

    def test_email_mismatch(self, created_order, paypal):
        with pytest.raises(ValidationError, match="email does not match"):
            PaymentService.capture(PAYPAL_ORDER_ID, CustomerData(name="Eve", email="eve@example.com"), client=paypal)
        paypal.capture_order.assert_not_called()

    def test_lines_must_match_order(self, created_order, customer, paypal, general, vip):
        lines = [{"ticketTypeId": general.pk, "quantity": 1}, {"ticketTypeId": vip.pk, "quantity": 1}]
        with pytest.raises(ValidationError, match="do not match"):
            PaymentService.capture(PAYPAL_ORDER_ID, customer, lines=lines, client=paypal)

    def test_matching_lines_accepted(self, created_order, customer, paypal, general, vip):
        lines = [{"ticketTypeId": vip.pk, "quantity": 1}, {"ticketTypeId": str(general.pk), "quantity": 2}]
        result = PaymentService.capture(PAYPAL_ORDER_ID, customer, lines=lines, client=paypal)
        assert len(result.tickets) == 3

    def test_incomplete_capture_leaves_order_open(self, created_order, customer, paypal):
        paypal.capture_order.return_value = {"id": PAYPAL_ORDER_ID, "status": "PAYER_ACTION_REQUIRED"}

        with pytest.raises(ValidationError, match="not completed"):
            PaymentService.capture(PAYPAL_ORDER_ID, customer, client=paypal)

        created_order.refresh_from_db()
        assert created_order.status == Order.Status.CREATED
        assert not Ticket.objects.exists()

    def test_failed_order_cannot_be_captured(self, created_order, customer, paypal):
        Order.objects.filter(pk=created_order.pk).update(status=Order.Status.FAILED)
        with pytest.raises(ValidationError, match="cannot be captured"):
            PaymentService.capture(PAYPAL_ORDER_ID, customer, client=paypal)
