"""Tests for orphan ticket reconciliation in boletera.support.services.orphans."""

from datetime import date, timedelta
from decimal import Decimal
from io import StringIO

import pytest
from django.contrib.auth import get_user_model
from django.core import mail
from django.core.exceptions import ValidationError
from django.core.management import CommandError, call_command
from django.test import override_settings
from django.utils import timezone

from boletera.checkout.models import Order, OrderLineItem
from boletera.events.models import Event, TicketType
from boletera.support.services.orphans import OrphanService, orphan_tickets
from boletera.tickets.models import OrphanRecovery, Ticket
from boletera.tickets.services.issuance import RecoveryInfo, TicketIssuer

User = get_user_model()


@pytest.fixture
def event(db):
    return Event.objects.create(
        name="Gala",
        slug="gala-orphans",
        start_date=date(2027, 9, 1),
        end_date=date(2027, 9, 1),
    )


@pytest.fixture
def ticket_type(event):
    return TicketType.objects.create(event=event, name="Platea", slug="platea", price=Decimal("350.00"))


@pytest.fixture
def staff(db):
    return User.objects.create_user(username="soporte", email="soporte@example.com", password="x")


def make_order(event, ticket_type, email, *, quantity=1, reference=None):
    order = Order.objects.create(
        event=event,
        reference=reference or f"BOL-{email.split('@')[0].upper()[:8]}",
        customer_name="Comprador",
        customer_email=email,
        status=Order.Status.CAPTURED,
        total=ticket_type.price * quantity,
    )
    OrderLineItem.objects.create(
        order=order,
        ticket_type=ticket_type,
        description=ticket_type.name,
        quantity=quantity,
        unit_price=ticket_type.price,
        line_total=ticket_type.price * quantity,
    )
    return order


def guest_tickets(event, ticket_type, email, *, quantity=1, reference=None):
    order = make_order(event, ticket_type, email, quantity=quantity, reference=reference)
    return TicketIssuer.issue_for_order(order, recovery=RecoveryInfo(target_email=email))


# =============================================================================
# Listing and stats
# =============================================================================


@pytest.mark.django_db
class TestListing:
    def test_orphans_exclude_owned_and_standalone(self, event, ticket_type, staff):
        orphans = guest_tickets(event, ticket_type, "guest@example.com", quantity=2)
        TicketIssuer.issue_for_order(make_order(event, ticket_type, "owner@example.com"), user=staff)
        TicketIssuer.issue_for_order(
            make_order(event, ticket_type, "vip@example.com"),
            created_via=Ticket.CreatedVia.COURTESY_STANDALONE,
        )

        assert set(orphan_tickets()) == set(orphans)
        assert {t.pk for t in OrphanService.list_orphans()} == {t.pk for t in orphans}

    def test_list_is_newest_first_and_limited(self, event, ticket_type):
        guest_tickets(event, ticket_type, "a@example.com", reference="BOL-A")
        newest = guest_tickets(event, ticket_type, "b@example.com", reference="BOL-B")[0]

        listed = OrphanService.list_orphans(limit=1)

        assert listed == [newest]

    @override_settings(BOLETERA={"orphan_list_limit": 2})
    def test_default_limit_from_config(self, event, ticket_type):
        guest_tickets(event, ticket_type, "a@example.com", quantity=3)
        assert len(OrphanService.list_orphans()) == 2

    def test_stats(self, event, ticket_type, staff):
        tickets = guest_tickets(event, ticket_type, "guest@example.com", quantity=3)
        OrphanService.link_ticket(tickets[0], staff, linked_by=staff)
        OrphanRecovery.objects.filter(ticket=tickets[1]).update(recovery_status=OrphanRecovery.RecoveryStatus.EXPIRED)

        assert OrphanService.stats() == {"total": 2, "pending": 1, "recovered": 1, "expired": 1}


# =============================================================================
# User search
# =============================================================================


@pytest.mark.django_db
class TestSearchUsers:
    @pytest.fixture
    def users(self, db):
        return [
            User.objects.create_user(
                username="lucia",
                email="lucia@example.com",
                first_name="Lucía",
                last_name="Gómez",
                password="x",
            ),
            User.objects.create_user(username="lucas", email="lucas@example.org", password="x"),
            User.objects.create_user(username="baja", email="lucinda@example.com", password="x", is_active=False),
        ]

    def test_short_terms_return_nothing(self, users):
        assert OrphanService.search_users("lu") == []
        assert OrphanService.search_users("  lu  ") == []

    def test_matches_email_fragment(self, users):
        assert OrphanService.search_users("luc") == [users[1], users[0]]

    def test_matches_name(self, users):
        assert OrphanService.search_users("gómez") == [users[0]]

    def test_inactive_accounts_hidden(self, users):
        assert OrphanService.search_users("lucinda") == []

    @override_settings(BOLETERA={"user_search_limit": 1})
    def test_limit(self, users):
        assert len(OrphanService.search_users("example")) == 1


# =============================================================================
# Linking
# =============================================================================


@pytest.mark.django_db
class TestLinkTicket:
    def test_link_records_everything(self, event, ticket_type, staff):
        ticket = guest_tickets(event, ticket_type, "guest@example.com")[0]
        target = User.objects.create_user(username="otra", email="otra@example.com", password="x")
        mail.outbox.clear()

        linked = OrphanService.link_ticket(ticket, target, linked_by=staff)

        assert linked.user == target
        assert linked.linked_via == Ticket.LinkedVia.MANUAL_ADMIN
        assert linked.linked_by == staff
        assert linked.linked_at is not None
        recovery = OrphanRecovery.objects.get(ticket=ticket)
        assert recovery.recovery_status == OrphanRecovery.RecoveryStatus.RECOVERED
        assert recovery.linked_to_user == target
        assert recovery.recovery_method == Ticket.LinkedVia.MANUAL_ADMIN
        assert Order.objects.get(pk=ticket.order_id).user == target
        assert [m.to for m in mail.outbox] == [["otra@example.com"]]

    def test_already_linked(self, event, ticket_type, staff):
        ticket = guest_tickets(event, ticket_type, "guest@example.com")[0]
        OrphanService.link_ticket(ticket, staff, linked_by=staff)
        other = User.objects.create_user(username="otra", email="otra@example.com", password="x")

        with pytest.raises(ValidationError, match="already linked"):
            OrphanService.link_ticket(ticket, other, linked_by=staff)

        ticket.refresh_from_db()
        assert ticket.user == staff

    def test_order_owner_is_kept(self, event, ticket_type, staff):
        ticket = guest_tickets(event, ticket_type, "guest@example.com")[0]
        Order.objects.filter(pk=ticket.order_id).update(user=staff)
        target = User.objects.create_user(username="otra", email="otra@example.com", password="x")

        OrphanService.link_ticket(ticket, target, linked_by=staff)

        assert Order.objects.get(pk=ticket.order_id).user == staff


@pytest.mark.django_db
class TestAutoLinkOnSignup:
    def test_new_account_picks_up_pending_orphans(self, event, ticket_type):
        tickets = guest_tickets(event, ticket_type, "nueva@example.com", quantity=2)
        unrelated = guest_tickets(event, ticket_type, "otro@example.com")[0]

        user = User.objects.create_user(username="nueva", email="Nueva@Example.com", password="x")

        for ticket in tickets:
            ticket.refresh_from_db()
            assert ticket.user == user
            assert ticket.linked_via == Ticket.LinkedVia.AUTO_EMAIL_MATCH
            assert ticket.linked_by is None
        unrelated.refresh_from_db()
        assert unrelated.user is None

    def test_expired_recoveries_are_not_linked(self, event, ticket_type):
        ticket = guest_tickets(event, ticket_type, "tarde@example.com")[0]
        OrphanRecovery.objects.filter(ticket=ticket).update(recovery_status=OrphanRecovery.RecoveryStatus.EXPIRED)

        User.objects.create_user(username="tarde", email="tarde@example.com", password="x")

        ticket.refresh_from_db()
        assert ticket.user is None

    def test_saving_existing_user_does_not_link(self, event, ticket_type):
        user = User.objects.create_user(username="antes", email="antes@example.com", password="x")
        ticket = guest_tickets(event, ticket_type, "antes@example.com")[0]

        user.first_name = "Antes"
        user.save()

        ticket.refresh_from_db()
        assert ticket.user is None

    def test_user_without_email(self):
        assert OrphanService.auto_link_for_user(User(username="sin-email")) == []


# =============================================================================
# Expiry
# =============================================================================


@pytest.mark.django_db
class TestExpireStale:
    def _age(self, ticket, days):
        OrphanRecovery.objects.filter(ticket=ticket).update(created_at=timezone.now() - timedelta(days=days))

    def test_expires_only_old_pending(self, event, ticket_type):
        old, fresh = guest_tickets(event, ticket_type, "guest@example.com", quantity=2)
        self._age(old, 40)

        assert OrphanService.expire_stale() == 1

        assert OrphanRecovery.objects.get(ticket=old).recovery_status == OrphanRecovery.RecoveryStatus.EXPIRED
        assert OrphanRecovery.objects.get(ticket=fresh).recovery_status == OrphanRecovery.RecoveryStatus.PENDING

    def test_command(self, event, ticket_type):
        ticket = guest_tickets(event, ticket_type, "guest@example.com")[0]
        self._age(ticket, 10)
        out = StringIO()

        call_command("expire_orphan_recoveries", "--days", "7", stdout=out)

        assert "Expired 1 orphan recovery record(s)" in out.getvalue()

    def test_command_rejects_non_positive_days(self):
        with pytest.raises(CommandError, match="positive"):
            call_command("expire_orphan_recoveries", "--days", "0")
