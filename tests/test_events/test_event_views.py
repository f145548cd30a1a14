"""Tests for the public event catalog and the event/ticket type models."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.test import override_settings
from django.urls import reverse
from django.utils import timezone

from boletera.events.models import Event, TicketType


@pytest.fixture
def event(db):
    return Event.objects.create(
        name="Muestra de Cine",
        slug="muestra",
        start_date=date(2027, 4, 10),
        end_date=date(2027, 4, 12),
        published=True,
        public_description="Tres días de cine.",
        description="Notas internas",
    )


@pytest.mark.django_db
class TestEventModel:
    def test_event_days_inclusive(self, event):
        assert event.event_days() == [date(2027, 4, 10), date(2027, 4, 11), date(2027, 4, 12)]

    def test_single_day_event(self, event):
        event.end_date = event.start_date
        assert event.event_days() == [date(2027, 4, 10)]


@pytest.mark.django_db
class TestTicketTypeModel:
    def test_stock_and_limits(self, event):
        tt = TicketType(event=event, name="General", slug="general", price=Decimal("100"), total_stock=5, sold_count=3)
        assert tt.remaining_stock == 2
        assert tt.max_per_order == 2

    def test_unlimited_uses_default_limit(self, event):
        tt = TicketType(event=event, name="General", slug="general", price=Decimal("100"))
        assert tt.remaining_stock is None
        assert tt.max_per_order == 10

    def test_explicit_limit(self, event):
        tt = TicketType(event=event, name="General", slug="general", price=Decimal("100"), limit_per_user=4)
        assert tt.effective_limit == 4

    def test_limit_of_one_is_not_replaced_by_default(self, event):
        tt = TicketType(event=event, name="Palco", slug="palco", price=Decimal("900"), limit_per_user=1)
        assert tt.effective_limit == 1
        assert tt.max_per_order == 1

    def test_zero_limit_rejected(self, event):
        tt = TicketType(event=event, name="General", slug="general", price=Decimal("100"), limit_per_user=0)
        with pytest.raises(ValidationError) as exc_info:
            tt.clean_fields()
        assert "limit_per_user" in exc_info.value.message_dict

    @pytest.mark.parametrize(
        ("changes", "on_sale"),
        [
            ({}, True),
            ({"is_active": False}, False),
            ({"is_courtesy": True}, False),
            ({"total_stock": 2, "sold_count": 2}, False),
            ({"sale_start": timezone.now() + timedelta(days=1)}, False),
            ({"sale_end": timezone.now() - timedelta(days=1)}, False),
        ],
    )
    def test_is_on_sale(self, event, changes, on_sale):
        tt = TicketType(event=event, name="General", slug="general", price=Decimal("100"), **changes)
        assert tt.is_on_sale is on_sale

    def test_authorized_days(self, event):
        specific = TicketType(
            event=event,
            name="Sábado",
            slug="sabado",
            price=Decimal("100"),
            access_type=TicketType.AccessType.SPECIFIC_DAYS,
            available_days=["2027-04-12", "2027-04-11"],
        )
        single = TicketType(
            event=event,
            name="Uno",
            slug="uno",
            price=Decimal("100"),
            access_type=TicketType.AccessType.ANY_SINGLE_DAY,
        )

        assert specific.selectable_days() == [date(2027, 4, 11), date(2027, 4, 12)]
        assert specific.authorized_days([date(2027, 4, 12)]) == [date(2027, 4, 12)]
        assert specific.authorized_days() == [date(2027, 4, 11), date(2027, 4, 12)]
        assert single.authorized_days([date(2027, 4, 11)]) == [date(2027, 4, 11)]
        assert single.authorized_days() == event.event_days()


@pytest.mark.django_db
class TestPublicEventViews:
    def test_list_only_published(self, client, event):
        Event.objects.create(name="Borrador", slug="borrador", start_date=date(2027, 1, 1), end_date=date(2027, 1, 1))

        data = client.get(reverse("events:list")).json()

        assert [e["slug"] for e in data["events"]] == ["muestra"]
        assert data["events"][0]["description"] == "Tres días de cine."

    def test_detail(self, client, event):
        TicketType.objects.create(event=event, name="General", slug="general", price=Decimal("150.00"))
        TicketType.objects.create(event=event, name="Prensa", slug="prensa", price=Decimal("0"), is_courtesy=True)
        TicketType.objects.create(event=event, name="Vieja", slug="vieja", price=Decimal("90.00"), is_active=False)

        data = client.get(reverse("events:detail", args=["muestra"])).json()

        assert [tt["name"] for tt in data["ticketTypes"]] == ["General"]
        assert data["ticketTypes"][0]["price"] == "150.00"
        assert data["ticketTypes"][0]["onSale"] is True
        assert data["eventDays"] == ["2027-04-10", "2027-04-11", "2027-04-12"]
        assert data["emailLookupDebounceMs"] == 500
        assert data["allowPreregistration"] is False

    def test_unpublished_detail_is_404(self, client, event):
        event.published = False
        event.save()
        response = client.get(reverse("events:detail", args=["muestra"]))
        assert response.status_code == 404

    def test_preregistration_flag_follows_global_toggle(self, client, event):
        event.allow_preregistration = True
        event.save()

        assert client.get(reverse("events:detail", args=["muestra"])).json()["allowPreregistration"] is True
        with override_settings(BOLETERA={"features": {"preregistration_enabled": False}}):
            data = client.get(reverse("events:detail", args=["muestra"])).json()
        assert data["allowPreregistration"] is False
