"""Event and ticket type models for boletera."""

from datetime import date, timedelta

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from encrypted_fields import EncryptedCharField

from boletera.settings import get_config


class Event(models.Model):
    """A ticketed event with dates, venue, and payment settings.

    The central model that all other apps reference. PayPal credentials may
    be stored per event; when blank the global ``BOLETERA['paypal']``
    credentials are used.
    """

    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200, unique=True)
    start_date = models.DateField()
    end_date = models.DateField()
    location = models.CharField(max_length=300, blank=True, default="")
    description = models.TextField(blank=True, default="")
    public_description = models.TextField(blank=True, default="")
    internal_notes = models.TextField(blank=True, default="")
    featured_image_url = models.URLField(blank=True, default="")
    terms_and_conditions = models.TextField(blank=True, default="")
    contact_email = models.EmailField(blank=True, default="")

    published = models.BooleanField(default=False)
    allow_preregistration = models.BooleanField(
        default=False,
        help_text="When True, visitors may register interest instead of buying.",
    )
    preregistration_message = models.TextField(blank=True, default="")

    paypal_client_id = EncryptedCharField(max_length=200, blank=True, null=True, default=None)
    paypal_client_secret = EncryptedCharField(max_length=200, blank=True, null=True, default=None)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-start_date"]

    def __str__(self) -> str:
        return self.name

    def event_days(self) -> list[date]:
        """Return every calendar day from ``start_date`` to ``end_date`` inclusive."""
        span = (self.end_date - self.start_date).days
        return [self.start_date + timedelta(days=offset) for offset in range(max(span, 0) + 1)]

    @property
    def has_started(self) -> bool:
        """Whether the first event day has arrived."""
        return timezone.localdate() >= self.start_date

    @property
    def has_ended(self) -> bool:
        """Whether the last event day is in the past."""
        return timezone.localdate() > self.end_date


class TicketType(models.Model):
    """A purchasable ticket category for an event.

    Defines a class of ticket (e.g. "General", "VIP") with pricing, an
    access type that decides which days the holder may enter, and optional
    stock and per-order limits. Ticket types flagged ``is_courtesy`` are
    hidden from the public catalog and only issued by staff.
    """

    class AccessType(models.TextChoices):
        """Which event days a ticket grants access to."""

        ALL_DAYS = "all_days", "All days"
        SPECIFIC_DAYS = "specific_days", "Specific days"
        ANY_SINGLE_DAY = "any_single_day", "Any single day"

    event = models.ForeignKey(
        Event,
        on_delete=models.CASCADE,
        related_name="ticket_types",
    )
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200)
    description = models.TextField(blank=True, default="")
    public_description = models.TextField(blank=True, default="")
    features = models.JSONField(default=list, blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default="MXN")
    access_type = models.CharField(
        max_length=20,
        choices=AccessType.choices,
        default=AccessType.ALL_DAYS,
    )
    available_days = models.JSONField(
        default=list,
        blank=True,
        help_text="ISO dates (YYYY-MM-DD) selectable for specific-day tickets.",
    )
    limit_per_user = models.PositiveIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1)],
        help_text="Maximum per order. Blank uses the configured default.",
    )
    total_stock = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Total tickets available. Blank means unlimited.",
    )
    sold_count = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    is_courtesy = models.BooleanField(default=False)
    sale_start = models.DateTimeField(null=True, blank=True)
    sale_end = models.DateTimeField(null=True, blank=True)
    sort_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sort_order", "name"]
        unique_together = [("event", "slug")]

    def __str__(self) -> str:
        return f"{self.name} ({self.event.slug})"

    @property
    def remaining_stock(self) -> int | None:
        """Return the number of tickets still available.

        Returns:
            The remaining count, or ``None`` if stock is unlimited.
        """
        if self.total_stock is None:
            return None
        return max(self.total_stock - self.sold_count, 0)

    @property
    def effective_limit(self) -> int:
        """Per-order limit, falling back to ``default_limit_per_user``."""
        if self.limit_per_user is not None:
            return self.limit_per_user
        return get_config().default_limit_per_user

    @property
    def max_per_order(self) -> int:
        """Largest quantity a single order may hold."""
        remaining = self.remaining_stock
        if remaining is None:
            return self.effective_limit
        return min(remaining, self.effective_limit)

    @property
    def is_on_sale(self) -> bool:
        """Check whether this ticket type can currently be purchased.

        A ticket is on sale when it is active, not a courtesy type, inside
        the optional sale window, and not sold out.
        """
        if not self.is_active or self.is_courtesy:
            return False
        now = timezone.now()
        if self.sale_start and now < self.sale_start:
            return False
        if self.sale_end and now > self.sale_end:
            return False
        remaining = self.remaining_stock
        return remaining is None or remaining > 0

    def selectable_days(self) -> list[date]:
        """Days a buyer may pick, from ``available_days`` or the event days."""
        if self.available_days:
            return sorted(date.fromisoformat(day) for day in self.available_days)
        return self.event.event_days()

    def authorized_days(self, selected_days: list[date] | tuple[date, ...] | None = None) -> list[date]:
        """Resolve the days a ticket of this type grants access to.

        Args:
            selected_days: Days chosen by the buyer, if any.

        Returns:
            Sorted list of dates the holder may check in on.
        """
        if self.access_type == self.AccessType.SPECIFIC_DAYS:
            days = list(selected_days) if selected_days else self.selectable_days()
        elif self.access_type == self.AccessType.ANY_SINGLE_DAY and selected_days:
            days = list(selected_days)[:1]
        else:
            days = self.event.event_days()
        return sorted(set(days))
