"""Order and preregistration models for boletera."""

import secrets
import string

from django.conf import settings
from django.db import models

from boletera.settings import get_config


def generate_order_reference(prefix: str | None = None) -> str:
    """Generate a unique-looking order reference like ``BOL-A1B2C3D4``.

    Args:
        prefix: Reference prefix. Defaults to ``order_reference_prefix``.

    Returns:
        The prefix, a dash, and 8 random uppercase alphanumeric characters.
    """
    alphabet = string.ascii_uppercase + string.digits
    chars = "".join(secrets.choice(alphabet) for _ in range(8))
    return f"{prefix or get_config().order_reference_prefix}-{chars}"


class Order(models.Model):
    """A purchase (or a staff-issued courtesy batch) and its payment state.

    Purchase orders are created in ``created`` state when the PayPal order
    is registered, and move to ``captured`` once the funds are captured and
    tickets are issued. ``provider_order_id`` is the PayPal order id and the
    idempotency key for captures.
    """

    class Kind(models.TextChoices):
        """What produced the order."""

        PURCHASE = "purchase", "Purchase"
        COURTESY = "courtesy", "Courtesy"

    class Status(models.TextChoices):
        """Lifecycle states for an order."""

        CREATED = "created", "Created"
        CAPTURED = "captured", "Captured"
        FAILED = "failed", "Failed"
        CANCELLED = "cancelled", "Cancelled"

    class AccountOutcome(models.TextChoices):
        """What happened to the buyer's account when the order was captured."""

        NONE = "none", "No account"
        CREATED = "created", "Account created"
        FAILED = "failed", "Account creation failed"
        EXISTING = "existing", "Attached to existing account"
        LINKED = "linked", "Attached to signed-in account"

    event = models.ForeignKey(
        "boletera_events.Event",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Staff member who issued a courtesy order.",
    )
    kind = models.CharField(max_length=20, choices=Kind.choices, default=Kind.PURCHASE)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.CREATED)
    reference = models.CharField(
        max_length=40,
        unique=True,
        help_text='Unique order reference, e.g. "BOL-A1B2C3D4".',
    )
    provider_order_id = models.CharField(max_length=64, unique=True, null=True, blank=True)
    capture_id = models.CharField(max_length=64, blank=True, default="")
    customer_name = models.CharField(max_length=200)
    customer_email = models.EmailField()
    customer_phone = models.CharField(max_length=50, blank=True, default="")
    customer_company = models.CharField(max_length=200, blank=True, default="")
    total = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    currency = models.CharField(max_length=3, default="MXN")
    account_outcome = models.CharField(
        max_length=20,
        choices=AccountOutcome.choices,
        default=AccountOutcome.NONE,
    )
    courtesy_type = models.CharField(max_length=50, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    provider_payload = models.JSONField(
        default=dict,
        blank=True,
        help_text="Capture response from PayPal, kept for support lookups.",
    )
    failure_reason = models.TextField(blank=True, default="")
    captured_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Order {self.reference}"


class OrderLineItem(models.Model):
    """A snapshot of one ticket type on an order.

    Prices and names are copied at order time so later catalog edits do not
    rewrite what the buyer paid.
    """

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="line_items",
    )
    ticket_type = models.ForeignKey(
        "boletera_events.TicketType",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order_line_items",
    )
    description = models.CharField(max_length=300)
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default="MXN")
    line_total = models.DecimalField(max_digits=10, decimal_places=2)
    selected_days = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:
        return f"{self.quantity}x {self.description}"


class Preregistration(models.Model):
    """A visitor's registered interest in an event that is not on sale yet."""

    class Status(models.TextChoices):
        """Follow-up state, managed by the sales team."""

        NEW = "nuevo", "New"
        CONTACTED = "contactado", "Contacted"
        INTERESTED = "interesado", "Interested"
        NOT_INTERESTED = "no_interesado", "Not interested"
        CONVERTED = "convertido", "Converted"

    class Source(models.TextChoices):
        """Where the preregistration came from."""

        LANDING_PAGE = "landing_page", "Landing page"
        ADMIN_IMPORT = "admin_import", "Admin import"

    event = models.ForeignKey(
        "boletera_events.Event",
        on_delete=models.CASCADE,
        related_name="preregistrations",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="preregistrations",
    )
    name = models.CharField(max_length=200)
    email = models.EmailField()
    phone = models.CharField(max_length=50, blank=True, default="")
    company = models.CharField(max_length=200, blank=True, default="")
    interested_tickets = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.NEW)
    source = models.CharField(max_length=20, choices=Source.choices, default=Source.LANDING_PAGE)
    email_sent = models.BooleanField(default=False)
    email_sent_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.name} <{self.email}> ({self.event.slug})"
