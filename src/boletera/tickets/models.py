"""Issued ticket, orphan recovery, and check-in models for boletera."""

import secrets

from django.conf import settings
from django.db import models


def generate_qr_id() -> str:
    """Return a random, URL-safe identifier for a ticket's QR code."""
    return f"qr_{secrets.token_hex(12)}"


class Ticket(models.Model):
    """A single admission issued from an order.

    Tickets without a ``user`` are *orphans*: they were paid for (or issued
    as courtesies) but are not attached to any account yet. Support staff
    reconcile them through :class:`OrphanRecovery`.
    """

    class Status(models.TextChoices):
        """Lifecycle states for a ticket."""

        PURCHASED = "purchased", "Purchased"
        CONFIGURED = "configured", "Configured"
        USED = "used", "Used"

    class CreatedVia(models.TextChoices):
        """How the ticket came into existence."""

        PURCHASE = "purchase", "Purchase"
        COURTESY_LINKED = "admin_courtesy_linked", "Courtesy (pending link)"
        COURTESY_LINKED_IMMEDIATE = "admin_courtesy_linked_immediate", "Courtesy (linked)"
        COURTESY_STANDALONE = "admin_courtesy_standalone", "Courtesy (standalone)"

    class LinkedVia(models.TextChoices):
        """How an orphan got attached to an account."""

        MANUAL_ADMIN = "manual_admin", "Linked by staff"
        AUTO_EMAIL_MATCH = "auto_email_match", "Linked on sign up"

    event = models.ForeignKey(
        "boletera_events.Event",
        on_delete=models.PROTECT,
        related_name="tickets",
    )
    ticket_type = models.ForeignKey(
        "boletera_events.TicketType",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="tickets",
    )
    order = models.ForeignKey(
        "boletera_checkout.Order",
        on_delete=models.CASCADE,
        related_name="tickets",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="tickets",
    )
    ticket_type_name = models.CharField(max_length=200)
    customer_name = models.CharField(max_length=200)
    customer_email = models.EmailField()
    customer_phone = models.CharField(max_length=50, blank=True, default="")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PURCHASED)
    qr_id = models.CharField(max_length=64, unique=True, default=generate_qr_id)
    amount_paid = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    currency = models.CharField(max_length=3, default="MXN")
    authorized_days = models.JSONField(default=list, blank=True)
    used_days = models.JSONField(default=list, blank=True)

    attendee_name = models.CharField(max_length=200, blank=True, default="")
    attendee_email = models.EmailField(blank=True, default="")
    attendee_phone = models.CharField(max_length=50, blank=True, default="")
    special_requirements = models.TextField(blank=True, default="")

    is_courtesy = models.BooleanField(default=False)
    courtesy_type = models.CharField(max_length=50, blank=True, default="")
    created_via = models.CharField(max_length=40, choices=CreatedVia.choices, default=CreatedVia.PURCHASE)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    linked_at = models.DateTimeField(null=True, blank=True)
    linked_via = models.CharField(max_length=20, choices=LinkedVia.choices, blank=True, default="")
    linked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.ticket_type_name} ({self.qr_id})"

    @property
    def is_orphan(self) -> bool:
        """Whether the ticket still needs to be attached to an account."""
        return self.user_id is None and self.created_via != self.CreatedVia.COURTESY_STANDALONE


class OrphanRecovery(models.Model):
    """Recovery bookkeeping for a ticket that was issued without an account.

    Created when a purchase could not attach its tickets to a user (guest
    checkout or a failed account creation) and for courtesy tickets waiting
    for their recipient to sign up.
    """

    class RecoveryStatus(models.TextChoices):
        """Where the recovery stands."""

        PENDING = "pending", "Pending"
        RECOVERED = "recovered", "Recovered"
        EXPIRED = "expired", "Expired"

    ticket = models.OneToOneField(
        Ticket,
        on_delete=models.CASCADE,
        related_name="recovery",
    )
    recovery_status = models.CharField(
        max_length=20,
        choices=RecoveryStatus.choices,
        default=RecoveryStatus.PENDING,
    )
    target_email = models.EmailField(help_text="Email the ticket should end up attached to.")
    account_requested = models.BooleanField(default=False)
    password_provided = models.BooleanField(default=False)
    failure_reason = models.TextField(blank=True, default="")
    recovered_at = models.DateTimeField(null=True, blank=True)
    linked_to_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    recovery_method = models.CharField(max_length=20, choices=Ticket.LinkedVia.choices, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "orphan recoveries"

    def __str__(self) -> str:
        return f"Recovery for {self.ticket.qr_id} ({self.recovery_status})"


class CheckIn(models.Model):
    """One admission of a ticket on one event day."""

    ticket = models.ForeignKey(
        Ticket,
        on_delete=models.CASCADE,
        related_name="checkins",
    )
    day = models.DateField()
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    undone_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Check-in {self.ticket.qr_id} on {self.day}"
