"""Django admin configuration for the tickets app."""

from django.contrib import admin

from boletera.tickets.models import CheckIn, OrphanRecovery, Ticket


class OrphanRecoveryInline(admin.StackedInline):
    """Recovery details shown on an orphan ticket."""

    model = OrphanRecovery
    extra = 0
    readonly_fields = ("recovered_at", "linked_to_user", "recovery_method", "created_at")


class CheckInInline(admin.TabularInline):
    """Read-only check-in history of a ticket."""

    model = CheckIn
    extra = 0
    readonly_fields = ("day", "performed_by", "notes", "created_at", "undone_at")
    can_delete = False


@admin.register(Ticket)
class TicketAdmin(admin.ModelAdmin):
    """Admin interface for issued tickets.

    Linking orphans to accounts goes through the support API so the audit
    fields are filled in; they are read-only here.
    """

    list_display = ("qr_id", "ticket_type_name", "event", "customer_email", "user", "status", "created_via")
    list_filter = ("event", "status", "is_courtesy", "created_via")
    search_fields = ("qr_id", "customer_email", "customer_name", "attendee_name", "order__reference")
    readonly_fields = ("qr_id", "order", "amount_paid", "linked_at", "linked_via", "linked_by", "created_at")
    raw_id_fields = ("user", "created_by")
    inlines = [OrphanRecoveryInline, CheckInInline]


@admin.register(OrphanRecovery)
class OrphanRecoveryAdmin(admin.ModelAdmin):
    """Admin interface for orphan recovery records."""

    list_display = ("ticket", "target_email", "recovery_status", "account_requested", "recovered_at")
    list_filter = ("recovery_status", "account_requested")
    search_fields = ("target_email", "ticket__qr_id")
