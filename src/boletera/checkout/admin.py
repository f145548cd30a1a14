"""Django admin configuration for the checkout app."""

from django.contrib import admin

from boletera.checkout.models import Order, OrderLineItem, Preregistration


class OrderLineItemInline(admin.TabularInline):
    """Read-only inline for the price snapshot of an order."""

    model = OrderLineItem
    extra = 0
    readonly_fields = ("ticket_type", "description", "quantity", "unit_price", "currency", "line_total", "selected_days")
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Admin interface for orders.

    Payment fields are read-only; orders change state through the checkout
    services, never by hand.
    """

    list_display = ("reference", "event", "kind", "status", "customer_email", "total", "currency", "created_at")
    list_filter = ("event", "kind", "status", "account_outcome")
    search_fields = ("reference", "provider_order_id", "customer_email", "customer_name")
    readonly_fields = (
        "reference",
        "provider_order_id",
        "capture_id",
        "total",
        "currency",
        "account_outcome",
        "provider_payload",
        "captured_at",
        "created_at",
        "updated_at",
    )
    inlines = [OrderLineItemInline]


@admin.register(Preregistration)
class PreregistrationAdmin(admin.ModelAdmin):
    """Admin interface for following up on preregistrations."""

    list_display = ("name", "email", "event", "status", "source", "email_sent", "created_at")
    list_filter = ("event", "status", "source", "email_sent")
    search_fields = ("name", "email", "company")
    readonly_fields = ("interested_tickets", "email_sent_at", "created_at", "updated_at")
