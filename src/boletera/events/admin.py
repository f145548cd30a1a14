"""Django admin configuration for the events app."""

from django.contrib import admin

from boletera.events.models import Event, TicketType


class TicketTypeInline(admin.TabularInline):
    """Inline editor for an event's ticket types."""

    model = TicketType
    extra = 0
    fields = ("name", "slug", "price", "currency", "access_type", "total_stock", "sold_count", "is_active")
    readonly_fields = ("sold_count",)
    prepopulated_fields = {"slug": ("name",)}


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    """Admin interface for managing events.

    PayPal credentials are stored encrypted and only need to be filled in
    when an event uses a different PayPal account than the global one.
    """

    list_display = ("name", "slug", "start_date", "end_date", "published", "allow_preregistration")
    list_filter = ("published", "allow_preregistration")
    search_fields = ("name", "slug", "location")
    prepopulated_fields = {"slug": ("name",)}
    inlines = [TicketTypeInline]
    fieldsets = (
        (None, {"fields": ("name", "slug", "start_date", "end_date", "location", "contact_email")}),
        (
            "Public page",
            {"fields": ("published", "public_description", "description", "featured_image_url", "terms_and_conditions")},
        ),
        ("Preregistration", {"fields": ("allow_preregistration", "preregistration_message")}),
        ("PayPal", {"classes": ("collapse",), "fields": ("paypal_client_id", "paypal_client_secret")}),
        ("Internal", {"fields": ("internal_notes",)}),
    )


@admin.register(TicketType)
class TicketTypeAdmin(admin.ModelAdmin):
    """Admin interface for managing ticket types."""

    list_display = ("name", "event", "price", "currency", "access_type", "sold_count", "total_stock", "is_active")
    list_filter = ("event", "access_type", "is_active", "is_courtesy")
    search_fields = ("name", "slug")
    readonly_fields = ("sold_count",)
    prepopulated_fields = {"slug": ("name",)}
