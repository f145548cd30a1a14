"""Django app configuration for the tickets app."""

from django.apps import AppConfig


class BoleteraTicketsConfig(AppConfig):
    """Configuration for the tickets app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "boletera.tickets"
    label = "boletera_tickets"
    verbose_name = "Tickets"
