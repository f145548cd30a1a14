"""Django app configuration for the events app."""

from django.apps import AppConfig


class BoleteraEventsConfig(AppConfig):
    """Configuration for the events app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "boletera.events"
    label = "boletera_events"
    verbose_name = "Events"
