"""Django app configuration for the support app."""

from django.apps import AppConfig


class BoleteraSupportConfig(AppConfig):
    """Configuration for the support app.

    Connects the receiver that links orphan tickets to new accounts.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "boletera.support"
    label = "boletera_support"
    verbose_name = "Support"

    def ready(self) -> None:
        """Import signal receivers."""
        import boletera.support.signals  # noqa: F401, PLC0415
