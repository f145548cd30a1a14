"""Django app configuration for the checkout app."""

from django.apps import AppConfig


class BoleteraCheckoutConfig(AppConfig):
    """Configuration for the checkout app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "boletera.checkout"
    label = "boletera_checkout"
    verbose_name = "Checkout"
