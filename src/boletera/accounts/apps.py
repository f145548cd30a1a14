"""Django app configuration for the accounts app."""

from django.apps import AppConfig


class BoleteraAccountsConfig(AppConfig):
    """Configuration for the accounts app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "boletera.accounts"
    label = "boletera_accounts"
    verbose_name = "Accounts"
