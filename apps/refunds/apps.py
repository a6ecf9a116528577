# apps/refunds/apps.py

from django.apps import AppConfig


class RefundsConfig(AppConfig):
    """Configuration for the refunds app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.refunds"
    label = "refunds"
    verbose_name = "Refunds"
