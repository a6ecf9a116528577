# apps/payments/apps.py

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.payments"
    label = "payments"
    verbose_name = "Payments"

    def ready(self):
        """Build the gateway client once the settings are loaded."""
        from apps.payments import gateway

        gateway.configure(gateway.build_gateway_client())
