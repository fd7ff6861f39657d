"""App config for the pricing module."""
from django.apps import AppConfig


class PricingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "pricing"
    verbose_name = "Tarification"

    def ready(self):
        import pricing.signals  # noqa: F401
