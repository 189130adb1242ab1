"""
Storefront application configuration.
"""

from django.apps import AppConfig


class StorefrontConfig(AppConfig):
    """Configuration for the storefront Django application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "storefront"
    verbose_name = "VIP Smoke Storefront"

    def ready(self):
        """
        Register signal handlers and build the process-wide background
        classification service from settings.
        """
        from storefront import signals  # noqa: F401
        from storefront.services.background_classifier import configure_classification_service

        configure_classification_service()
