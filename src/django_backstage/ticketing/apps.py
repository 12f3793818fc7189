"""Django app configuration for the ticketing app."""

from django.apps import AppConfig


class DjangoBackstageTicketingConfig(AppConfig):
    """Configuration for the ticketing app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_backstage.ticketing"
    label = "backstage_ticketing"
    verbose_name = "Ticketing"

    def ready(self) -> None:
        """Connect the confirmation email receiver."""
        import django_backstage.ticketing.emails  # noqa: F401, PLC0415
