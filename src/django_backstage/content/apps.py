"""Django app configuration for the content app."""

from django.apps import AppConfig


class DjangoBackstageContentConfig(AppConfig):
    """Configuration for the content app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_backstage.content"
    label = "backstage_content"
    verbose_name = "Content"

    def ready(self) -> None:
        """Connect the newsletter welcome email receiver."""
        import django_backstage.content.emails  # noqa: F401, PLC0415
