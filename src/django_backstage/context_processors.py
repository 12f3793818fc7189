"""Django context processors for django-backstage."""

from django.http import HttpRequest

from django_backstage.features import is_feature_enabled

# Feature names that correspond to FeaturesConfig boolean attributes.
_FEATURE_NAMES = (
    "registration",
    "merchandise",
    "public_ui",
)


def backstage_features(request: HttpRequest) -> dict[str, dict[str, bool]]:  # noqa: ARG001
    """Expose resolved feature toggle flags to templates.

    Add ``"django_backstage.context_processors.backstage_features"`` to the
    ``context_processors`` list in your ``TEMPLATES`` setting.

    Usage in templates::

        {% if backstage_features.registration_enabled %}
            <button data-event="{{ event.pk }}">Register</button>
        {% endif %}
    """
    return {"backstage_features": {f"{name}_enabled": is_feature_enabled(name) for name in _FEATURE_NAMES}}
