"""On/off switches for the public parts of the site.

Flags live in ``DJANGO_BACKSTAGE["features"]`` as ``<name>_enabled`` booleans.
``public_ui`` gates everything a visitor can reach: with it off, event
registration and merchandise report disabled whatever their own flags say.
"""

from django.http import Http404, HttpRequest, HttpResponse

from django_backstage.settings import get_config

# Turned off together with public_ui.
_PUBLIC_FEATURES = ("registration", "merchandise")


def is_feature_enabled(feature: str) -> bool:
    """Return whether ``feature`` is switched on.

    Args:
        feature: ``"registration"``, ``"merchandise"`` or ``"public_ui"``.

    Raises:
        ValueError: For a name with no ``<name>_enabled`` flag.
    """
    flags = get_config().features
    flag_name = f"{feature}_enabled"
    if not hasattr(flags, flag_name):
        msg = f"Unknown feature: {feature!r}"
        raise ValueError(msg)

    if feature in _PUBLIC_FEATURES and not flags.public_ui_enabled:
        return False
    return bool(getattr(flags, flag_name))


def require_feature(feature: str) -> None:
    """Raise ``Http404`` unless ``feature`` is switched on."""
    if not is_feature_enabled(feature):
        raise Http404(f"{feature!r} is switched off")


class FeatureRequiredMixin:
    """Answer 404 from a class-based view while any of its features is off.

    ``required_feature`` takes one name or a tuple of names::

        class MerchandiseListView(FeatureRequiredMixin, View):
            required_feature = "merchandise"
    """

    required_feature: str | tuple[str, ...] = ""

    def dispatch(self, request: HttpRequest, *args: object, **kwargs: object) -> HttpResponse:
        names = (self.required_feature,) if isinstance(self.required_feature, str) else self.required_feature
        for name in filter(None, names):
            require_feature(name)
        return super().dispatch(request, *args, **kwargs)  # type: ignore[misc]
