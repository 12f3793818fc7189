"""Settings for django-backstage.

Everything is read from one ``DJANGO_BACKSTAGE`` dict in the Django settings
module, with nested ``stripe`` and ``features`` dicts::

    DJANGO_BACKSTAGE = {
        "site_url": "https://example.com",
        "ticket_code_prefix": "NIH",
        "stripe": {"secret_key": "sk_live_...", "webhook_secret": "whsec_..."},
        "features": {"merchandise_enabled": False},
    }

Code reads it through ``get_config()``, never from ``settings`` directly.
"""

import functools
from collections.abc import Mapping
from dataclasses import dataclass, field

from django.conf import settings
from django.test.signals import setting_changed

# Stripe Checkout sessions can be made to expire no sooner than 30 minutes and
# no later than 24 hours after creation.
MIN_CHECKOUT_EXPIRY_MINUTES = 30
MAX_CHECKOUT_EXPIRY_MINUTES = 24 * 60


@dataclass(frozen=True, slots=True)
class StripeConfig:
    """Keys and API pinning for the Stripe account that takes payments."""

    secret_key: str | None = None
    publishable_key: str | None = None
    webhook_secret: str | None = None
    api_version: str = "2024-12-18"
    webhook_tolerance: int = 300


@dataclass(frozen=True, slots=True)
class FeaturesConfig:
    """Switches for the visitor-facing endpoints, all on unless set to ``False``."""

    registration_enabled: bool = True
    merchandise_enabled: bool = True
    public_ui_enabled: bool = True


@dataclass(frozen=True, slots=True)
class BackstageConfig:
    """Top-level django-backstage configuration."""

    stripe: StripeConfig = field(default_factory=StripeConfig)
    features: FeaturesConfig = field(default_factory=FeaturesConfig)
    site_url: str = ""
    currency: str = "usd"
    currency_symbol: str = "$"
    ticket_code_prefix: str = "NIH"
    ticket_code_max_attempts: int = 10
    pending_registration_expiry_minutes: int = 60


@functools.lru_cache(maxsize=1)
def get_config() -> BackstageConfig:
    """Return the validated ``BackstageConfig`` for the current settings.

    Built once and cached. ``override_settings(DJANGO_BACKSTAGE=...)`` drops
    the cache through the ``setting_changed`` receiver below.

    Raises:
        TypeError: If a section is not a mapping or a value has the wrong type.
        ValueError: If a value is out of range.
    """
    raw = getattr(settings, "DJANGO_BACKSTAGE", {})
    if not isinstance(raw, Mapping):
        msg = "DJANGO_BACKSTAGE must be a mapping (dict-like object)"
        raise TypeError(msg)
    raw_data = dict(raw)

    stripe_data = raw_data.pop("stripe", {})
    features_data = raw_data.pop("features", {})
    if not isinstance(stripe_data, Mapping):
        msg = "DJANGO_BACKSTAGE['stripe'] must be a mapping (dict-like object)"
        raise TypeError(msg)
    if not isinstance(features_data, Mapping):
        msg = "DJANGO_BACKSTAGE['features'] must be a mapping (dict-like object)"
        raise TypeError(msg)

    config = BackstageConfig(
        stripe=StripeConfig(**dict(stripe_data)),
        features=FeaturesConfig(**dict(features_data)),
        **raw_data,
    )
    _validate_backstage_config(config)
    return config


def _validate_backstage_config(config: BackstageConfig) -> None:
    """Reject values that would break registration or checkout at runtime."""
    expiry = config.pending_registration_expiry_minutes
    if (
        not isinstance(expiry, int)
        or isinstance(expiry, bool)
        or not MIN_CHECKOUT_EXPIRY_MINUTES <= expiry <= MAX_CHECKOUT_EXPIRY_MINUTES
    ):
        msg = (
            "DJANGO_BACKSTAGE['pending_registration_expiry_minutes'] must be an integer between "
            f"{MIN_CHECKOUT_EXPIRY_MINUTES} and {MAX_CHECKOUT_EXPIRY_MINUTES}"
        )
        raise ValueError(msg)
    attempts = config.ticket_code_max_attempts
    if not isinstance(attempts, int) or isinstance(attempts, bool) or attempts <= 0:
        msg = "DJANGO_BACKSTAGE['ticket_code_max_attempts'] must be a positive integer"
        raise ValueError(msg)
    if not isinstance(config.currency, str) or not config.currency.strip():
        msg = "DJANGO_BACKSTAGE['currency'] must be a non-empty string"
        raise ValueError(msg)
    if not isinstance(config.currency_symbol, str) or not config.currency_symbol.strip():
        msg = "DJANGO_BACKSTAGE['currency_symbol'] must be a non-empty string"
        raise ValueError(msg)
    if not isinstance(config.ticket_code_prefix, str):
        msg = "DJANGO_BACKSTAGE['ticket_code_prefix'] must be a string"
        raise TypeError(msg)
    if not isinstance(config.site_url, str):
        msg = "DJANGO_BACKSTAGE['site_url'] must be a string"
        raise TypeError(msg)
    if not isinstance(config.stripe.webhook_tolerance, int) or config.stripe.webhook_tolerance <= 0:
        msg = "DJANGO_BACKSTAGE['stripe']['webhook_tolerance'] must be a positive integer"
        raise ValueError(msg)


def _clear_config_cache(*, setting: str, **kwargs: object) -> None:  # noqa: ARG001
    if setting == "DJANGO_BACKSTAGE":
        get_config.cache_clear()


setting_changed.connect(_clear_config_cache, dispatch_uid="django_backstage.settings.clear_config_cache")
