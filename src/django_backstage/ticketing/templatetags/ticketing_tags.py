"""Template tags and filters for the ticketing app."""

from django import template

from django_backstage.settings import get_config
from django_backstage.ticketing.stripe_utils import ZERO_DECIMAL_CURRENCIES, to_major_units

register = template.Library()


@register.filter
def format_money(amount: int | None, currency: str = "") -> str:
    """Format an amount in minor units as a human-readable price.

    Handles ``None`` gracefully by treating it as zero.  Zero-decimal
    currencies (e.g. JPY) are rendered without decimal places.

    Usage in templates::

        {% load ticketing_tags %}
        {{ registration.amount_paid|format_money }}
        {{ product.price_cents|format_money:"JPY" }}

    Args:
        amount: The amount in the smallest currency unit, or ``None``.
        currency: An ISO 4217 currency code. Defaults to the configured
            currency, whose configured symbol is then used.

    Returns:
        A formatted string such as ``"$25.00"`` or ``"JPY 1000"``.
    """
    config = get_config()
    currency = currency or config.currency
    if currency.lower() == config.currency.lower():
        symbol = config.currency_symbol
    else:
        symbol = f"{currency.upper()} "

    major = to_major_units(amount or 0, currency)
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return f"{symbol}{int(major)}"
    return f"{symbol}{major:,.2f}"


@register.simple_tag
def stripe_public_key() -> str:
    """Return the configured Stripe publishable key for client-side code.

    Usage in templates::

        {% load ticketing_tags %}
        <script>const stripe = Stripe("{% stripe_public_key %}");</script>
    """
    return get_config().stripe.publishable_key or ""
