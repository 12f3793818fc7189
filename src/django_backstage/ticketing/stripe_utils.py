"""Money formatting helpers and key obfuscation for logging.

Amounts are stored everywhere as integers in the smallest currency unit (e.g.
cents for USD), which is also what the Stripe API expects.  Conversion to a
major-unit :class:`~decimal.Decimal` only happens at the presentation edge:
CSV export, emails and JSON payloads that show a price.

Most currencies are "normal-decimal" where 1 unit = 100 smallest units, but a
subset of currencies are "zero-decimal" where the integer amount *is* the unit
amount.
"""

from decimal import Decimal

_OBFUSCATE_VISIBLE_CHARS = 4

# Stripe charges these in whole units, with no minor unit.
ZERO_DECIMAL_CURRENCIES = frozenset(
    "BIF CLP DJF GNF JPY KMF KRW MGA PYG RWF UGX VND VUV XAF XOF XPF".split()
)


def to_major_units(amount: int, currency: str) -> Decimal:
    """Convert an amount in minor units into a major-unit Decimal.

    ``2500`` in USD becomes ``Decimal("25.00")``; zero-decimal currencies such
    as JPY are returned unchanged.

    Args:
        amount: The integer amount in the smallest currency unit.
        currency: An ISO 4217 currency code (case-insensitive).

    Returns:
        The amount as a :class:`~decimal.Decimal` in major units.
    """
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(amount)
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))


def format_minor_units(amount: int, currency: str) -> str:
    """Render a minor-unit amount as a plain major-unit string (``"25.00"``)."""
    return str(to_major_units(amount, currency))


def obfuscate_key(key: str) -> str:
    """Mask a Stripe key for log lines, keeping only its last four characters.

    ``"sk_test_abcdef1234"`` becomes ``"****1234"``; keys of fewer than four
    characters come back as ``"****"``.
    """
    visible = key[-_OBFUSCATE_VISIBLE_CHARS:] if len(key) >= _OBFUSCATE_VISIBLE_CHARS else ""
    return f"****{visible}"
