"""Ticket code generation and branding.

Ticket codes are short, human-readable and unambiguous: they are drawn from an
alphabet without ``I``, ``O``, ``0`` and ``1`` and grouped as ``XXX-XXXX-XXXX``
(e.g. ``7AF-9K2M-QX3T``).  The stored code never carries the brand prefix; it
is added for display by :func:`format_ticket_code` (``NIH-7AF-9K2M-QX3T``).
"""

import logging
import secrets

from django_backstage.exceptions import CodeGenerationExhausted
from django_backstage.settings import get_config
from django_backstage.ticketing.models import Registration

logger = logging.getLogger(__name__)

TICKET_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
TICKET_CODE_SEGMENTS = (3, 4, 4)
_SEPARATOR = "-"


def generate_ticket_code() -> str:
    """Return a random ticket code such as ``7AF-9K2M-QX3T``.

    Uses :mod:`secrets` so codes cannot be predicted from earlier ones.
    """
    return _SEPARATOR.join(
        "".join(secrets.choice(TICKET_CODE_ALPHABET) for _ in range(length)) for length in TICKET_CODE_SEGMENTS
    )


def is_valid_ticket_code(code: str) -> bool:
    """Return whether ``code`` has the shape of an unbranded ticket code."""
    segments = code.split(_SEPARATOR)
    if len(segments) != len(TICKET_CODE_SEGMENTS):
        return False
    return all(
        len(segment) == length and all(char in TICKET_CODE_ALPHABET for char in segment)
        for segment, length in zip(segments, TICKET_CODE_SEGMENTS, strict=True)
    )


def generate_unique_ticket_code(max_attempts: int | None = None) -> str:
    """Return a ticket code not yet assigned to any registration.

    The store is checked before returning, and the unique constraint on
    ``Registration.ticket_code`` still guards the insert against a race.

    Args:
        max_attempts: Number of candidates to try. Defaults to
            ``DJANGO_BACKSTAGE["ticket_code_max_attempts"]``.

    Returns:
        A fresh, unused ticket code.

    Raises:
        CodeGenerationExhausted: If every candidate collided with an
            existing code.
    """
    if max_attempts is None:
        max_attempts = get_config().ticket_code_max_attempts
    for _ in range(max_attempts):
        code = generate_ticket_code()
        if not Registration.objects.filter(ticket_code=code).exists():
            return code
    logger.error("Exhausted %d attempts generating a unique ticket code", max_attempts)
    raise CodeGenerationExhausted(max_attempts)


def format_ticket_code(code: str) -> str:
    """Add the configured brand prefix to a stored ticket code."""
    prefix = get_config().ticket_code_prefix
    if not prefix:
        return code
    return f"{prefix}{_SEPARATOR}{code}"


def parse_ticket_code(value: str) -> str:
    """Strip whitespace, case and the brand prefix from a displayed ticket code.

    ``" nih-7af-9k2m-qx3t "`` becomes ``"7AF-9K2M-QX3T"``.  Values without
    the prefix are returned normalised but otherwise unchanged.
    """
    code = value.strip().upper()
    prefix = get_config().ticket_code_prefix.upper()
    if prefix and code.startswith(f"{prefix}{_SEPARATOR}"):
        code = code[len(prefix) + len(_SEPARATOR) :]
    return code
