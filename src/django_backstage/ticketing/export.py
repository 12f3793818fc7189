"""CSV export of registrations for staff."""

import csv
from collections.abc import Iterable
from typing import TextIO

from django.utils import timezone

from django_backstage.settings import get_config
from django_backstage.ticketing.models import Registration
from django_backstage.ticketing.stripe_utils import format_minor_units

CSV_COLUMNS = (
    "Registration ID",
    "Ticket Code",
    "Event",
    "Attendee Name",
    "Email",
    "Amount Paid",
    "Status",
    "Registered At",
    "Updated At",
)


def _timestamp(value) -> str:
    return timezone.localtime(value).strftime("%Y-%m-%d %H:%M:%S") if value else ""


def registration_row(registration: Registration, currency: str) -> list[str]:
    """Return one CSV row; amounts are converted to major units here and nowhere else."""
    return [
        str(registration.pk),
        registration.display_ticket_code,
        registration.event.title,
        registration.name,
        registration.email,
        format_minor_units(registration.amount_paid, currency),
        registration.get_status_display(),
        _timestamp(registration.created_at),
        _timestamp(registration.updated_at),
    ]


def write_registrations_csv(registrations: Iterable[Registration], stream: TextIO) -> int:
    """Write a header and one row per registration to ``stream``.

    Args:
        registrations: Registrations to export, ideally with ``event``
            already selected.
        stream: Any writable text stream, including an ``HttpResponse``.

    Returns:
        The number of data rows written.
    """
    currency = get_config().currency
    writer = csv.writer(stream)
    writer.writerow(CSV_COLUMNS)
    count = 0
    for registration in registrations:
        writer.writerow(registration_row(registration, currency))
        count += 1
    return count
