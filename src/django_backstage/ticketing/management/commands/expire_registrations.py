"""Management command to expire abandoned pending registrations."""

from typing import Any

from django.core.management.base import BaseCommand, CommandError, CommandParser

from django_backstage.settings import get_config
from django_backstage.ticketing.models import Event
from django_backstage.ticketing.services.expiry import (
    EXPIRY_GRACE_MINUTES,
    expire_stale_registrations,
    stale_pending_registrations,
)


class Command(BaseCommand):
    """Expire pending registrations older than the configured hold plus a grace period.

    Frees the capacity slots held by buyers who abandoned the Stripe checkout
    page.  Intended to run on a schedule (e.g. every few minutes from cron).

    Usage::

        manage.py expire_registrations
        manage.py expire_registrations --event 12
        manage.py expire_registrations --dry-run
    """

    help = "Mark stale pending registrations as expired so they stop holding capacity."

    def add_arguments(self, parser: CommandParser) -> None:
        """Define the command-line arguments accepted by this command.

        Args:
            parser: The argument parser to configure.
        """
        parser.add_argument(
            "--event",
            type=int,
            default=None,
            help="Only expire registrations for this event id.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            default=False,
            help="Report how many registrations would expire without changing them.",
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the expiry sweep.

        Args:
            *args: Positional arguments (unused).
            **options: Parsed command-line options.
        """
        event_id: int | None = options["event"]
        dry_run: bool = options["dry_run"]

        if event_id is not None and not Event.objects.filter(pk=event_id).exists():
            raise CommandError(f"Event {event_id} does not exist.")

        minutes = get_config().pending_registration_expiry_minutes + EXPIRY_GRACE_MINUTES
        if dry_run:
            count = stale_pending_registrations(event_id=event_id).count()
            self.stdout.write(
                self.style.NOTICE(f"{count} pending registration(s) older than {minutes} minutes would expire.")
            )
            return

        count = expire_stale_registrations(event_id=event_id)
        self.stdout.write(self.style.SUCCESS(f"Expired {count} pending registration(s) older than {minutes} minutes."))
