"""Confirmation email for completed registrations.

The email is fire-and-forget: a failure to render or send it is logged and
never undoes the registration or surfaces to the attendee.
"""

import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.dispatch import receiver
from django.template.loader import render_to_string
from django.utils import timezone

from django_backstage.ticketing.models import Registration
from django_backstage.ticketing.signals import registration_completed

logger = logging.getLogger(__name__)

TEXT_TEMPLATE = "django_backstage/emails/registration_confirmed.txt"
HTML_TEMPLATE = "django_backstage/emails/registration_confirmed.html"


def build_confirmation_context(registration: Registration) -> dict[str, object]:
    """Return the template context for a registration's confirmation email."""
    event = registration.event
    return {
        "registration": registration,
        "registration_id": registration.pk,
        "name": registration.name,
        "event": event,
        "event_title": event.title,
        "event_date": timezone.localtime(event.start_date) if timezone.is_aware(event.start_date) else event.start_date,
        "event_location": event.venue or event.location,
        "event_address": event.address,
        "ticket_code": registration.display_ticket_code,
        "amount_paid": registration.amount_paid,
        "is_free": registration.amount_paid == 0,
    }


def send_confirmation_email(registration: Registration) -> None:
    """Render and send the confirmation email for ``registration``.

    Raises:
        Exception: Whatever the template engine or mail backend raises.
    """
    context = build_confirmation_context(registration)
    message = EmailMultiAlternatives(
        subject=f"You're registered: {registration.event.title}",
        body=render_to_string(TEXT_TEMPLATE, context),
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[registration.email],
    )
    message.attach_alternative(render_to_string(HTML_TEMPLATE, context), "text/html")
    message.send()


@receiver(registration_completed, dispatch_uid="django_backstage.ticketing.emails.send_registration_confirmation")
def send_registration_confirmation(sender: type, *, registration: Registration, **kwargs: object) -> None:  # noqa: ARG001
    """Send the confirmation email when a registration completes."""
    try:
        send_confirmation_email(registration)
    except Exception:
        logger.exception("Failed to send confirmation email for registration %s", registration.pk)
    else:
        logger.info("Sent confirmation email for registration %s", registration.pk)
