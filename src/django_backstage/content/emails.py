"""Welcome email for newsletter subscribers.

Sent fire-and-forget like the registration confirmation: a failure is logged
and the subscription stands.
"""

import logging
from urllib.parse import urlencode

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.dispatch import receiver
from django.template.loader import render_to_string

from django_backstage.content.models import NewsletterSubscriber
from django_backstage.content.signals import newsletter_subscribed
from django_backstage.settings import get_config

logger = logging.getLogger(__name__)

TEXT_TEMPLATE = "django_backstage/emails/newsletter_welcome.txt"
HTML_TEMPLATE = "django_backstage/emails/newsletter_welcome.html"
SUBJECT = "Welcome to the newsletter!"


def build_welcome_context(subscriber: NewsletterSubscriber) -> dict[str, object]:
    """Return the template context for a subscriber's welcome email."""
    site_url = get_config().site_url.rstrip("/")
    return {
        "subscriber": subscriber,
        "email": subscriber.email,
        "site_url": site_url,
        "unsubscribe_url": f"{site_url}/unsubscribe?{urlencode({'email': subscriber.email})}",
    }


def send_welcome_email(subscriber: NewsletterSubscriber) -> None:
    """Render and send the welcome email for ``subscriber``.

    Raises:
        Exception: Whatever the template engine or mail backend raises.
    """
    context = build_welcome_context(subscriber)
    message = EmailMultiAlternatives(
        subject=SUBJECT,
        body=render_to_string(TEXT_TEMPLATE, context),
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[subscriber.email],
    )
    message.attach_alternative(render_to_string(HTML_TEMPLATE, context), "text/html")
    message.send()


@receiver(newsletter_subscribed, dispatch_uid="django_backstage.content.emails.send_newsletter_welcome")
def send_newsletter_welcome(
    sender: type,  # noqa: ARG001
    *,
    subscriber: NewsletterSubscriber,
    **kwargs: object,
) -> None:
    """Send the welcome email when an address joins the newsletter."""
    try:
        send_welcome_email(subscriber)
    except Exception:
        logger.exception("Failed to send welcome email to newsletter subscriber %s", subscriber.pk)
    else:
        logger.info("Sent welcome email to newsletter subscriber %s", subscriber.pk)
