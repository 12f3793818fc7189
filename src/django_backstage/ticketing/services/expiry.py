"""Expiry of abandoned pending registrations.

A paid registration holds a capacity slot while it is ``pending``.  When the
buyer abandons the Stripe checkout page the slot must eventually be released:
pending rows older than ``DJANGO_BACKSTAGE["pending_registration_expiry_minutes"]``
are moved to ``expired``.  The checkout session itself closes when the hold
ends, but the sweep waits ``EXPIRY_GRACE_MINUTES`` longer so a payment made in
the last seconds of a session can still be confirmed by the success redirect
or the ``checkout.session.completed`` webhook before the row is released.
"""

import logging
from datetime import datetime, timedelta

from django.utils import timezone

from django_backstage.settings import get_config
from django_backstage.ticketing.models import Registration

logger = logging.getLogger(__name__)

# Minutes past the hold (and so past the Stripe session) before the sweep
# releases a pending registration.
EXPIRY_GRACE_MINUTES = 15


def pending_cutoff(now: datetime | None = None) -> datetime:
    """Return the creation time before which a pending registration is stale.

    That is the hold length plus ``EXPIRY_GRACE_MINUTES`` before ``now``.
    """
    now = now or timezone.now()
    return now - timedelta(minutes=get_config().pending_registration_expiry_minutes + EXPIRY_GRACE_MINUTES)


def stale_pending_registrations(*, event_id: int | None = None, now: datetime | None = None):
    """Return the queryset of pending registrations past their time to live."""
    queryset = Registration.objects.filter(
        status=Registration.Status.PENDING,
        created_at__lte=pending_cutoff(now),
    )
    if event_id is not None:
        queryset = queryset.filter(event_id=event_id)
    return queryset


def expire_stale_registrations(*, event_id: int | None = None, now: datetime | None = None) -> int:
    """Mark stale pending registrations as expired so they stop holding capacity.

    Args:
        event_id: Restrict the sweep to one event. ``None`` sweeps every event.
        now: Reference time, defaults to :func:`django.utils.timezone.now`.

    Returns:
        The number of registrations that were expired.
    """
    expired = stale_pending_registrations(event_id=event_id, now=now).update(
        status=Registration.Status.EXPIRED,
        updated_at=timezone.now(),
    )
    if expired:
        logger.info("Expired %d stale pending registration(s)", expired)
    return expired


def expire_registration_for_session(session_id: str, registration_id: str | int | None = None) -> Registration | None:
    """Expire the pending registration whose checkout session Stripe expired.

    The registration is found by its stored session id. When none matches,
    ``registration_id`` (the session's metadata) is tried, but only for a
    registration that never stored a session id, since one that stored a
    different id has moved on to a newer checkout.

    Args:
        session_id: The expired Checkout Session id.
        registration_id: The ``registration_id`` from the session metadata.

    Returns:
        The expired registration, or ``None`` when no pending registration
        uses that session (already paid, cancelled, or unknown).
    """
    pending = Registration.objects.filter(status=Registration.Status.PENDING)
    registration = pending.filter(stripe_session_id=session_id).first() if session_id else None
    if registration is None and str(registration_id or "").isdigit():
        registration = pending.filter(pk=int(registration_id), stripe_session_id="").first()
    if registration is None:
        return None
    updated = Registration.objects.filter(pk=registration.pk, status=Registration.Status.PENDING).update(
        status=Registration.Status.EXPIRED,
        updated_at=timezone.now(),
    )
    if not updated:
        return None
    registration.refresh_from_db()
    logger.info("Registration %s expired with checkout session %s", registration.pk, session_id)
    return registration
