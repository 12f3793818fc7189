"""Tests for expiring abandoned pending registrations and the expire_registrations command."""

from datetime import UTC, datetime, timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import override_settings
from django.utils import timezone

from django_backstage.ticketing.models import Event, Registration
from django_backstage.ticketing.services.capacity import get_event_stats
from django_backstage.ticketing.services.expiry import (
    EXPIRY_GRACE_MINUTES,
    expire_registration_for_session,
    expire_stale_registrations,
    pending_cutoff,
    stale_pending_registrations,
)

# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def event(db):
    return Event.objects.create(
        title="Release Show",
        slug="release-show",
        start_date=datetime(2027, 6, 12, 21, 0, tzinfo=UTC),
        location="Chicago, IL",
        max_attendees=2,
        is_free=False,
        ticket_price_cents=2500,
    )


@pytest.fixture
def other_event(db):
    return Event.objects.create(
        title="Matinee",
        slug="matinee",
        start_date=datetime(2027, 6, 13, 14, 0, tzinfo=UTC),
        location="Chicago, IL",
        is_free=False,
        ticket_price_cents=1500,
    )


def _pending(event, email, age_minutes, **extra):
    registration = Registration.objects.create(
        event=event,
        name=email.split("@")[0],
        email=email,
        status=Registration.Status.PENDING,
        amount_paid=event.ticket_price_cents,
        **extra,
    )
    Registration.objects.filter(pk=registration.pk).update(
        created_at=timezone.now() - timedelta(minutes=age_minutes),
    )
    return registration


# -- Sweep --------------------------------------------------------------------


@pytest.mark.django_db
class TestExpireStaleRegistrations:
    def test_cutoff_uses_configured_ttl_plus_grace(self):
        now = datetime(2027, 1, 1, 12, 0, tzinfo=UTC)
        assert pending_cutoff(now) == now - timedelta(minutes=60 + EXPIRY_GRACE_MINUTES)
        with override_settings(DJANGO_BACKSTAGE={"pending_registration_expiry_minutes": 30}):
            assert pending_cutoff(now) == now - timedelta(minutes=30 + EXPIRY_GRACE_MINUTES)

    def test_expires_only_stale_pending(self, event):
        stale = _pending(event, "stale@x.com", 90)
        fresh = _pending(event, "fresh@x.com", 5)

        assert expire_stale_registrations() == 1

        stale.refresh_from_db()
        fresh.refresh_from_db()
        assert stale.status == Registration.Status.EXPIRED
        assert fresh.status == Registration.Status.PENDING

    def test_completed_registrations_untouched(self, event):
        done = _pending(event, "done@x.com", 600)
        Registration.objects.filter(pk=done.pk).update(status=Registration.Status.COMPLETED)
        assert expire_stale_registrations() == 0

    def test_restricted_to_event(self, event, other_event):
        _pending(event, "a@x.com", 90)
        other = _pending(other_event, "b@x.com", 90)

        assert expire_stale_registrations(event_id=event.pk) == 1

        other.refresh_from_db()
        assert other.status == Registration.Status.PENDING

    def test_hold_kept_through_grace_period(self, event):
        just_closed = _pending(event, "late@x.com", 61)
        assert expire_stale_registrations() == 0
        just_closed.refresh_from_db()
        assert just_closed.status == Registration.Status.PENDING

    def test_expiry_releases_capacity(self, event):
        _pending(event, "a@x.com", 90)
        _pending(event, "b@x.com", 90)
        assert get_event_stats(event).is_sold_out is True

        expire_stale_registrations(event_id=event.pk)

        assert get_event_stats(event).spots_left == 2

    def test_stale_queryset_with_reference_time(self, event):
        registration = _pending(event, "a@x.com", 10)
        later = timezone.now() + timedelta(hours=2)
        assert list(stale_pending_registrations(now=later)) == [registration]
        assert list(stale_pending_registrations()) == []


@pytest.mark.django_db
class TestExpireRegistrationForSession:
    def test_expires_pending_owner(self, event):
        registration = _pending(event, "a@x.com", 5, stripe_session_id="cs_gone")
        expired = expire_registration_for_session("cs_gone")
        assert expired.pk == registration.pk
        assert expired.status == Registration.Status.EXPIRED

    def test_completed_registration_kept(self, event):
        registration = _pending(event, "a@x.com", 5, stripe_session_id="cs_paid")
        Registration.objects.filter(pk=registration.pk).update(status=Registration.Status.COMPLETED)
        assert expire_registration_for_session("cs_paid") is None
        registration.refresh_from_db()
        assert registration.status == Registration.Status.COMPLETED

    def test_unknown_session(self, db):
        assert expire_registration_for_session("cs_nobody") is None


# -- Management command -------------------------------------------------------


@pytest.mark.django_db
class TestExpireRegistrationsCommand:
    def test_expires_and_reports(self, event):
        stale = _pending(event, "a@x.com", 90)
        out = StringIO()

        call_command("expire_registrations", stdout=out)

        assert "Expired 1 pending registration(s) older than 75 minutes." in out.getvalue()
        stale.refresh_from_db()
        assert stale.status == Registration.Status.EXPIRED

    def test_dry_run_changes_nothing(self, event):
        stale = _pending(event, "a@x.com", 90)
        out = StringIO()

        call_command("expire_registrations", "--dry-run", stdout=out)

        assert "1 pending registration(s) older than 75 minutes would expire." in out.getvalue()
        stale.refresh_from_db()
        assert stale.status == Registration.Status.PENDING

    def test_event_filter(self, event, other_event):
        _pending(event, "a@x.com", 90)
        other = _pending(other_event, "b@x.com", 90)

        call_command("expire_registrations", "--event", str(event.pk), stdout=StringIO())

        other.refresh_from_db()
        assert other.status == Registration.Status.PENDING

    def test_unknown_event(self, db):
        with pytest.raises(CommandError, match="Event 999 does not exist"):
            call_command("expire_registrations", "--event", "999", stdout=StringIO())
