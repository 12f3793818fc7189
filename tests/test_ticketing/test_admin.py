"""Tests for the ticketing admin: changelists and registration actions."""

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest
from django.contrib.admin.sites import AdminSite
from django.contrib.auth import get_user_model
from django.contrib.messages.storage.fallback import FallbackStorage

from django_backstage.ticketing.admin import EventAdmin, RegistrationAdmin, StripeEventAdmin
from django_backstage.ticketing.models import Event, Registration, StripeEvent

User = get_user_model()

# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def superuser(db):
    return User.objects.create_superuser(username="boss", email="boss@example.com", password="pw")


@pytest.fixture
def event(db):
    return Event.objects.create(
        title="Release Show",
        slug="release-show",
        start_date=datetime(2027, 6, 12, 21, 0, tzinfo=UTC),
        location="Chicago, IL",
        max_attendees=10,
        is_free=False,
        ticket_price_cents=2500,
    )


@pytest.fixture
def admin_request(rf, superuser):
    request = rf.post("/admin/")
    request.user = superuser
    request.session = {}
    request._messages = FallbackStorage(request)
    return request


def _registration(event, email, status, **extra):
    return Registration.objects.create(event=event, name=email.split("@")[0], email=email, status=status, **extra)


def _messages(request):
    return [str(m) for m in request._messages]


# -- Changelists --------------------------------------------------------------


@pytest.mark.django_db
class TestChangelists:
    def test_event_changelist_shows_counts(self, admin_client, event):
        _registration(event, "a@x.com", Registration.Status.COMPLETED)
        response = admin_client.get("/admin/backstage_ticketing/event/")
        assert response.status_code == 200
        assert b"Release Show" in response.content

    def test_registration_changelist(self, admin_client, event):
        _registration(event, "a@x.com", Registration.Status.PENDING)
        response = admin_client.get("/admin/backstage_ticketing/registration/")
        assert response.status_code == 200
        assert b"a@x.com" in response.content

    def test_registration_add_disabled(self, admin_client, db):
        response = admin_client.get("/admin/backstage_ticketing/registration/add/")
        assert response.status_code == 403

    def test_stripe_event_read_only(self, admin_request):
        model_admin = StripeEventAdmin(StripeEvent, AdminSite())
        assert model_admin.has_add_permission(admin_request) is False
        assert model_admin.has_change_permission(admin_request) is False
        assert model_admin.has_delete_permission(admin_request) is False


# -- Actions ------------------------------------------------------------------


@pytest.mark.django_db
class TestEventActions:
    def test_registration_count_display(self, admin_request, event):
        _registration(event, "a@x.com", Registration.Status.COMPLETED)
        _registration(event, "b@x.com", Registration.Status.EXPIRED)
        model_admin = EventAdmin(Event, AdminSite())
        annotated = model_admin.get_queryset(admin_request).get(pk=event.pk)
        assert model_admin.registration_count(annotated) == 1

    def test_soft_delete_action(self, admin_request, event):
        model_admin = EventAdmin(Event, AdminSite())
        model_admin.soft_delete_events(admin_request, Event.objects.all())
        event.refresh_from_db()
        assert event.is_deleted
        assert "Soft-deleted 1 event(s)." in _messages(admin_request)


@pytest.mark.django_db
class TestRegistrationActions:
    def test_cancel_action(self, admin_request, event):
        pending = _registration(event, "a@x.com", Registration.Status.PENDING)
        completed = _registration(event, "b@x.com", Registration.Status.COMPLETED)
        model_admin = RegistrationAdmin(Registration, AdminSite())

        model_admin.cancel_registrations(admin_request, Registration.objects.all())

        pending.refresh_from_db()
        completed.refresh_from_db()
        assert pending.status == Registration.Status.CANCELLED
        assert completed.status == Registration.Status.COMPLETED
        messages = _messages(admin_request)
        assert "Cancelled 1 registration(s)." in messages
        assert any(f"Registration {completed.pk}" in m for m in messages)

    def test_refund_action(self, admin_request, event):
        completed = _registration(
            event,
            "a@x.com",
            Registration.Status.COMPLETED,
            amount_paid=2500,
            stripe_payment_intent_id="pi_a",
        )
        model_admin = RegistrationAdmin(Registration, AdminSite())

        with patch("django_backstage.ticketing.stripe_client.stripe.StripeClient") as mock_cls:
            instance = MagicMock()
            instance.v1.refunds.create.return_value = {"id": "re_a"}
            mock_cls.return_value = instance
            model_admin.refund_registrations(admin_request, Registration.objects.all())

        completed.refresh_from_db()
        assert completed.status == Registration.Status.REFUNDED
        assert "Refunded 1 registration(s)." in _messages(admin_request)

    def test_export_action(self, admin_request, event):
        _registration(event, "a@x.com", Registration.Status.COMPLETED, ticket_code="AAA-2222-3333")
        model_admin = RegistrationAdmin(Registration, AdminSite())

        response = model_admin.export_csv(admin_request, Registration.objects.all())

        assert response["Content-Disposition"] == 'attachment; filename="registrations.csv"'
        content = response.content.decode()
        assert "NIH-AAA-2222-3333" in content
        assert "a@x.com" in content
