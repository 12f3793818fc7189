"""Tests for PaymentVerificationService: session lookup order and idempotent completion."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
from django.core import mail
from django.utils import timezone

from django_backstage.exceptions import (
    InputValidationError,
    InvalidTransition,
    NotFound,
    PaymentNotCompleted,
)
from django_backstage.ticketing.models import Event, Registration
from django_backstage.ticketing.services.expiry import expire_stale_registrations
from django_backstage.ticketing.services.payment import PaymentVerificationService
from django_backstage.ticketing.signals import registration_completed
from django_backstage.ticketing.stripe_client import CheckoutSession

# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def event(db):
    return Event.objects.create(
        title="Release Show",
        slug="release-show",
        start_date=datetime(2027, 6, 12, 21, 0, tzinfo=UTC),
        location="Chicago, IL",
        is_free=False,
        ticket_price_cents=2500,
    )


@pytest.fixture
def registration(event):
    return Registration.objects.create(
        event=event,
        name="Cy",
        email="cy@x.com",
        status=Registration.Status.PENDING,
        amount_paid=2500,
        ticket_code="CYC-2222-3333",
        stripe_session_id="cs_test_cy",
    )


@pytest.fixture
def stripe_api():
    with patch("django_backstage.ticketing.stripe_client.stripe.StripeClient") as mock_cls:
        instance = MagicMock()
        mock_cls.return_value = instance
        yield instance.v1


def _paid_session(session_id="cs_test_cy", **overrides):
    fields = {
        "id": session_id,
        "status": "complete",
        "payment_status": "paid",
        "amount_total": 2500,
        "payment_intent_id": "pi_test_cy",
        "metadata": {},
    }
    fields.update(overrides)
    return CheckoutSession(**fields)


# -- complete_session ---------------------------------------------------------


@pytest.mark.django_db
class TestCompleteSession:
    def test_completes_pending_registration(self, registration):
        completed = PaymentVerificationService.complete_session(_paid_session())
        assert completed.pk == registration.pk
        registration.refresh_from_db()
        assert registration.status == Registration.Status.COMPLETED
        assert registration.amount_paid == 2500
        assert registration.stripe_payment_intent_id == "pi_test_cy"

    def test_captured_amount_is_authoritative(self, registration):
        PaymentVerificationService.complete_session(_paid_session(amount_total=2000))
        registration.refresh_from_db()
        assert registration.amount_paid == 2000

    def test_idempotent_single_email_and_signal(self, registration):
        received = []

        def _listener(sender, registration, **kwargs):
            received.append(registration.pk)

        registration_completed.connect(_listener)
        try:
            PaymentVerificationService.complete_session(_paid_session())
            again = PaymentVerificationService.complete_session(_paid_session())
        finally:
            registration_completed.disconnect(_listener)

        assert again.status == Registration.Status.COMPLETED
        assert received == [registration.pk]
        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == ["cy@x.com"]

    def test_paid_at_end_of_hold_survives_sweep(self, registration):
        # Stripe closed the session when the 60 minute hold ended; the buyer paid just before.
        Registration.objects.filter(pk=registration.pk).update(created_at=timezone.now() - timedelta(minutes=61))

        assert expire_stale_registrations(event_id=registration.event_id) == 0
        completed = PaymentVerificationService.complete_session(_paid_session())

        assert completed.status == Registration.Status.COMPLETED
        assert len(mail.outbox) == 1

    def test_unpaid_session_raises(self, registration):
        with pytest.raises(PaymentNotCompleted) as exc_info:
            PaymentVerificationService.complete_session(
                _paid_session(payment_status="unpaid", metadata={"registration_id": str(registration.pk)})
            )
        assert exc_info.value.registration_id == registration.pk
        assert exc_info.value.status_code == 402
        registration.refresh_from_db()
        assert registration.status == Registration.Status.PENDING

    @pytest.mark.parametrize(
        "status",
        [Registration.Status.EXPIRED, Registration.Status.CANCELLED, Registration.Status.REFUNDED],
    )
    def test_inactive_registration_needs_reconciliation(self, registration, status):
        Registration.objects.filter(pk=registration.pk).update(status=status)
        with pytest.raises(InvalidTransition):
            PaymentVerificationService.complete_session(_paid_session())
        registration.refresh_from_db()
        assert registration.status == status

    def test_unknown_session(self, db):
        with pytest.raises(NotFound, match="Registration not found"):
            PaymentVerificationService.complete_session(_paid_session("cs_unknown"))


@pytest.mark.django_db
class TestLookupOrder:
    def test_stored_session_wins_over_explicit_id(self, registration, event):
        other = Registration.objects.create(
            event=event,
            name="Dee",
            email="dee@x.com",
            status=Registration.Status.PENDING,
            amount_paid=2500,
        )
        completed = PaymentVerificationService.complete_session(_paid_session(), registration_id=other.pk)
        assert completed.pk == registration.pk
        other.refresh_from_db()
        assert other.status == Registration.Status.PENDING

    def test_explicit_id_used_when_session_not_stored(self, registration):
        Registration.objects.filter(pk=registration.pk).update(stripe_session_id="")
        completed = PaymentVerificationService.complete_session(
            _paid_session("cs_new"),
            registration_id=registration.pk,
        )
        assert completed.pk == registration.pk
        assert completed.stripe_session_id == "cs_new"

    def test_explicit_id_ignored_when_metadata_disagrees(self, registration, event):
        other = Registration.objects.create(
            event=event,
            name="Dee",
            email="dee@x.com",
            status=Registration.Status.PENDING,
            amount_paid=2500,
        )
        Registration.objects.filter(pk=registration.pk).update(stripe_session_id="")
        completed = PaymentVerificationService.complete_session(
            _paid_session("cs_new", metadata={"registration_id": str(registration.pk)}),
            registration_id=other.pk,
        )
        assert completed.pk == registration.pk

    def test_explicit_id_ignored_when_it_owns_another_session(self, registration, event):
        other = Registration.objects.create(
            event=event,
            name="Dee",
            email="dee@x.com",
            status=Registration.Status.PENDING,
            amount_paid=2500,
            stripe_session_id="cs_dee",
        )
        with pytest.raises(NotFound):
            PaymentVerificationService.complete_session(_paid_session("cs_stranger"), registration_id=other.pk)

    def test_metadata_fallback(self, registration):
        Registration.objects.filter(pk=registration.pk).update(stripe_session_id="")
        completed = PaymentVerificationService.complete_session(
            _paid_session("cs_meta", metadata={"registration_id": str(registration.pk)})
        )
        assert completed.pk == registration.pk


# -- verify -------------------------------------------------------------------


@pytest.mark.django_db
class TestVerify:
    def test_refetches_session_from_stripe(self, registration, stripe_api):
        stripe_api.checkout.sessions.retrieve.return_value = {
            "id": "cs_test_cy",
            "status": "complete",
            "payment_status": "paid",
            "amount_total": 2500,
            "payment_intent": "pi_test_cy",
            "metadata": {"registration_id": str(registration.pk)},
        }

        completed = PaymentVerificationService.verify("cs_test_cy", registration_id=registration.pk)

        stripe_api.checkout.sessions.retrieve.assert_called_once_with("cs_test_cy")
        assert completed.status == Registration.Status.COMPLETED

    def test_unpaid_session(self, registration, stripe_api):
        stripe_api.checkout.sessions.retrieve.return_value = {
            "id": "cs_test_cy",
            "status": "open",
            "payment_status": "unpaid",
        }
        with pytest.raises(PaymentNotCompleted) as exc_info:
            PaymentVerificationService.verify("cs_test_cy", registration_id=registration.pk)
        assert exc_info.value.registration_id == registration.pk

    def test_empty_session_id(self, db, stripe_api):
        with pytest.raises(InputValidationError) as exc_info:
            PaymentVerificationService.verify("")
        assert exc_info.value.fields == ["session_id"]
        stripe_api.checkout.sessions.retrieve.assert_not_called()


@pytest.mark.django_db
class TestCompleteFromSession:
    def test_webhook_payload(self, registration):
        payload = {
            "id": "cs_test_cy",
            "object": "checkout.session",
            "payment_status": "paid",
            "amount_total": 2500,
            "payment_intent": "pi_hook",
            "metadata": {"registration_id": str(registration.pk)},
        }
        completed = PaymentVerificationService.complete_from_session(payload)
        assert completed.status == Registration.Status.COMPLETED
        assert completed.stripe_payment_intent_id == "pi_hook"
