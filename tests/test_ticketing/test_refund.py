"""Tests for refunding completed registrations."""

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest
import stripe as _stripe

from django_backstage.exceptions import InvalidTransition, PaymentProviderError
from django_backstage.ticketing.models import Event, Registration
from django_backstage.ticketing.services.refund import mark_refunded_from_charge, refund_registration

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
def paid_registration(event):
    return Registration.objects.create(
        event=event,
        name="Cy",
        email="cy@x.com",
        status=Registration.Status.COMPLETED,
        amount_paid=2500,
        stripe_session_id="cs_cy",
        stripe_payment_intent_id="pi_cy",
    )


@pytest.fixture
def stripe_api():
    with patch("django_backstage.ticketing.stripe_client.stripe.StripeClient") as mock_cls:
        instance = MagicMock()
        mock_cls.return_value = instance
        yield instance.v1


# -- refund_registration ------------------------------------------------------


@pytest.mark.django_db
class TestRefundRegistration:
    def test_refunds_through_stripe(self, paid_registration, stripe_api):
        stripe_api.refunds.create.return_value = {"id": "re_cy"}

        refunded = refund_registration(paid_registration)

        stripe_api.refunds.create.assert_called_once_with(
            params={"payment_intent": "pi_cy", "reason": "requested_by_customer"}
        )
        assert refunded.status == Registration.Status.REFUNDED

    def test_custom_reason(self, paid_registration, stripe_api):
        stripe_api.refunds.create.return_value = {"id": "re_cy"}
        refund_registration(paid_registration, reason="duplicate")
        assert stripe_api.refunds.create.call_args.kwargs["params"]["reason"] == "duplicate"

    def test_free_registration_skips_stripe(self, event, stripe_api):
        free = Registration.objects.create(
            event=event,
            name="Ada",
            email="ada@x.com",
            status=Registration.Status.COMPLETED,
            amount_paid=0,
        )
        assert refund_registration(free).status == Registration.Status.REFUNDED
        stripe_api.refunds.create.assert_not_called()

    def test_pending_cannot_be_refunded(self, paid_registration, stripe_api):
        Registration.objects.filter(pk=paid_registration.pk).update(status=Registration.Status.PENDING)
        with pytest.raises(InvalidTransition, match="Only completed registrations"):
            refund_registration(paid_registration)
        stripe_api.refunds.create.assert_not_called()

    def test_stripe_failure_keeps_registration_completed(self, paid_registration, stripe_api):
        stripe_api.refunds.create.side_effect = _stripe.StripeError("charge already refunded")
        with pytest.raises(PaymentProviderError):
            refund_registration(paid_registration)
        paid_registration.refresh_from_db()
        assert paid_registration.status == Registration.Status.COMPLETED


# -- mark_refunded_from_charge ------------------------------------------------


@pytest.mark.django_db
class TestMarkRefundedFromCharge:
    def test_marks_completed_registration(self, paid_registration):
        assert mark_refunded_from_charge("pi_cy") == 1
        paid_registration.refresh_from_db()
        assert paid_registration.status == Registration.Status.REFUNDED

    def test_repeat_is_noop(self, paid_registration):
        mark_refunded_from_charge("pi_cy")
        assert mark_refunded_from_charge("pi_cy") == 0

    def test_empty_intent(self, paid_registration):
        assert mark_refunded_from_charge("") == 0
