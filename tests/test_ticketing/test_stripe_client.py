"""Tests for the StripeClient wrapper in django_backstage.ticketing.stripe_client."""

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest
import stripe as _stripe
from django.test import override_settings

from django_backstage.exceptions import PaymentProviderError
from django_backstage.ticketing.stripe_client import CheckoutSession, StripeClient

# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def mock_stripe():
    with patch("django_backstage.ticketing.stripe_client.stripe.StripeClient") as mock_cls:
        instance = MagicMock()
        mock_cls.return_value = instance
        yield mock_cls


@pytest.fixture
def client(mock_stripe):
    return StripeClient()


def _session_payload(**overrides):
    payload = {
        "id": "cs_test_123",
        "url": "https://checkout.stripe.com/c/pay/cs_test_123",
        "status": "open",
        "payment_status": "unpaid",
        "amount_total": 2500,
        "payment_intent": None,
        "customer_email": "cy@example.com",
        "metadata": {"registration_id": "1"},
    }
    payload.update(overrides)
    return payload


# -- CheckoutSession ----------------------------------------------------------


@pytest.mark.unit
class TestCheckoutSession:
    def test_from_mapping(self):
        session = CheckoutSession.from_stripe(_session_payload(payment_status="paid", payment_intent="pi_1"))
        assert session.id == "cs_test_123"
        assert session.is_paid is True
        assert session.amount_total == 2500
        assert session.payment_intent_id == "pi_1"
        assert session.metadata == {"registration_id": "1"}

    def test_expanded_payment_intent(self):
        session = CheckoutSession.from_stripe(_session_payload(payment_intent={"id": "pi_expanded"}))
        assert session.payment_intent_id == "pi_expanded"

    def test_email_falls_back_to_customer_details(self):
        payload = _session_payload(customer_email=None, customer_details={"email": "buyer@example.com"})
        assert CheckoutSession.from_stripe(payload).customer_email == "buyer@example.com"

    def test_missing_fields_default(self):
        session = CheckoutSession.from_stripe({"id": "cs_bare"})
        assert session.url == ""
        assert session.amount_total is None
        assert session.payment_intent_id == ""
        assert session.metadata == {}
        assert session.is_paid is False

    def test_from_sdk_object(self):
        obj = MagicMock(spec=["id", "url", "status", "payment_status", "amount_total", "payment_intent", "metadata"])
        obj.id = "cs_obj"
        obj.url = "https://checkout.stripe.com/c/pay/cs_obj"
        obj.status = "complete"
        obj.payment_status = "paid"
        obj.amount_total = 1000
        obj.payment_intent = "pi_obj"
        obj.metadata = {"product_id": "4"}
        session = CheckoutSession.from_stripe(obj)
        assert session.id == "cs_obj"
        assert session.customer_email == ""
        assert session.metadata == {"product_id": "4"}


# -- Initialization -----------------------------------------------------------


@pytest.mark.unit
class TestStripeClientInit:
    def test_uses_configured_key_and_version(self, mock_stripe):
        client = StripeClient()
        mock_stripe.assert_called_once_with("sk_test_backstage", stripe_version="2024-12-18")
        assert client.currency == "usd"

    def test_missing_secret_raises(self, mock_stripe):
        with (
            override_settings(DJANGO_BACKSTAGE={"stripe": {}}),
            pytest.raises(PaymentProviderError, match="not configured"),
        ):
            StripeClient()
        mock_stripe.assert_not_called()


# -- Checkout sessions --------------------------------------------------------


@pytest.mark.unit
class TestCreateCheckoutSession:
    def test_builds_payment_mode_params(self, client):
        client.client.v1.checkout.sessions.create.return_value = _session_payload()
        expires_at = datetime(2027, 5, 1, 12, 0, tzinfo=UTC)

        session = client.create_checkout_session(
            name="Ticket: Release Show",
            unit_amount=2500,
            success_url="https://example.test/success",
            cancel_url="https://example.test/cancel",
            metadata={"registration_id": "1"},
            customer_email="cy@example.com",
            description="Elsewhere - May 1, 2027",
            image="https://cdn.example.test/cover.jpg",
            expires_at=expires_at,
            idempotency_key="checkout-registration-1",
        )

        assert session.url == "https://checkout.stripe.com/c/pay/cs_test_123"
        call = client.client.v1.checkout.sessions.create.call_args
        params = call.kwargs["params"]
        assert params["mode"] == "payment"
        line_item = params["line_items"][0]
        assert line_item["quantity"] == 1
        assert line_item["price_data"] == {
            "currency": "usd",
            "product_data": {
                "name": "Ticket: Release Show",
                "description": "Elsewhere - May 1, 2027",
                "images": ["https://cdn.example.test/cover.jpg"],
            },
            "unit_amount": 2500,
        }
        assert params["metadata"] == {"registration_id": "1"}
        assert params["payment_intent_data"] == {"metadata": {"registration_id": "1"}}
        assert params["customer_email"] == "cy@example.com"
        assert params["expires_at"] == int(expires_at.timestamp())
        assert call.kwargs["options"] == {"idempotency_key": "checkout-registration-1"}

    def test_optional_fields_omitted(self, client):
        client.client.v1.checkout.sessions.create.return_value = _session_payload()
        client.create_checkout_session(
            name="Tee",
            unit_amount=3000,
            success_url="https://example.test/success",
            cancel_url="https://example.test/cancel",
            metadata={},
        )
        call = client.client.v1.checkout.sessions.create.call_args
        params = call.kwargs["params"]
        assert "customer_email" not in params
        assert "expires_at" not in params
        assert params["line_items"][0]["price_data"]["product_data"] == {"name": "Tee"}
        assert call.kwargs["options"] == {}

    def test_stripe_error_is_wrapped(self, client):
        client.client.v1.checkout.sessions.create.side_effect = _stripe.StripeError("card declined")
        with pytest.raises(PaymentProviderError) as exc_info:
            client.create_checkout_session(
                name="Tee",
                unit_amount=3000,
                success_url="https://example.test/success",
                cancel_url="https://example.test/cancel",
                metadata={},
            )
        assert isinstance(exc_info.value.__cause__, _stripe.StripeError)


@pytest.mark.unit
class TestRetrieveCheckoutSession:
    def test_returns_snapshot(self, client):
        client.client.v1.checkout.sessions.retrieve.return_value = _session_payload(
            payment_status="paid", payment_intent="pi_9"
        )
        session = client.retrieve_checkout_session("cs_test_123")
        client.client.v1.checkout.sessions.retrieve.assert_called_once_with("cs_test_123")
        assert session.is_paid
        assert session.payment_intent_id == "pi_9"

    def test_stripe_error_is_wrapped(self, client):
        client.client.v1.checkout.sessions.retrieve.side_effect = _stripe.StripeError("gone")
        with pytest.raises(PaymentProviderError):
            client.retrieve_checkout_session("cs_missing")


# -- Refunds ------------------------------------------------------------------


@pytest.mark.unit
class TestCreateRefund:
    def test_full_refund(self, client):
        client.client.v1.refunds.create.return_value = {"id": "re_123"}
        assert client.create_refund("pi_123") == "re_123"
        client.client.v1.refunds.create.assert_called_once_with(
            params={"payment_intent": "pi_123", "reason": "requested_by_customer"}
        )

    def test_partial_refund(self, client):
        client.client.v1.refunds.create.return_value = {"id": "re_456"}
        client.create_refund("pi_123", amount=1000, reason="duplicate")
        params = client.client.v1.refunds.create.call_args.kwargs["params"]
        assert params == {"payment_intent": "pi_123", "reason": "duplicate", "amount": 1000}

    def test_stripe_error_is_wrapped(self, client):
        client.client.v1.refunds.create.side_effect = _stripe.StripeError("already refunded")
        with pytest.raises(PaymentProviderError):
            client.create_refund("pi_123")
