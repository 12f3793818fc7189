"""Stripe webhook endpoint and event handlers for ticketing.

Stripe reports checkout completions, expirations, payment failures and
refunds here. Every verified event is stored once as a ``StripeEvent``
(keyed by its Stripe id, so redeliveries are ignored) and then handed to the
handler class registered for its type, for example::

    registry.register("checkout.session.completed", CheckoutSessionCompletedWebhook)

Mount ``stripe_webhook`` under a URL that Stripe can reach::

    path("webhooks/stripe/", stripe_webhook, name="stripe-webhook")
"""

import json
import logging
import traceback

import stripe
from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from django_backstage.content.services import ProductCheckoutService
from django_backstage.settings import get_config
from django_backstage.ticketing.models import EventProcessingException, StripeEvent
from django_backstage.ticketing.services.expiry import expire_registration_for_session
from django_backstage.ticketing.services.payment import PaymentVerificationService
from django_backstage.ticketing.services.refund import mark_refunded_from_charge
from django_backstage.ticketing.stripe_client import CheckoutSession

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class WebhookRegistry:
    """Lookup table from Stripe event type to the ``Webhook`` subclass that handles it."""

    def __init__(self) -> None:
        self._handlers: dict[str, type["Webhook"]] = {}

    def register(self, kind: str, handler_class: type["Webhook"]) -> None:
        """Route events of ``kind`` to ``handler_class``, replacing any earlier entry.

        Args:
            kind: Stripe event type, e.g. ``"charge.refunded"``.
            handler_class: The ``Webhook`` subclass to instantiate per event.
        """
        self._handlers[kind] = handler_class

    def get(self, kind: str) -> type["Webhook"] | None:
        """Return the handler registered for ``kind``, if there is one."""
        return self._handlers.get(kind)

    def keys(self) -> list[str]:
        """Return the event types that have a handler, in registration order."""
        return list(self._handlers)


registry = WebhookRegistry()


# ---------------------------------------------------------------------------
# Base handler
# ---------------------------------------------------------------------------


class Webhook:
    """Base class for the handler of one stored Stripe event.

    A subclass names the event type it handles in ``name`` and puts its
    ticketing logic in ``process_webhook()``. Callers use ``process()``, which
    runs each stored event at most once to success and records failures
    against the event.

    Attributes:
        name: Stripe event type handled by the subclass.
        event: The stored ``StripeEvent`` being handled.
    """

    name: str = ""

    def __init__(self, event: StripeEvent) -> None:
        self.event = event

    def process(self) -> None:
        """Handle the event unless it was already handled successfully.

        The event is flagged ``processed`` only after ``process_webhook()``
        and ``send_signal()`` both return. Any exception is written to
        ``EventProcessingException`` and propagated to the caller.
        """
        if self.event.processed:
            logger.info("Stripe event %s was handled before, ignoring", self.event.stripe_id)
            return

        try:
            self.process_webhook()
            self.send_signal()
        except Exception:
            self.log_exception()
            raise

        self.event.processed = True
        self.event.save(update_fields=["processed"])

    def process_webhook(self) -> None:
        """Apply the event to registrations or purchases.

        Raises:
            NotImplementedError: When a subclass does not provide it.
        """
        raise NotImplementedError

    def send_signal(self) -> None:
        """Hook for signals that should follow a successful run. Does nothing here."""

    def log_exception(self) -> None:
        """Store the exception being handled as an ``EventProcessingException``."""
        tb = traceback.format_exc()
        logger.error("Handler %s failed for Stripe event %s:\n%s", self.name, self.event.stripe_id, tb)
        EventProcessingException.objects.create(
            event=self.event,
            data=json.dumps(self.event.payload, default=str),
            message=tb.strip().splitlines()[-1][:500] if tb.strip() else "",
            traceback=tb,
        )


def _event_data_object(event: StripeEvent) -> dict[str, object]:
    """Return ``payload["data"]["object"]``, or an empty dict for any other shape."""
    data = event.payload.get("data") if isinstance(event.payload, dict) else None
    obj = data.get("object") if isinstance(data, dict) else None
    return obj if isinstance(obj, dict) else {}


# ---------------------------------------------------------------------------
# Concrete handlers
# ---------------------------------------------------------------------------


class CheckoutSessionCompletedWebhook(Webhook):
    """Handles ``checkout.session.completed`` events.

    Sessions carrying a ``registration_id`` complete the registration through
    the same path as the success redirect; sessions carrying a ``product_id``
    record a merchandise purchase.  Sessions whose payment is still
    processing (delayed payment methods) are left for
    ``checkout.session.async_payment_succeeded``.
    """

    name = "checkout.session.completed"

    def process_webhook(self) -> None:
        """Complete the registration or record the purchase behind the session."""
        session = CheckoutSession.from_stripe(_event_data_object(self.event))
        if not session.is_paid:
            logger.info("Checkout session %s completed but not paid yet (%s)", session.id, session.payment_status)
            return

        if session.metadata.get("registration_id"):
            PaymentVerificationService.complete_session(session)
        elif session.metadata.get("product_id"):
            ProductCheckoutService.record_purchase(session)
        else:
            logger.warning("Checkout session %s has no registration or product metadata", session.id)


class CheckoutSessionAsyncPaymentSucceededWebhook(CheckoutSessionCompletedWebhook):
    """Handles ``checkout.session.async_payment_succeeded`` events."""

    name = "checkout.session.async_payment_succeeded"


class CheckoutSessionExpiredWebhook(Webhook):
    """Handles ``checkout.session.expired`` events.

    Releases the capacity slot held by an abandoned pending registration.
    """

    name = "checkout.session.expired"

    def process_webhook(self) -> None:
        """Expire the pending registration that owns the session."""
        session = CheckoutSession.from_stripe(_event_data_object(self.event))
        registration_id = session.metadata.get("registration_id")
        if expire_registration_for_session(session.id, registration_id) is None:
            logger.info("No pending registration for expired checkout session %s", session.id)


class PaymentIntentPaymentFailedWebhook(Webhook):
    """Handles ``payment_intent.payment_failed`` events.

    The registration stays pending so the attendee can retry until the
    checkout session expires; the failure is only logged.
    """

    name = "payment_intent.payment_failed"

    def process_webhook(self) -> None:
        """Log the failure reason reported by Stripe."""
        intent = _event_data_object(self.event)
        metadata = intent.get("metadata")
        registration_id = metadata.get("registration_id", "") if isinstance(metadata, dict) else ""

        error = intent.get("last_payment_error")
        reason = "No error details"
        if isinstance(error, dict):
            msg = error.get("message")
            reason = str(msg) if isinstance(msg, str) else "Unknown error"
        logger.warning(
            "Payment failed for intent %s (registration %s): %s",
            intent.get("id"),
            registration_id or "unknown",
            reason,
        )


class ChargeRefundedWebhook(Webhook):
    """Handles ``charge.refunded`` events.

    Only a full refund moves the registration to ``refunded``; partial
    refunds are logged and leave the ticket valid.
    """

    name = "charge.refunded"

    def process_webhook(self) -> None:
        """Mark the registration paid by the refunded charge as refunded."""
        charge = _event_data_object(self.event)
        intent_id = str(charge.get("payment_intent") or "")
        amount_refunded = int(charge.get("amount_refunded") or 0)
        amount = int(charge.get("amount") or 0)

        if amount_refunded < amount:
            logger.info("Partial refund for payment_intent %s, registration left completed", intent_id)
            return

        if not mark_refunded_from_charge(intent_id):
            logger.warning("No completed registration found for refunded payment_intent %s", intent_id)


# ---------------------------------------------------------------------------
# Handler registration
# ---------------------------------------------------------------------------

for _handler in (
    CheckoutSessionCompletedWebhook,
    CheckoutSessionAsyncPaymentSucceededWebhook,
    CheckoutSessionExpiredWebhook,
    PaymentIntentPaymentFailedWebhook,
    ChargeRefundedWebhook,
):
    registry.register(_handler.name, _handler)


# ---------------------------------------------------------------------------
# Webhook endpoint view
# ---------------------------------------------------------------------------


def _store_event(event: dict[str, object]) -> StripeEvent | None:
    """Persist a verified event, or return ``None`` if its id was seen before."""
    stripe_id = str(event.get("id", ""))
    if StripeEvent.objects.filter(stripe_id=stripe_id).exists():
        logger.info("Stripe redelivered event %s, already stored", stripe_id)
        return None

    data = event.get("data")
    obj = data.get("object") if isinstance(data, dict) else None
    customer = obj.get("customer") if isinstance(obj, dict) else None

    return StripeEvent.objects.create(
        stripe_id=stripe_id,
        kind=str(event.get("type", "")),
        livemode=bool(event.get("livemode", False)),
        payload=event,
        customer_id=str(customer or ""),
        api_version=str(event.get("api_version") or ""),
    )


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """Verify, store and dispatch one Stripe webhook delivery.

    A missing webhook secret, an unparseable body or a bad
    ``Stripe-Signature`` header yields 400 and nothing is stored, so Stripe
    keeps retrying until the endpoint is fixed. A verified event always gets
    200: redeliveries, event types without a handler and handler failures are
    logged (failures also land in ``EventProcessingException``) rather than
    reported back to Stripe.
    """
    stripe_config = get_config().stripe
    if not stripe_config.webhook_secret:
        logger.error("Rejecting Stripe webhook: DJANGO_BACKSTAGE['stripe']['webhook_secret'] is empty")
        return HttpResponse("Webhook secret not configured", status=400)

    try:
        stripe.Webhook.construct_event(
            request.body,
            request.headers.get("Stripe-Signature", ""),
            stripe_config.webhook_secret,
            tolerance=stripe_config.webhook_tolerance,
        )
        event = json.loads(request.body)
    except (stripe.SignatureVerificationError, ValueError):
        logger.warning("Rejecting Stripe webhook with an invalid payload or signature")
        return HttpResponse("Invalid signature", status=400)

    stripe_event = _store_event(event)
    if stripe_event is None:
        return HttpResponse(status=200)

    handler_class = registry.get(stripe_event.kind)
    if handler_class is None:
        logger.info("Stored Stripe event %s of unhandled type %s", stripe_event.stripe_id, stripe_event.kind)
        return HttpResponse(status=200)

    try:
        handler_class(stripe_event).process()
    except Exception:
        logger.exception(
            "Stripe event %s (%s) failed, see EventProcessingException",
            stripe_event.stripe_id,
            stripe_event.kind,
        )

    return HttpResponse(status=200)
