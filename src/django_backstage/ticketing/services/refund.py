"""Refunds for completed registrations."""

import logging

from django.db import transaction
from django.utils import timezone

from django_backstage.exceptions import InvalidTransition
from django_backstage.ticketing.models import Registration
from django_backstage.ticketing.stripe_client import StripeClient

logger = logging.getLogger(__name__)


@transaction.atomic
def refund_registration(registration: Registration, *, reason: str = "requested_by_customer") -> Registration:
    """Refund a completed registration and release its capacity slot.

    Calls Stripe only when money was actually captured and the payment intent
    is known; free registrations and manual payments are just marked
    ``refunded``.  The Stripe call happens inside the transaction so a failed
    refund leaves the registration ``completed``.

    Args:
        registration: The registration to refund. Must be ``completed``.
        reason: The Stripe refund reason string.

    Returns:
        The refunded registration.

    Raises:
        InvalidTransition: If the registration is not ``completed``.
        PaymentProviderError: If Stripe rejects the refund.
    """
    registration = Registration.objects.select_for_update().get(pk=registration.pk)
    if not registration.can_transition_to(Registration.Status.REFUNDED):
        msg = f"Only completed registrations can be refunded. This registration is {registration.status}."
        raise InvalidTransition(msg)

    if registration.amount_paid > 0 and registration.stripe_payment_intent_id:
        refund_id = StripeClient().create_refund(registration.stripe_payment_intent_id, reason=reason)
        logger.info("Stripe refund %s issued for registration %s", refund_id, registration.pk)

    registration.status = Registration.Status.REFUNDED
    registration.save(update_fields=["status", "updated_at"])
    logger.info("Registration %s refunded", registration.pk)
    return registration


def mark_refunded_from_charge(payment_intent_id: str) -> int:
    """Mark completed registrations paid by ``payment_intent_id`` as refunded.

    Used by the ``charge.refunded`` webhook, which also fires for refunds
    issued from the Stripe dashboard.

    Returns:
        The number of registrations that changed.
    """
    if not payment_intent_id:
        return 0
    updated = Registration.objects.filter(
        stripe_payment_intent_id=payment_intent_id,
        status=Registration.Status.COMPLETED,
    ).update(status=Registration.Status.REFUNDED, updated_at=timezone.now())
    if updated:
        logger.info("Marked %d registration(s) refunded for payment intent %s", updated, payment_intent_id)
    return updated
