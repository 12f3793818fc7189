"""Payment verification for paid registrations.

A pending registration completes only when Stripe reports its Checkout
Session as paid.  Two paths lead here and may race: the buyer's browser
returning to the success URL (:meth:`PaymentVerificationService.verify`) and
the ``checkout.session.completed`` webhook
(:meth:`PaymentVerificationService.complete_from_session`).  Both lock the
registration row, so the transition and the confirmation email happen exactly
once whichever path arrives first.
"""

import logging
from collections.abc import Mapping

from django.db import transaction

from django_backstage.exceptions import InputValidationError, InvalidTransition, NotFound, PaymentNotCompleted
from django_backstage.ticketing.models import Registration
from django_backstage.ticketing.signals import registration_completed
from django_backstage.ticketing.stripe_client import CheckoutSession, StripeClient

logger = logging.getLogger(__name__)


def _metadata_registration_id(session: CheckoutSession) -> int | None:
    raw = session.metadata.get("registration_id", "")
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _find_registration(session: CheckoutSession, registration_id: int | None) -> Registration:
    """Resolve and lock the registration a paid session belongs to.

    Lookup order: the stored session id, then the caller-supplied id (only
    when it agrees with the session), then the session's own metadata.

    Raises:
        NotFound: If no registration matches.
    """
    locked = Registration.objects.select_for_update().select_related("event")

    by_session = locked.filter(stripe_session_id=session.id).first()
    if by_session is not None:
        return by_session

    metadata_id = _metadata_registration_id(session)
    if registration_id is not None:
        candidate = locked.filter(pk=registration_id).first()
        if candidate is not None:
            agrees_with_metadata = metadata_id is None or metadata_id == candidate.pk
            agrees_with_session = candidate.stripe_session_id in ("", session.id)
            if agrees_with_metadata and agrees_with_session:
                return candidate

    if metadata_id is not None:
        candidate = locked.filter(pk=metadata_id).first()
        if candidate is not None:
            return candidate

    logger.warning("No registration found for paid checkout session %s", session.id)
    raise NotFound("Registration not found.")


class PaymentVerificationService:
    """Stateless service that turns a paid checkout session into a completed registration."""

    @staticmethod
    def verify(session_id: str, registration_id: int | None = None) -> Registration:
        """Confirm a payment after the buyer returns from Stripe.

        The session is re-fetched from Stripe; query parameters from the
        redirect are never trusted on their own.

        Args:
            session_id: The ``session_id`` Stripe appended to the success URL.
            registration_id: The registration id from the success URL, used
                as a fallback lookup key.

        Returns:
            The completed registration.

        Raises:
            InputValidationError: If ``session_id`` is empty.
            PaymentProviderError: If Stripe cannot be reached.
            PaymentNotCompleted: If Stripe does not report the session as paid.
            NotFound: If no registration matches the session.
            InvalidTransition: If the registration already left ``pending``
                for a state other than ``completed``.
        """
        if not session_id:
            raise InputValidationError({"session_id": ["This field is required."]})
        session = StripeClient().retrieve_checkout_session(session_id)
        return PaymentVerificationService.complete_session(session, registration_id=registration_id)

    @staticmethod
    def complete_from_session(payload: Mapping) -> Registration:
        """Complete a registration from a signed ``checkout.session.*`` webhook payload."""
        return PaymentVerificationService.complete_session(CheckoutSession.from_stripe(payload))

    @staticmethod
    def complete_session(session: CheckoutSession, registration_id: int | None = None) -> Registration:
        """Move the session's registration from ``pending`` to ``completed``.

        Idempotent: a registration that is already ``completed`` is returned
        unchanged and no second confirmation is sent.

        Args:
            session: The checkout session as reported by Stripe.
            registration_id: Optional fallback lookup key.

        Returns:
            The completed registration.

        Raises:
            PaymentNotCompleted: If the session is not paid.
            NotFound: If no registration matches the session.
            InvalidTransition: If the registration is expired, cancelled or
                refunded. Money was captured for it, so the failure is logged
                for manual reconciliation.
        """
        if not session.is_paid:
            reference = registration_id or _metadata_registration_id(session)
            logger.info("Checkout session %s not paid (payment_status=%r)", session.id, session.payment_status)
            raise PaymentNotCompleted(registration_id=reference)

        with transaction.atomic():
            registration = _find_registration(session, registration_id)

            if registration.status == Registration.Status.COMPLETED:
                return registration

            if registration.status != Registration.Status.PENDING:
                logger.error(
                    "Paid checkout session %s for %s registration %s needs manual reconciliation",
                    session.id,
                    registration.status,
                    registration.pk,
                )
                msg = f"This registration is {registration.status} and cannot be completed."
                raise InvalidTransition(msg)

            registration.status = Registration.Status.COMPLETED
            if session.amount_total is not None:
                registration.amount_paid = session.amount_total
            registration.stripe_session_id = session.id
            if session.payment_intent_id:
                registration.stripe_payment_intent_id = session.payment_intent_id
            registration.save(
                update_fields=["status", "amount_paid", "stripe_session_id", "stripe_payment_intent_id", "updated_at"]
            )

        logger.info("Registration %s completed by checkout session %s", registration.pk, session.id)
        registration_completed.send(sender=Registration, registration=registration)
        return registration
