"""Registration service: the entry point for signing attendees up for events.

Free events produce a ``completed`` registration with a ticket code straight
away.  Paid events produce a ``pending`` registration that holds a capacity
slot and a Stripe Checkout session the attendee is redirected to; the
registration only completes once the payment is verified (see
:mod:`django_backstage.ticketing.services.payment`).

All methods are stateless and operate on model instances directly.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.db import IntegrityError, transaction
from django.urls import reverse
from django.utils import timezone
from django.utils.http import urlencode

from django_backstage.exceptions import (
    CodeGenerationExhausted,
    DuplicateRegistration,
    InvalidPrice,
    InvalidTransition,
    NotFound,
    PaymentProviderError,
)
from django_backstage.settings import MIN_CHECKOUT_EXPIRY_MINUTES, get_config
from django_backstage.ticketing.forms import ValidatedRegistration, validate_registration_payload
from django_backstage.ticketing.models import Event, Registration
from django_backstage.ticketing.services.capacity import active_registrations_q, validate_event_capacity
from django_backstage.ticketing.services.expiry import expire_stale_registrations
from django_backstage.ticketing.services.payment import PaymentVerificationService
from django_backstage.ticketing.services.tickets import generate_unique_ticket_code
from django_backstage.ticketing.signals import registration_completed
from django_backstage.ticketing.stripe_client import StripeClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RegistrationResult:
    """Outcome of a registration attempt.

    ``checkout_url`` is set when the attendee still has to pay; it is
    ``None`` for free registrations and for checkouts that were already paid.
    """

    registration: Registration
    checkout_url: str | None = None

    @property
    def requires_payment(self) -> bool:
        """Return whether the attendee must be redirected to Stripe."""
        return self.checkout_url is not None


def _hold_ends_at(registration: Registration) -> datetime:
    return registration.created_at + timedelta(minutes=get_config().pending_registration_expiry_minutes)


def _format_event_date(value: datetime) -> str:
    local = timezone.localtime(value) if timezone.is_aware(value) else value
    return f"{local:%B} {local.day}, {local.year}"


def _checkout_urls(registration: Registration, base_url: str) -> tuple[str, str]:
    base = base_url.rstrip("/")
    success_query = urlencode({"registration_id": registration.pk})
    success_url = (
        f"{base}{reverse('backstage_ticketing:registration-success')}"
        f"?session_id={{CHECKOUT_SESSION_ID}}&{success_query}"
    )
    cancel_url = f"{base}/events/{registration.event.slug}?cancelled=true"
    return success_url, cancel_url


def _open_checkout(registration: Registration, *, base_url: str, now: datetime | None = None) -> RegistrationResult:
    """Create a Stripe Checkout session for a pending registration.

    The session expires together with the registration's capacity hold, but
    never sooner than Stripe's minimum session lifetime.

    Raises:
        PaymentProviderError: If Stripe fails or returns no checkout URL. The
            registration stays ``pending`` without a session id.
    """
    now = now or timezone.now()
    event = registration.event
    expires_at = max(_hold_ends_at(registration), now + timedelta(minutes=MIN_CHECKOUT_EXPIRY_MINUTES))
    success_url, cancel_url = _checkout_urls(registration, base_url)

    try:
        session = StripeClient().create_checkout_session(
            name=f"Ticket: {event.title}",
            description=f"{event.venue or event.location} - {_format_event_date(event.start_date)}",
            image=event.cover,
            unit_amount=registration.amount_paid,
            customer_email=registration.email,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata={
                "registration_id": str(registration.pk),
                "event_id": str(event.pk),
                "event_title": event.title,
            },
            expires_at=expires_at,
            idempotency_key=f"checkout-registration-{registration.pk}-{int(expires_at.timestamp())}",
        )
    except PaymentProviderError as exc:
        logger.warning("Checkout session creation failed for registration %s", registration.pk)
        raise PaymentProviderError(exc.message, registration_id=registration.pk) from exc

    if not session.url:
        logger.error("Stripe returned no checkout URL for registration %s (session %s)", registration.pk, session.id)
        raise PaymentProviderError(registration_id=registration.pk)

    Registration.objects.filter(pk=registration.pk, status=Registration.Status.PENDING).update(
        stripe_session_id=session.id,
        updated_at=timezone.now(),
    )
    registration.stripe_session_id = session.id
    logger.info("Opened checkout session %s for registration %s", session.id, registration.pk)
    return RegistrationResult(registration=registration, checkout_url=session.url)


class RegistrationService:
    """Stateless service for registration operations.

    Creates registrations, re-opens abandoned checkouts and applies staff
    changes, always within the registration lifecycle.
    """

    @staticmethod
    def register(data: ValidatedRegistration | object, *, base_url: str) -> RegistrationResult:
        """Register an attendee for an event.

        Args:
            data: A :class:`ValidatedRegistration` or a raw request body with
                ``event_id``, ``name`` and ``email``.
            base_url: Absolute site URL used to build the Stripe redirect URLs.

        Returns:
            A :class:`RegistrationResult`; ``checkout_url`` is set for paid
            events.

        Raises:
            InputValidationError: If the input is malformed.
            NotFound: If the event does not exist or was deleted.
            SoldOut: If the event has no capacity left.
            DuplicateRegistration: If the email already holds an active
                registration for the event.
            InvalidPrice: If a paid event has no positive ticket price.
            CodeGenerationExhausted: If no unique ticket code could be issued.
            PaymentProviderError: If the checkout session could not be
                created. ``registration_id`` identifies the pending row.
        """
        validated = data if isinstance(data, ValidatedRegistration) else validate_registration_payload(data)
        expire_stale_registrations(event_id=validated.event_id)

        registration = _create_registration(validated)
        if registration.status == Registration.Status.COMPLETED:
            logger.info("Registered %s for free event %s", registration.pk, registration.event_id)
            registration_completed.send(sender=Registration, registration=registration)
            return RegistrationResult(registration=registration)

        return _open_checkout(registration, base_url=base_url)

    @staticmethod
    def retry_checkout(registration: Registration, *, base_url: str) -> RegistrationResult:
        """Return a payable checkout for a pending registration.

        Reuses the existing session while Stripe still reports it open,
        completes the registration if the existing session was already paid,
        and otherwise opens a new session.

        Args:
            registration: The pending registration to pay for.
            base_url: Absolute site URL used to build the Stripe redirect URLs.

        Raises:
            InvalidTransition: If the registration is no longer pending or its
                capacity hold is about to run out.
            PaymentProviderError: If Stripe fails.
        """
        registration = Registration.objects.select_related("event").get(pk=registration.pk)
        if registration.status != Registration.Status.PENDING:
            raise InvalidTransition("Only pending registrations can be paid for.")

        now = timezone.now()
        if _hold_ends_at(registration) - now < timedelta(minutes=MIN_CHECKOUT_EXPIRY_MINUTES):
            raise InvalidTransition("The checkout window for this registration has closed. Please register again.")

        if registration.stripe_session_id:
            session = StripeClient().retrieve_checkout_session(registration.stripe_session_id)
            if session.is_paid:
                completed = PaymentVerificationService.complete_session(session)
                return RegistrationResult(registration=completed)
            if session.status == "open" and session.url:
                return RegistrationResult(registration=registration, checkout_url=session.url)

        return _open_checkout(registration, base_url=base_url, now=now)

    @staticmethod
    def cancel_registration(registration: Registration) -> Registration:
        """Cancel a pending registration and release its capacity slot.

        Raises:
            InvalidTransition: If the registration is not pending.
        """
        return RegistrationService.update_registration(registration, status=Registration.Status.CANCELLED)

    @staticmethod
    @transaction.atomic
    def update_registration(
        registration: Registration,
        *,
        status: str | None = None,
        notes: str | None = None,
    ) -> Registration:
        """Apply a staff change to a registration.

        Status changes must follow the registration lifecycle.  A registration
        can never be completed by hand: completion requires a verified
        payment.  Moving a completed registration to ``refunded`` here only
        records a refund made outside Stripe; use
        :func:`~django_backstage.ticketing.services.refund.refund_registration`
        to actually return the money.

        Args:
            registration: The registration to change.
            status: The new status, or ``None`` to leave it unchanged.
            notes: New staff notes, or ``None`` to leave them unchanged.

        Returns:
            The updated registration.

        Raises:
            InvalidTransition: If the status change is not allowed.
        """
        locked = Registration.objects.select_for_update().get(pk=registration.pk)
        update_fields = ["updated_at"]

        if status is not None and status != locked.status:
            if status == Registration.Status.COMPLETED or not locked.can_transition_to(status):
                msg = f"Cannot change a {locked.status} registration to {status}."
                raise InvalidTransition(msg)
            logger.info("Registration %s: %s -> %s (staff)", locked.pk, locked.status, status)
            locked.status = status
            update_fields.append("status")

        if notes is not None:
            locked.notes = notes
            update_fields.append("notes")

        locked.save(update_fields=update_fields)
        return locked


def _create_registration(validated: ValidatedRegistration) -> Registration:
    """Insert the registration row after every business rule has passed.

    Capacity, duplicates and price are all checked inside one transaction
    while the event row is locked, so two concurrent requests cannot both
    take the last slot.
    """
    with transaction.atomic():
        try:
            event = Event.objects.active().get(pk=validated.event_id)
        except Event.DoesNotExist:
            raise NotFound("Event not found.") from None

        event = validate_event_capacity(event)

        if _has_active_registration(event, validated.email):
            raise DuplicateRegistration

        is_paid = not event.is_free
        if is_paid and not event.ticket_price_cents:
            logger.error("Paid event %s has no valid ticket price", event.pk)
            raise InvalidPrice

        max_attempts = get_config().ticket_code_max_attempts
        for _ in range(max_attempts):
            ticket_code = generate_unique_ticket_code()
            try:
                with transaction.atomic():
                    return Registration.objects.create(
                        event=event,
                        name=validated.name,
                        email=validated.email,
                        status=Registration.Status.PENDING if is_paid else Registration.Status.COMPLETED,
                        amount_paid=event.ticket_price_cents if is_paid else 0,
                        ticket_code=ticket_code,
                    )
            except IntegrityError:
                if _has_active_registration(event, validated.email):
                    raise DuplicateRegistration from None
                if not Registration.objects.filter(ticket_code=ticket_code).exists():
                    raise
                logger.warning("Ticket code collided with a concurrent insert, issuing another")

    logger.error("Exhausted %d attempts inserting a registration with a unique ticket code", max_attempts)
    raise CodeGenerationExhausted(max_attempts)


def _has_active_registration(event: Event, email: str) -> bool:
    return Registration.objects.filter(active_registrations_q(), event=event, email__iexact=email).exists()
