"""Event, registration, and Stripe bookkeeping models for django-backstage."""

from django.db import models
from django.utils import timezone

# Registrations in these statuses hold a capacity slot and block a second
# registration for the same email. Every capacity or duplicate check filters
# on this tuple.
ACTIVE_STATUSES: tuple[str, ...] = ("pending", "completed")


class EventQuerySet(models.QuerySet):
    """Query helpers for events."""

    def active(self) -> "EventQuerySet":
        """Exclude soft-deleted events."""
        return self.filter(deleted_at__isnull=True)


class Event(models.Model):
    """A show, release party, or other date attendees can register for.

    Capacity is bounded by ``max_attendees`` (``None`` means unlimited).
    Paid events store their price in minor currency units; conversion to a
    display amount only happens at the presentation edge.
    """

    class Category(models.TextChoices):
        """Listing bucket for the public events page."""

        UPCOMING = "upcoming", "Upcoming"
        PAST = "past", "Past"

    class RegistrationMethod(models.TextChoices):
        """How attendees sign up for the event."""

        NATIVE = "native", "Native registration"
        EXTERNAL = "external", "External link"
        EMAIL = "email", "Email RSVP"
        NONE = "none", "No registration"

    title = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200, unique=True)
    description = models.TextField(blank=True, default="")
    category = models.CharField(
        max_length=20,
        choices=Category.choices,
        default=Category.UPCOMING,
    )
    start_date = models.DateTimeField()
    end_date = models.DateTimeField(null=True, blank=True)
    location = models.CharField(max_length=300)
    venue = models.CharField(max_length=300, blank=True, default="")
    address = models.CharField(max_length=500, blank=True, default="")
    cover = models.URLField(max_length=500, blank=True, default="")
    max_attendees = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Maximum number of active registrations. Empty means unlimited.",
    )
    is_free = models.BooleanField(default=True)
    ticket_price_cents = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Ticket price in minor currency units (e.g. cents). Required for paid events.",
    )
    registration_method = models.CharField(
        max_length=20,
        choices=RegistrationMethod.choices,
        default=RegistrationMethod.NATIVE,
    )
    registration_link = models.URLField(max_length=500, blank=True, default="")
    deleted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = EventQuerySet.as_manager()

    class Meta:
        ordering = ["start_date"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(max_attendees__isnull=True) | models.Q(max_attendees__gt=0),
                name="ticketing_event_max_attendees_positive",
            ),
        ]

    def __str__(self) -> str:
        return self.title

    @property
    def is_deleted(self) -> bool:
        """Return whether the event has been soft-deleted."""
        return self.deleted_at is not None

    def soft_delete(self) -> None:
        """Hide the event from the site while keeping its registrations."""
        self.deleted_at = timezone.now()
        self.save(update_fields=["deleted_at", "updated_at"])


class Registration(models.Model):
    """One attendee's registration for one event.

    Free registrations are created ``COMPLETED``; paid ones start ``PENDING``
    and only move to ``COMPLETED`` after the payment provider confirms the
    checkout session.  ``amount_paid`` is captured in minor units when the
    registration is created and overwritten by the captured amount on
    confirmation.  The ticket code, once assigned, never changes.
    """

    class Status(models.TextChoices):
        """Lifecycle states for a registration."""

        PENDING = "pending", "Pending"
        COMPLETED = "completed", "Completed"
        REFUNDED = "refunded", "Refunded"
        EXPIRED = "expired", "Expired"
        CANCELLED = "cancelled", "Cancelled"

    event = models.ForeignKey(
        Event,
        on_delete=models.PROTECT,
        related_name="registrations",
    )
    name = models.CharField(max_length=200)
    email = models.EmailField()
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    amount_paid = models.PositiveIntegerField(
        default=0,
        help_text="Amount in minor currency units (e.g. cents).",
    )
    ticket_code = models.CharField(max_length=32, unique=True, null=True, blank=True)
    stripe_session_id = models.CharField(max_length=255, blank=True, default="", db_index=True)
    stripe_payment_intent_id = models.CharField(max_length=255, blank=True, default="", db_index=True)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["event", "email"],
                condition=models.Q(status__in=ACTIVE_STATUSES),
                name="ticketing_registration_one_active_per_email",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} <{self.email}> ({self.status})"

    @property
    def is_active(self) -> bool:
        """Return whether this registration holds a capacity slot."""
        return self.status in ACTIVE_STATUSES

    @property
    def display_ticket_code(self) -> str:
        """Return the branded ticket code shown to attendees, or ``""``."""
        from django_backstage.ticketing.services.tickets import format_ticket_code  # noqa: PLC0415

        return format_ticket_code(self.ticket_code) if self.ticket_code else ""

    def can_transition_to(self, status: str) -> bool:
        """Return whether the lifecycle allows moving to ``status``."""
        return status in _ALLOWED_TRANSITIONS.get(self.status, frozenset())


_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    Registration.Status.PENDING: frozenset(
        {
            Registration.Status.COMPLETED,
            Registration.Status.CANCELLED,
            Registration.Status.EXPIRED,
        }
    ),
    Registration.Status.COMPLETED: frozenset({Registration.Status.REFUNDED}),
}


class StripeEvent(models.Model):
    """A raw Stripe webhook event, stored for de-duplication and audit."""

    stripe_id = models.CharField(max_length=255, unique=True)
    kind = models.CharField(max_length=255)
    livemode = models.BooleanField(default=False)
    payload = models.JSONField(default=dict)
    customer_id = models.CharField(max_length=255, blank=True, default="")
    processed = models.BooleanField(default=False)
    api_version = models.CharField(max_length=64, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.kind} ({self.stripe_id})"


class EventProcessingException(models.Model):
    """A captured failure while handling a Stripe webhook event."""

    event = models.ForeignKey(
        StripeEvent,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="exceptions",
    )
    data = models.TextField(blank=True, default="")
    message = models.CharField(max_length=500)
    traceback = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.message
