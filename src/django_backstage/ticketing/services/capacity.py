"""Event capacity enforcement and registration statistics.

Every count in this module (the sold-out check at registration time, the
public ``spots_left`` figure, and the annotated list counts) is built from the
same predicate, :func:`active_registrations_q`, so the number a visitor sees
is the number the registration service enforces.
"""

from dataclasses import dataclass

from django.db import models

from django_backstage.exceptions import SoldOut
from django_backstage.ticketing.models import ACTIVE_STATUSES, Event, Registration


@dataclass(frozen=True, slots=True)
class EventStats:
    """Derived, read-only capacity figures for an event."""

    registration_count: int
    spots_left: int | None
    is_sold_out: bool


@dataclass(frozen=True, slots=True)
class TicketSales:
    """Revenue breakdown for an event, in minor currency units."""

    total_revenue: int
    pending_revenue: int
    completed_count: int
    pending_count: int


def active_registrations_q(prefix: str = "") -> models.Q:
    """Return the filter matching registrations that hold a capacity slot.

    Args:
        prefix: Relation path to prepend (e.g. ``"registrations__"`` when
            filtering or aggregating from the ``Event`` side).
    """
    return models.Q(**{f"{prefix}status__in": ACTIVE_STATUSES})


def get_registration_count(event: Event) -> int:
    """Return the number of active registrations for ``event``."""
    return Registration.objects.filter(active_registrations_q(), event=event).count()


def _stats_for(max_attendees: int | None, count: int) -> EventStats:
    if max_attendees is None:
        return EventStats(registration_count=count, spots_left=None, is_sold_out=False)
    return EventStats(
        registration_count=count,
        spots_left=max_attendees - count,
        is_sold_out=count >= max_attendees,
    )


def get_event_stats(event: Event) -> EventStats:
    """Return registration count, remaining spots and sold-out flag.

    Uses the ``registration_count`` annotation when the event came from
    :func:`annotate_registration_counts`, otherwise runs a count query.

    Args:
        event: The event to describe.

    Returns:
        An :class:`EventStats`; ``spots_left`` is ``None`` when the event
        has no attendee limit.
    """
    count = getattr(event, "registration_count", None)
    if count is None:
        count = get_registration_count(event)
    return _stats_for(event.max_attendees, count)


def annotate_registration_counts(queryset: models.QuerySet) -> models.QuerySet:
    """Annotate an ``Event`` queryset with ``registration_count``.

    The aggregate uses the same active-status predicate as the registration
    service so list pages never disagree with the sold-out check.
    """
    return queryset.annotate(
        registration_count=models.Count(
            "registrations",
            filter=active_registrations_q("registrations__"),
        )
    )


def get_ticket_sales(event: Event) -> TicketSales:
    """Summarise completed and pending revenue for ``event``.

    Args:
        event: The event to report on.

    Returns:
        Revenue totals in minor units and the matching registration counts.
    """
    totals = Registration.objects.filter(event=event).aggregate(
        total_revenue=models.Sum(
            "amount_paid",
            filter=models.Q(status=Registration.Status.COMPLETED),
            default=0,
        ),
        pending_revenue=models.Sum(
            "amount_paid",
            filter=models.Q(status=Registration.Status.PENDING),
            default=0,
        ),
        completed_count=models.Count("pk", filter=models.Q(status=Registration.Status.COMPLETED)),
        pending_count=models.Count("pk", filter=models.Q(status=Registration.Status.PENDING)),
    )
    return TicketSales(**totals)


def validate_event_capacity(event: Event) -> Event:
    """Raise :class:`SoldOut` if ``event`` has no remaining capacity.

    Acquires a row-level lock on the event via ``select_for_update()`` so that
    concurrent registrations for the same event are serialised between the
    count and the insert.  The caller **must** already be inside a
    ``transaction.atomic`` block and must create the registration before the
    block commits.

    The early return for unlimited events happens **after** the lock is
    acquired so that a stale in-memory instance cannot bypass enforcement.

    Args:
        event: The event to validate against.

    Returns:
        The freshly locked event row.

    Raises:
        SoldOut: If the active registration count has reached ``max_attendees``.
    """
    locked = Event.objects.select_for_update().get(pk=event.pk)
    if locked.max_attendees is None:
        return locked
    if get_registration_count(locked) >= locked.max_attendees:
        raise SoldOut
    return locked
