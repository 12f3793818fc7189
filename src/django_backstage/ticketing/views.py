"""JSON views for events and registrations.

Every view answers with JSON.  Expected failures raised by the service layer
(:class:`~django_backstage.exceptions.BackstageError` subclasses) are turned
into ``{"error": ..., "code": ...}`` payloads with the matching HTTP status by
:class:`JsonView`; anything else propagates to Django's normal 500 handling.
"""

import json
import logging
from collections.abc import Mapping

from django.http import HttpRequest, HttpResponse, JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from django_backstage.exceptions import BackstageError, Forbidden, InputValidationError, NotFound
from django_backstage.features import FeatureRequiredMixin, require_feature
from django_backstage.settings import get_config
from django_backstage.ticketing.export import write_registrations_csv
from django_backstage.ticketing.forms import RegistrationUpdateForm, form_errors
from django_backstage.ticketing.models import Event, Registration
from django_backstage.ticketing.permissions import AuthContext, can_manage_registrations, can_view_registration
from django_backstage.ticketing.services.capacity import (
    annotate_registration_counts,
    get_event_stats,
    get_ticket_sales,
)
from django_backstage.ticketing.services.payment import PaymentVerificationService
from django_backstage.ticketing.services.registration import RegistrationResult, RegistrationService
from django_backstage.ticketing.stripe_utils import format_minor_units

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("1", "true", "yes")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def error_response(exc: BackstageError) -> JsonResponse:
    """Render a domain error as a JSON response."""
    return JsonResponse(exc.as_dict(), status=exc.status_code)


def parse_request_data(request: HttpRequest) -> object:
    """Return the decoded JSON body, or ``request.POST`` for form submissions.

    Raises:
        InputValidationError: If a JSON body cannot be decoded.
    """
    if request.content_type == "application/json":
        try:
            return json.loads(request.body or b"null")
        except ValueError:
            raise InputValidationError({"__all__": ["Request body must be valid JSON."]}) from None
    return request.POST


def get_base_url(request: HttpRequest) -> str:
    """Return the absolute site URL Stripe should redirect back to."""
    return get_config().site_url or request.build_absolute_uri("/")


def serialize_event(event: Event, *, include_sales: bool = False) -> dict[str, object]:
    """Return the public JSON representation of an event with capacity figures."""
    config = get_config()
    stats = get_event_stats(event)
    data: dict[str, object] = {
        "id": event.pk,
        "title": event.title,
        "slug": event.slug,
        "description": event.description,
        "category": event.category,
        "start_date": event.start_date,
        "end_date": event.end_date,
        "location": event.location,
        "venue": event.venue,
        "address": event.address,
        "cover": event.cover,
        "max_attendees": event.max_attendees,
        "is_free": event.is_free,
        "ticket_price_cents": event.ticket_price_cents,
        "ticket_price": (
            format_minor_units(event.ticket_price_cents, config.currency)
            if event.ticket_price_cents is not None
            else None
        ),
        "currency": config.currency,
        "registration_method": event.registration_method,
        "registration_link": event.registration_link,
        "registration_count": stats.registration_count,
        "spots_left": stats.spots_left,
        "is_sold_out": stats.is_sold_out,
    }
    if include_sales:
        sales = get_ticket_sales(event)
        data["ticket_sales"] = {
            "total_revenue": sales.total_revenue,
            "pending_revenue": sales.pending_revenue,
            "completed_count": sales.completed_count,
            "pending_count": sales.pending_count,
        }
    return data


def serialize_registration(registration: Registration) -> dict[str, object]:
    """Return the JSON representation of a registration."""
    event = registration.event
    return {
        "id": registration.pk,
        "event_id": event.pk,
        "event_title": event.title,
        "event_slug": event.slug,
        "event_date": event.start_date,
        "event_location": event.venue or event.location,
        "name": registration.name,
        "email": registration.email,
        "status": registration.status,
        "amount_paid": registration.amount_paid,
        "ticket_code": registration.display_ticket_code,
        "notes": registration.notes,
        "created_at": registration.created_at,
        "updated_at": registration.updated_at,
    }


def _parse_id(value: str | None) -> int | None:
    try:
        return int(value) if value else None
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Base view
# ---------------------------------------------------------------------------


class JsonView(View):
    """Base view that renders domain errors as JSON and exposes ``self.auth``."""

    auth: AuthContext

    def dispatch(self, request: HttpRequest, *args: object, **kwargs: object) -> HttpResponse:
        """Build the auth context and translate domain errors into responses."""
        self.auth = AuthContext.from_request(request)
        try:
            return super().dispatch(request, *args, **kwargs)
        except BackstageError as exc:
            return error_response(exc)

    def require_manager(self) -> None:
        """Raise :class:`Forbidden` unless the user may manage registrations."""
        if not can_manage_registrations(self.auth):
            raise Forbidden

    def get_registration(self, pk: int) -> Registration:
        """Return the registration the current user is allowed to see.

        Raises:
            NotFound: If it does not exist.
            Forbidden: If the user may not see it.
        """
        try:
            registration = Registration.objects.select_related("event").get(pk=pk)
        except Registration.DoesNotExist:
            raise NotFound("Registration not found.") from None
        if not can_view_registration(self.auth, registration):
            raise Forbidden
        return registration


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class EventListView(FeatureRequiredMixin, JsonView):
    """Lists active events with registration counts.

    Query parameters:
        category: ``upcoming`` or ``past``.
        include_stats: ``true`` adds ticket sales figures (managers only).
    """

    required_feature = "public_ui"

    def get(self, request: HttpRequest) -> JsonResponse:
        """Return ``{"events": [...]}``."""
        queryset = Event.objects.active()

        category = request.GET.get("category", "")
        if category:
            if category not in Event.Category.values:
                raise InputValidationError({"category": [f"Must be one of: {', '.join(Event.Category.values)}."]})
            queryset = queryset.filter(category=category)

        include_sales = request.GET.get("include_stats", "").lower() in _TRUE_VALUES
        if include_sales:
            self.require_manager()

        events = annotate_registration_counts(queryset)
        return JsonResponse({"events": [serialize_event(event, include_sales=include_sales) for event in events]})


class EventDetailView(FeatureRequiredMixin, JsonView):
    """Returns one active event by slug."""

    required_feature = "public_ui"

    def get(self, request: HttpRequest, slug: str) -> JsonResponse:  # noqa: ARG002
        """Return the event with its capacity figures."""
        try:
            event = annotate_registration_counts(Event.objects.active()).get(slug=slug)
        except Event.DoesNotExist:
            raise NotFound("Event not found.") from None
        return JsonResponse(serialize_event(event))


# ---------------------------------------------------------------------------
# Registrations
# ---------------------------------------------------------------------------


def _registration_result_response(result: RegistrationResult) -> JsonResponse:
    registration = result.registration
    if result.requires_payment:
        return JsonResponse({"checkout_url": result.checkout_url, "registration_id": registration.pk})
    return JsonResponse(
        {
            "status": registration.status,
            "registration_id": registration.pk,
            "ticket_code": registration.display_ticket_code,
            "registration": serialize_registration(registration),
        },
        status=201,
    )


@method_decorator(csrf_exempt, name="dispatch")
class RegistrationCollectionView(JsonView):
    """Creates registrations (public) and lists them (managers).

    ``POST`` takes ``{"event_id", "name", "email"}``.  Free events answer
    ``201`` with the ticket code; paid events answer ``200`` with the Stripe
    ``checkout_url`` to redirect to.
    """

    def get(self, request: HttpRequest) -> JsonResponse:
        """Return registrations, optionally filtered by ``event`` and ``status``."""
        self.require_manager()
        queryset = Registration.objects.select_related("event")
        event_id = _parse_id(request.GET.get("event"))
        if event_id is not None:
            queryset = queryset.filter(event_id=event_id)
        status = request.GET.get("status", "")
        if status:
            queryset = queryset.filter(status=status)
        return JsonResponse({"registrations": [serialize_registration(r) for r in queryset]})

    def post(self, request: HttpRequest) -> JsonResponse:
        """Register an attendee."""
        require_feature("registration")
        result = RegistrationService.register(parse_request_data(request), base_url=get_base_url(request))
        return _registration_result_response(result)


class RegistrationSuccessView(JsonView):
    """Confirms a paid registration after the Stripe redirect.

    Query parameters:
        session_id: Appended by Stripe to the success URL.
        registration_id: Fallback lookup key added when the session was created.
    """

    def get(self, request: HttpRequest) -> JsonResponse:
        """Verify the payment with Stripe and return the completed registration."""
        registration = PaymentVerificationService.verify(
            request.GET.get("session_id", ""),
            registration_id=_parse_id(request.GET.get("registration_id")),
        )
        return JsonResponse(
            {
                "status": registration.status,
                "registration": serialize_registration(registration),
                "event": serialize_event(registration.event),
            }
        )


class RegistrationDetailView(JsonView):
    """Returns one registration to its owner or to a manager."""

    def get(self, request: HttpRequest, pk: int) -> JsonResponse:  # noqa: ARG002
        """Return the registration."""
        return JsonResponse(serialize_registration(self.get_registration(pk)))


class RegistrationUpdateView(JsonView):
    """Lets a manager change a registration's status or notes."""

    def post(self, request: HttpRequest, pk: int) -> JsonResponse:
        """Apply the submitted changes within the registration lifecycle."""
        self.require_manager()
        registration = self.get_registration(pk)
        data = parse_request_data(request)
        if not isinstance(data, Mapping):
            raise InputValidationError({"__all__": ["Request body must be a JSON object."]})
        form = RegistrationUpdateForm(data=data)
        if not form.is_valid():
            raise InputValidationError(form_errors(form))
        registration = RegistrationService.update_registration(registration, **form.get_changes())
        logger.info("Registration %s updated by user %s", registration.pk, self.auth.user_id)
        return JsonResponse(serialize_registration(Registration.objects.select_related("event").get(pk=pk)))


class RegistrationCancelView(JsonView):
    """Lets a manager cancel a pending registration."""

    def post(self, request: HttpRequest, pk: int) -> JsonResponse:  # noqa: ARG002
        """Cancel the registration and release its capacity slot."""
        self.require_manager()
        registration = RegistrationService.cancel_registration(self.get_registration(pk))
        logger.info("Registration %s cancelled by user %s", registration.pk, self.auth.user_id)
        return JsonResponse(serialize_registration(Registration.objects.select_related("event").get(pk=pk)))


class RegistrationRetryCheckoutView(JsonView):
    """Returns a payable checkout for the caller's pending registration.

    Authorised through the session user, so the CSRF check stays on.
    """

    def post(self, request: HttpRequest, pk: int) -> JsonResponse:
        """Reuse or re-open the Stripe checkout session."""
        require_feature("registration")
        registration = self.get_registration(pk)
        result = RegistrationService.retry_checkout(registration, base_url=get_base_url(request))
        return _registration_result_response(result)


class RegistrationExportView(JsonView):
    """Streams registrations as CSV to managers.

    Query parameters:
        event: Optional event id to restrict the export to.
    """

    def get(self, request: HttpRequest) -> HttpResponse:
        """Return ``registrations.csv`` as an attachment."""
        self.require_manager()
        queryset = Registration.objects.select_related("event").order_by("created_at")
        filename = "registrations.csv"
        event_id = _parse_id(request.GET.get("event"))
        if event_id is not None:
            queryset = queryset.filter(event_id=event_id)
            filename = f"registrations-event-{event_id}.csv"

        response = HttpResponse(content_type="text/csv; charset=utf-8")
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        rows = write_registrations_csv(queryset, response)
        logger.info("Exported %d registration(s) for user %s", rows, self.auth.user_id)
        return response
