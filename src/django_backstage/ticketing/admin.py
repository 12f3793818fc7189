"""Django admin configuration for the ticketing app."""

from django.contrib import admin, messages
from django.db.models import QuerySet
from django.http import HttpRequest, HttpResponse

from django_backstage.exceptions import InvalidTransition, PaymentProviderError
from django_backstage.ticketing.export import write_registrations_csv
from django_backstage.ticketing.models import (
    Event,
    EventProcessingException,
    Registration,
    StripeEvent,
)
from django_backstage.ticketing.services.capacity import annotate_registration_counts
from django_backstage.ticketing.services.refund import refund_registration
from django_backstage.ticketing.services.registration import RegistrationService


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    """Admin interface for managing events.

    Shows the active registration count next to the capacity, and offers a
    soft-delete action that hides events without touching their
    registrations.
    """

    list_display = (
        "title",
        "start_date",
        "category",
        "registration_method",
        "is_free",
        "ticket_price_cents",
        "registration_count",
        "max_attendees",
        "deleted_at",
    )
    list_filter = ("category", "registration_method", "is_free", "deleted_at")
    search_fields = ("title", "slug", "location", "venue")
    prepopulated_fields = {"slug": ("title",)}
    date_hierarchy = "start_date"
    readonly_fields = ("deleted_at", "created_at", "updated_at")
    actions = ("soft_delete_events",)

    def get_queryset(self, request: HttpRequest) -> QuerySet[Event]:
        """Annotate active registration counts for the changelist."""
        return annotate_registration_counts(super().get_queryset(request))

    @admin.display(description="Registrations", ordering="registration_count")
    def registration_count(self, obj: Event) -> int:
        """Return the annotated count of active registrations."""
        return obj.registration_count

    @admin.action(description="Soft-delete selected events")
    def soft_delete_events(self, request: HttpRequest, queryset: QuerySet[Event]) -> None:
        """Hide the selected events from the public site."""
        count = 0
        for event in queryset.filter(deleted_at__isnull=True):
            event.soft_delete()
            count += 1
        self.message_user(request, f"Soft-deleted {count} event(s).", level=messages.SUCCESS)


@admin.register(Registration)
class RegistrationAdmin(admin.ModelAdmin):
    """Admin interface for registrations.

    Status, payment and ticket fields are read-only: every status change goes
    through an action backed by the registration lifecycle.
    """

    list_display = ("id", "name", "email", "event", "status", "amount_paid", "ticket_code", "created_at")
    list_filter = ("status", "event")
    search_fields = ("name", "email", "ticket_code", "stripe_session_id", "stripe_payment_intent_id")
    list_select_related = ("event",)
    readonly_fields = (
        "event",
        "status",
        "amount_paid",
        "ticket_code",
        "stripe_session_id",
        "stripe_payment_intent_id",
        "created_at",
        "updated_at",
    )
    actions = ("cancel_registrations", "refund_registrations", "export_csv")

    def has_add_permission(self, request: HttpRequest) -> bool:  # noqa: ARG002, D102
        return False

    @admin.action(description="Cancel selected pending registrations")
    def cancel_registrations(self, request: HttpRequest, queryset: QuerySet[Registration]) -> None:
        """Cancel pending registrations, reporting those that cannot be cancelled."""
        count = 0
        for registration in queryset:
            try:
                RegistrationService.cancel_registration(registration)
            except InvalidTransition as exc:
                self.message_user(request, f"Registration {registration.pk}: {exc.message}", level=messages.WARNING)
            else:
                count += 1
        self.message_user(request, f"Cancelled {count} registration(s).", level=messages.SUCCESS)

    @admin.action(description="Refund selected completed registrations")
    def refund_registrations(self, request: HttpRequest, queryset: QuerySet[Registration]) -> None:
        """Refund completed registrations through Stripe where money was captured."""
        count = 0
        for registration in queryset:
            try:
                refund_registration(registration)
            except (InvalidTransition, PaymentProviderError) as exc:
                self.message_user(request, f"Registration {registration.pk}: {exc.message}", level=messages.WARNING)
            else:
                count += 1
        self.message_user(request, f"Refunded {count} registration(s).", level=messages.SUCCESS)

    @admin.action(description="Export selected registrations as CSV")
    def export_csv(self, request: HttpRequest, queryset: QuerySet[Registration]) -> HttpResponse:  # noqa: ARG002
        """Download the selected registrations as a CSV file."""
        response = HttpResponse(content_type="text/csv; charset=utf-8")
        response["Content-Disposition"] = 'attachment; filename="registrations.csv"'
        write_registrations_csv(queryset.select_related("event").order_by("created_at"), response)
        return response


@admin.register(StripeEvent)
class StripeEventAdmin(admin.ModelAdmin):
    """Read-only admin for Stripe webhook events."""

    list_display = ("stripe_id", "kind", "processed", "livemode", "created_at")
    list_filter = ("kind", "processed", "livemode")
    search_fields = ("stripe_id", "customer_id")
    readonly_fields = (
        "stripe_id",
        "kind",
        "livemode",
        "payload",
        "customer_id",
        "processed",
        "api_version",
        "created_at",
    )

    def has_add_permission(self, request: HttpRequest) -> bool:  # noqa: ARG002, D102
        return False

    def has_change_permission(self, request: HttpRequest, obj: StripeEvent | None = None) -> bool:  # noqa: ARG002, D102
        return False

    def has_delete_permission(self, request: HttpRequest, obj: StripeEvent | None = None) -> bool:  # noqa: ARG002, D102
        return False


@admin.register(EventProcessingException)
class EventProcessingExceptionAdmin(admin.ModelAdmin):
    """Read-only admin for webhook processing errors."""

    list_display = ("message", "event", "created_at")
    list_filter = ("created_at",)
    search_fields = ("message",)
    readonly_fields = ("event", "data", "message", "traceback", "created_at")

    def has_add_permission(self, request: HttpRequest) -> bool:  # noqa: ARG002, D102
        return False

    def has_change_permission(  # noqa: D102
        self,
        request: HttpRequest,  # noqa: ARG002
        obj: EventProcessingException | None = None,  # noqa: ARG002
    ) -> bool:
        return False

    def has_delete_permission(  # noqa: D102
        self,
        request: HttpRequest,  # noqa: ARG002
        obj: EventProcessingException | None = None,  # noqa: ARG002
    ) -> bool:
        return False
