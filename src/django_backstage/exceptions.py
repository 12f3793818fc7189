"""Error taxonomy for registration, ticketing, checkout and newsletter flows.

Every error carries a stable ``code`` and a user-safe ``message``, and knows
the HTTP status the JSON views answer with.  Business-rule failures are never
downgraded to a generic error: callers either handle the specific class or let
the view translate it with :meth:`BackstageError.as_dict`.
"""

from http import HTTPStatus


class BackstageError(Exception):
    """Base class for expected, user-facing failures."""

    code: str = "error"
    status_code: int = HTTPStatus.BAD_REQUEST
    default_message: str = "The request could not be completed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def as_dict(self) -> dict[str, object]:
        """Return the JSON error payload for this failure."""
        return {"error": self.message, "code": self.code}


class InputValidationError(BackstageError):
    """Request input failed schema validation.

    ``errors`` maps each offending field (``"__all__"`` for the payload as a
    whole) to the list of messages describing what is wrong with it.
    """

    code = "validation_error"
    default_message = "Invalid request data."

    def __init__(self, errors: dict[str, list[str]]) -> None:
        self.errors = errors
        super().__init__(f"Invalid request data: {', '.join(sorted(errors))}.")

    @property
    def fields(self) -> list[str]:
        """Names of the fields that failed validation."""
        return sorted(self.errors)

    def as_dict(self) -> dict[str, object]:
        """Return the error payload including the per-field report."""
        payload = super().as_dict()
        payload["details"] = self.errors
        return payload


class NotFound(BackstageError):
    """The referenced event, product or registration does not exist."""

    code = "not_found"
    status_code = HTTPStatus.NOT_FOUND
    default_message = "Not found."


class SoldOut(BackstageError):
    """The event's capacity is already taken by active registrations."""

    code = "sold_out"
    status_code = HTTPStatus.CONFLICT
    default_message = "Event is sold out."


class DuplicateRegistration(BackstageError):
    """An active registration already exists for this event and email."""

    code = "duplicate_registration"
    status_code = HTTPStatus.CONFLICT
    default_message = "You are already registered for this event."


class InvalidPrice(BackstageError):
    """A paid event or product has no usable price configured."""

    code = "invalid_price"
    default_message = "Invalid ticket price for this event."


class InvalidTransition(BackstageError):
    """A registration cannot move from its current status to the requested one."""

    code = "invalid_transition"
    status_code = HTTPStatus.CONFLICT
    default_message = "This registration cannot be changed to the requested status."


class CodeGenerationExhausted(BackstageError):
    """No unique ticket code could be produced within the retry budget."""

    code = "ticket_code_exhausted"
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    default_message = "Could not issue a ticket code. Please try again later."

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__()


class PaymentError(BackstageError):
    """Base for payment failures that may reference a registration."""

    def __init__(self, message: str | None = None, *, registration_id: int | None = None) -> None:
        self.registration_id = registration_id
        super().__init__(message)

    def as_dict(self) -> dict[str, object]:
        """Return the error payload, with the registration id for reconciliation."""
        payload = super().as_dict()
        if self.registration_id is not None:
            payload["registration_id"] = self.registration_id
        return payload


class PaymentProviderError(PaymentError):
    """The payment provider failed or is not configured."""

    code = "payment_provider_error"
    status_code = HTTPStatus.BAD_GATEWAY
    default_message = "The payment service is unavailable. Please try again."


class PaymentNotCompleted(PaymentError):
    """The provider does not (yet) report the checkout session as paid."""

    code = "payment_not_completed"
    status_code = HTTPStatus.PAYMENT_REQUIRED
    default_message = "We couldn't confirm your payment. Please contact support."


class Forbidden(BackstageError):
    """The caller is not allowed to see or change the requested record."""

    code = "forbidden"
    status_code = HTTPStatus.FORBIDDEN
    default_message = "You do not have permission to perform this action."


class AlreadySubscribed(BackstageError):
    """The email address is already on the newsletter list."""

    code = "already_subscribed"
    status_code = HTTPStatus.CONFLICT
    default_message = "Email already subscribed."
