"""Forms for the ticketing app.

The forms double as the explicit input schema for the JSON endpoints:
:func:`validate_registration_payload` runs a decoded request body through
:class:`RegistrationForm` and either returns a typed
:class:`ValidatedRegistration` or raises
:class:`~django_backstage.exceptions.InputValidationError` listing every
offending field.
"""

from collections.abc import Mapping
from dataclasses import dataclass

from django import forms

from django_backstage.exceptions import InputValidationError
from django_backstage.ticketing.models import Registration

# camelCase keys accepted from older clients.
_FIELD_ALIASES = {
    "eventId": "event_id",
}


@dataclass(frozen=True, slots=True)
class ValidatedRegistration:
    """A registration request that passed schema validation."""

    event_id: int
    name: str
    email: str


class RegistrationForm(forms.Form):
    """Attendee details submitted when registering for an event."""

    event_id = forms.IntegerField(min_value=1)
    name = forms.CharField(max_length=200, strip=True)
    email = forms.EmailField(max_length=254)

    def clean_email(self) -> str:
        """Normalise the email so duplicate detection is case-insensitive."""
        return self.cleaned_data["email"].strip().lower()


class RegistrationUpdateForm(forms.Form):
    """Staff form for changing a registration's status or notes.

    Both fields are optional; a field left out of the submitted data is left
    unchanged on the registration.
    """

    status = forms.ChoiceField(choices=Registration.Status.choices, required=False)
    notes = forms.CharField(widget=forms.Textarea, required=False, strip=False)

    def clean(self) -> dict:
        """Require at least one of status or notes to be supplied."""
        cleaned = super().clean()
        if not cleaned.get("status") and "notes" not in self.data:
            raise forms.ValidationError("Provide a status, notes, or both.")
        return cleaned

    def get_changes(self) -> dict[str, str]:
        """Return only the fields the caller actually submitted."""
        changes: dict[str, str] = {}
        if self.cleaned_data.get("status"):
            changes["status"] = self.cleaned_data["status"]
        if "notes" in self.data:
            changes["notes"] = self.cleaned_data.get("notes", "")
        return changes


def form_errors(form: forms.Form) -> dict[str, list[str]]:
    """Flatten a bound form's errors into ``{field: [messages]}``."""
    return {field: [str(message) for message in messages] for field, messages in form.errors.items()}


def validate_registration_payload(data: object) -> ValidatedRegistration:
    """Validate a decoded registration request body.

    Args:
        data: The decoded JSON body (or ``request.POST``).

    Returns:
        The validated, normalised registration input.

    Raises:
        InputValidationError: If ``data`` is not an object or any field is
            missing or malformed. All failures are reported together.
    """
    if not isinstance(data, Mapping):
        raise InputValidationError({"__all__": ["Request body must be a JSON object."]})

    normalised = {_FIELD_ALIASES.get(key, key): value for key, value in data.items()}
    form = RegistrationForm(data=normalised)
    if not form.is_valid():
        raise InputValidationError(form_errors(form))
    return ValidatedRegistration(**form.cleaned_data)
