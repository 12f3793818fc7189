"""Request-scoped authorization for registration data.

Views build one :class:`AuthContext` per request and make every access
decision through the predicates below, so the rules live in one place and can
be tested without a request.
"""

from dataclasses import dataclass, field

from django.http import HttpRequest

from django_backstage.ticketing.models import Registration

MANAGE_REGISTRATIONS_PERMISSION = "backstage_ticketing.change_registration"


@dataclass(frozen=True, slots=True)
class AuthContext:
    """Who is making the request and what they may do."""

    user_id: int | None = None
    email: str = ""
    is_staff: bool = False
    is_superuser: bool = False
    permissions: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_authenticated(self) -> bool:
        """Return whether the request carries a logged-in user."""
        return self.user_id is not None

    @classmethod
    def from_request(cls, request: HttpRequest) -> "AuthContext":
        """Build the context from ``request.user``; anonymous users get an empty context."""
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            return cls()
        return cls(
            user_id=user.pk,
            email=(getattr(user, "email", "") or "").lower(),
            is_staff=user.is_staff,
            is_superuser=user.is_superuser,
            permissions=frozenset(user.get_all_permissions()),
        )


def can_manage_registrations(ctx: AuthContext) -> bool:
    """Return whether the user may list, export, change or cancel registrations."""
    if ctx.is_superuser:
        return True
    return ctx.is_staff and MANAGE_REGISTRATIONS_PERMISSION in ctx.permissions


def can_view_registration(ctx: AuthContext, registration: Registration) -> bool:
    """Return whether the user may see ``registration``.

    Staff managers see everything; an attendee sees registrations made with
    the email address of their account.
    """
    if can_manage_registrations(ctx):
        return True
    return ctx.is_authenticated and bool(ctx.email) and ctx.email == registration.email.lower()
