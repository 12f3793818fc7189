"""Stripe client wrapper for checkout sessions and refunds.

The site runs on a single Stripe account, so the client is initialized from
``DJANGO_BACKSTAGE["stripe"]`` and uses the modern ``stripe.StripeClient``
pattern (v1 namespace) for all API calls.  Every SDK failure is re-raised as
:class:`~django_backstage.exceptions.PaymentProviderError` so callers only
deal with the project's own error taxonomy.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

import stripe

from django_backstage.exceptions import PaymentProviderError
from django_backstage.settings import get_config
from django_backstage.ticketing.stripe_utils import obfuscate_key

logger = logging.getLogger(__name__)


def _field(obj: object, name: str) -> object:
    """Read ``name`` from a Stripe object or a plain webhook payload dict."""
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _as_dict(obj: object) -> dict[str, str]:
    if obj is None:
        return {}
    if isinstance(obj, Mapping):
        return {str(k): str(v) for k, v in obj.items()}
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return {str(k): str(v) for k, v in to_dict().items()}
    return {}


@dataclass(frozen=True, slots=True)
class CheckoutSession:
    """The parts of a Stripe Checkout Session the ticketing flow relies on."""

    id: str
    url: str = ""
    status: str = ""
    payment_status: str = ""
    amount_total: int | None = None
    payment_intent_id: str = ""
    customer_email: str = ""
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def is_paid(self) -> bool:
        """Return whether Stripe reports the session's payment as captured."""
        return self.payment_status == "paid"

    @classmethod
    def from_stripe(cls, session: object) -> "CheckoutSession":
        """Build a :class:`CheckoutSession` from an SDK object or webhook dict.

        Args:
            session: A ``stripe.checkout.Session`` or the ``data.object``
                mapping of a ``checkout.session.*`` webhook event.

        Returns:
            A detached, immutable snapshot of the session.
        """
        payment_intent = _field(session, "payment_intent")
        if payment_intent is not None and not isinstance(payment_intent, str):
            payment_intent = _field(payment_intent, "id")
        customer_details = _field(session, "customer_details")
        customer_email = _field(session, "customer_email") or _field(customer_details, "email")
        amount_total = _field(session, "amount_total")
        return cls(
            id=str(_field(session, "id") or ""),
            url=str(_field(session, "url") or ""),
            status=str(_field(session, "status") or ""),
            payment_status=str(_field(session, "payment_status") or ""),
            amount_total=int(amount_total) if amount_total is not None else None,
            payment_intent_id=str(payment_intent or ""),
            customer_email=str(customer_email or ""),
            metadata=_as_dict(_field(session, "metadata")),
        )


class StripeClient:
    """Site-wide Stripe API client.

    Wraps ``stripe.StripeClient`` (v1 namespace) and binds every call to the
    configured secret key and API version.

    Raises:
        PaymentProviderError: If no Stripe secret key is configured.
    """

    def __init__(self) -> None:
        config = get_config()
        secret_key = config.stripe.secret_key
        if not secret_key:
            logger.error("Stripe secret key is not configured in DJANGO_BACKSTAGE['stripe']")
            msg = "Payments are not configured."
            raise PaymentProviderError(msg)

        self.currency = config.currency
        self.client = stripe.StripeClient(
            secret_key,
            stripe_version=config.stripe.api_version,
        )
        logger.debug("Initialized StripeClient with key %s", obfuscate_key(secret_key))

    def create_checkout_session(  # noqa: PLR0913
        self,
        *,
        name: str,
        unit_amount: int,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
        customer_email: str = "",
        description: str = "",
        image: str = "",
        expires_at: datetime | None = None,
        idempotency_key: str | None = None,
    ) -> CheckoutSession:
        """Create a one-item Checkout Session in ``payment`` mode.

        Args:
            name: Line item name shown on the Stripe checkout page.
            unit_amount: Price in minor currency units.
            success_url: Where Stripe redirects after payment. May contain the
                ``{CHECKOUT_SESSION_ID}`` template variable.
            cancel_url: Where Stripe redirects when the buyer backs out.
            metadata: Identifiers copied onto the session and its payment
                intent so webhooks can find the local record.
            customer_email: Prefills the buyer's email address.
            description: Optional line item description.
            image: Optional public image URL for the line item.
            expires_at: When the session should stop accepting payment.
            idempotency_key: Makes retried requests safe.

        Returns:
            The created session.

        Raises:
            PaymentProviderError: If Stripe rejects the request or is unreachable.
        """
        product_data: dict[str, object] = {"name": name}
        if description:
            product_data["description"] = description
        if image:
            product_data["images"] = [image]

        params: dict[str, object] = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": self.currency.lower(),
                        "product_data": product_data,
                        "unit_amount": unit_amount,
                    },
                    "quantity": 1,
                }
            ],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
        }
        if customer_email:
            params["customer_email"] = customer_email
        if expires_at is not None:
            params["expires_at"] = int(expires_at.timestamp())

        options: dict[str, object] = {}
        if idempotency_key:
            options["idempotency_key"] = idempotency_key

        try:
            session = self.client.v1.checkout.sessions.create(params=params, options=options)
        except stripe.StripeError as exc:
            logger.warning("Stripe rejected checkout session for %s: %s", metadata, exc)
            raise PaymentProviderError from exc
        return CheckoutSession.from_stripe(session)

    def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        """Fetch a Checkout Session from Stripe.

        Raises:
            PaymentProviderError: If the lookup fails.
        """
        try:
            session = self.client.v1.checkout.sessions.retrieve(session_id)
        except stripe.StripeError as exc:
            logger.warning("Could not retrieve checkout session %s: %s", session_id, exc)
            raise PaymentProviderError from exc
        return CheckoutSession.from_stripe(session)

    def create_refund(
        self,
        payment_intent_id: str,
        amount: int | None = None,
        reason: str = "requested_by_customer",
    ) -> str:
        """Create a full or partial refund for a PaymentIntent.

        Args:
            payment_intent_id: The Stripe PaymentIntent ID to refund.
            amount: Optional partial refund amount in minor units. When
                ``None`` the full PaymentIntent amount is refunded.
            reason: The Stripe refund reason string (e.g.
                ``"requested_by_customer"``, ``"duplicate"``, ``"fraudulent"``).

        Returns:
            The Stripe refund ID.

        Raises:
            PaymentProviderError: If Stripe rejects the refund.
        """
        params: dict[str, object] = {
            "payment_intent": payment_intent_id,
            "reason": reason,
        }
        if amount is not None:
            params["amount"] = amount

        try:
            refund = self.client.v1.refunds.create(params=params)
        except stripe.StripeError as exc:
            logger.warning("Stripe refund failed for %s: %s", payment_intent_id, exc)
            raise PaymentProviderError from exc
        return str(_field(refund, "id") or "")
