"""Merchandise checkout, newsletter and comment services.

Merchandise is sold one item per Stripe Checkout session.  Nothing is written
locally when the session is created; the purchase is recorded once the
``checkout.session.completed`` webhook confirms payment.

Newsletter subscribers and comments are plain form-validated writes.  A new
or returning subscriber fires ``newsletter_subscribed``, which sends the
welcome email.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from django import forms
from django.db import IntegrityError, transaction
from django.utils import timezone

from django_backstage.content.forms import CommentForm, CommentTargetForm, NewsletterForm, ProductCheckoutForm
from django_backstage.content.models import (
    Comment,
    NewsletterSubscriber,
    Post,
    Product,
    ProductPurchase,
    Track,
    Video,
)
from django_backstage.content.signals import newsletter_subscribed
from django_backstage.exceptions import (
    AlreadySubscribed,
    InputValidationError,
    InvalidPrice,
    NotFound,
    PaymentProviderError,
)
from django_backstage.ticketing.forms import form_errors
from django_backstage.ticketing.stripe_client import CheckoutSession, StripeClient

logger = logging.getLogger(__name__)

_FIELD_ALIASES = {
    "productId": "product_id",
    "postId": "post_id",
    "videoId": "video_id",
    "musicId": "track_id",
    "music_id": "track_id",
}


def _bind_form(form_class: type[forms.Form], data: object) -> forms.Form:
    """Return a validated ``form_class`` bound to ``data`` with field aliases resolved.

    Raises:
        InputValidationError: If ``data`` is not a mapping or fails validation.
    """
    if not isinstance(data, Mapping):
        raise InputValidationError({"__all__": ["Request body must be a JSON object."]})
    form = form_class(data={_FIELD_ALIASES.get(key, key): value for key, value in data.items()})
    if not form.is_valid():
        raise InputValidationError(form_errors(form))
    return form


@dataclass(frozen=True, slots=True)
class ProductCheckout:
    """A merchandise checkout the buyer must be redirected to."""

    checkout_url: str
    session_id: str


class ProductCheckoutService:
    """Stateless service for merchandise checkout operations."""

    @staticmethod
    def create_checkout(data: object, *, base_url: str) -> ProductCheckout:
        """Open a Stripe Checkout session for one published product.

        Args:
            data: The decoded request body with ``product_id``, ``name`` and
                ``email``.
            base_url: Absolute site URL used to build the Stripe redirect URLs.

        Returns:
            The checkout URL and session id.

        Raises:
            InputValidationError: If the input is malformed.
            NotFound: If the product does not exist or is not published.
            InvalidPrice: If the product has no positive price.
            PaymentProviderError: If Stripe fails.
        """
        form = _bind_form(ProductCheckoutForm, data)

        try:
            product = Product.objects.published().get(pk=form.cleaned_data["product_id"])
        except Product.DoesNotExist:
            raise NotFound("Product not found.") from None

        if product.price_cents <= 0:
            logger.error("Published product %s has no valid price", product.pk)
            raise InvalidPrice("Invalid price for this product.")

        base = base_url.rstrip("/")
        session = StripeClient().create_checkout_session(
            name=product.title,
            description=product.description[:500],
            image=product.image,
            unit_amount=product.price_cents,
            customer_email=form.cleaned_data["email"],
            success_url=f"{base}/merchandise/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{base}/merchandise",
            metadata={
                "product_id": str(product.pk),
                "customer_email": form.cleaned_data["email"],
                "customer_name": form.cleaned_data["name"],
                "product_title": product.title,
                "product_price": str(product.price_cents),
            },
        )
        if not session.url:
            logger.error("Stripe returned no checkout URL for product %s (session %s)", product.pk, session.id)
            raise PaymentProviderError

        logger.info("Opened checkout session %s for product %s", session.id, product.pk)
        return ProductCheckout(checkout_url=session.url, session_id=session.id)

    @staticmethod
    def record_purchase(session: CheckoutSession) -> ProductPurchase | None:
        """Record a paid merchandise session. Safe to call more than once.

        Args:
            session: A paid checkout session carrying ``product_id`` metadata.

        Returns:
            The purchase record, or ``None`` if the product no longer exists.
        """
        existing = ProductPurchase.objects.filter(stripe_session_id=session.id).first()
        if existing is not None:
            return existing

        product_id = session.metadata.get("product_id", "")
        product = Product.objects.filter(pk=int(product_id)).first() if product_id.isdigit() else None
        if product is None:
            logger.warning("Paid checkout session %s references unknown product", session.id)
            return None

        try:
            with transaction.atomic():
                purchase = ProductPurchase.objects.create(
                    product=product,
                    customer_name=session.metadata.get("customer_name", ""),
                    customer_email=session.customer_email or session.metadata.get("customer_email", ""),
                    amount_cents=session.amount_total or 0,
                    stripe_session_id=session.id,
                    stripe_payment_intent_id=session.payment_intent_id,
                )
        except IntegrityError:
            return ProductPurchase.objects.get(stripe_session_id=session.id)

        logger.info("Recorded purchase of product %s via checkout session %s", product.pk, session.id)
        return purchase


@dataclass(frozen=True, slots=True)
class Subscription:
    """The outcome of a newsletter sign-up."""

    subscriber: NewsletterSubscriber
    created: bool


class NewsletterService:
    """Stateless service for the newsletter list."""

    @staticmethod
    def subscribe(data: object) -> Subscription:
        """Add an address to the newsletter, or bring back one that left.

        Args:
            data: The decoded request body with ``email``.

        Returns:
            The subscriber and whether the address is new.

        Raises:
            InputValidationError: If the email is missing or malformed.
            AlreadySubscribed: If the address is already subscribed.
        """
        email = _bind_form(NewsletterForm, data).cleaned_data["email"]

        with transaction.atomic():
            subscriber = NewsletterSubscriber.objects.select_for_update().filter(email=email).first()
            if subscriber is not None and subscriber.subscribed:
                raise AlreadySubscribed
            if subscriber is not None:
                subscriber.subscribed = True
                subscriber.unsubscribed_at = None
                subscriber.save(update_fields=["subscribed", "unsubscribed_at", "updated_at"])
                created = False
            else:
                try:
                    with transaction.atomic():
                        subscriber = NewsletterSubscriber.objects.create(email=email)
                except IntegrityError:
                    raise AlreadySubscribed from None
                created = True

        logger.info("Newsletter subscriber %s %s", subscriber.pk, "joined" if created else "resubscribed")
        newsletter_subscribed.send(sender=NewsletterSubscriber, subscriber=subscriber, created=created)
        return Subscription(subscriber=subscriber, created=created)

    @staticmethod
    def unsubscribe(email: str | None) -> NewsletterSubscriber:
        """Take an address off the newsletter. Unsubscribing twice is a no-op.

        Raises:
            InputValidationError: If the email is missing or malformed.
            NotFound: If the address never subscribed.
        """
        email = _bind_form(NewsletterForm, {"email": email or ""}).cleaned_data["email"]

        with transaction.atomic():
            subscriber = NewsletterSubscriber.objects.select_for_update().filter(email=email).first()
            if subscriber is None:
                raise NotFound("Email not found.")
            if subscriber.subscribed:
                subscriber.subscribed = False
                subscriber.unsubscribed_at = timezone.now()
                subscriber.save(update_fields=["subscribed", "unsubscribed_at", "updated_at"])
                logger.info("Newsletter subscriber %s unsubscribed", subscriber.pk)
        return subscriber


class CommentService:
    """Stateless service for visitor comments on posts, videos and music."""

    @staticmethod
    def list_comments(params: object) -> list[Comment]:
        """Return approved comments for the given target(s), newest first.

        Args:
            params: A mapping with at least one of ``post_id``, ``video_id``
                or ``music_id`` (camelCase spellings are accepted too).

        Raises:
            InputValidationError: If no target is given or an id is malformed.
        """
        cleaned = _bind_form(CommentTargetForm, params).cleaned_data
        filters = {
            f"{name}_id": cleaned[f"{name}_id"] for name in ("post", "video", "track") if cleaned[f"{name}_id"]
        }
        return list(Comment.objects.approved().filter(**filters))

    @staticmethod
    def create_comment(data: object) -> Comment:
        """Store a visitor comment on a published post, video or track.

        Comments go live straight away; staff hide unwanted ones from the
        admin.

        Args:
            data: The decoded request body with ``content``, optional
                ``author`` and ``email``, and at least one target id.

        Raises:
            InputValidationError: If the input is malformed.
            NotFound: If a target does not exist or is not published.
        """
        cleaned = _bind_form(CommentForm, data).cleaned_data
        targets: dict[str, object] = {}
        for name, model in (("post", Post), ("video", Video), ("track", Track)):
            target_id = cleaned[f"{name}_id"]
            if not target_id:
                continue
            target = model.objects.published().filter(pk=target_id).first()
            if target is None:
                raise NotFound(f"{model._meta.verbose_name.capitalize()} not found.")
            targets[name] = target

        comment = Comment.objects.create(
            content=cleaned["content"],
            author=cleaned["author"],
            email=cleaned["email"],
            **targets,
        )
        logger.info("Stored comment %s", comment.pk)
        return comment
