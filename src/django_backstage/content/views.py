"""JSON views for published content, comments, the newsletter and merchandise checkout."""

from django.http import HttpRequest, JsonResponse
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt

from django_backstage.content.models import Comment, Post, Product, Track, Video
from django_backstage.content.services import CommentService, NewsletterService, ProductCheckoutService
from django_backstage.exceptions import NotFound
from django_backstage.features import FeatureRequiredMixin
from django_backstage.settings import get_config
from django_backstage.ticketing.stripe_utils import format_minor_units
from django_backstage.ticketing.views import JsonView, get_base_url, parse_request_data


def serialize_post(post: Post, *, include_body: bool = False) -> dict[str, object]:
    """Return the JSON representation of a blog post."""
    data: dict[str, object] = {
        "id": post.pk,
        "title": post.title,
        "slug": post.slug,
        "excerpt": post.excerpt,
        "cover": post.cover,
        "author": post.author,
        "published_at": post.published_at,
    }
    if include_body:
        data["body"] = post.body
    return data


def serialize_product(product: Product) -> dict[str, object]:
    """Return the JSON representation of a merchandise item."""
    currency = get_config().currency
    return {
        "id": product.pk,
        "title": product.title,
        "slug": product.slug,
        "description": product.description,
        "category": product.category,
        "image": product.image,
        "price_cents": product.price_cents,
        "price": format_minor_units(product.price_cents, currency),
        "currency": currency,
    }


class PostListView(FeatureRequiredMixin, JsonView):
    """Lists published blog posts, newest first."""

    required_feature = "public_ui"

    def get(self, request: HttpRequest) -> JsonResponse:  # noqa: ARG002
        """Return ``{"posts": [...]}``."""
        return JsonResponse({"posts": [serialize_post(post) for post in Post.objects.published()]})


class PostDetailView(FeatureRequiredMixin, JsonView):
    """Returns one published blog post by slug."""

    required_feature = "public_ui"

    def get(self, request: HttpRequest, slug: str) -> JsonResponse:  # noqa: ARG002
        """Return the post including its body."""
        try:
            post = Post.objects.published().get(slug=slug)
        except Post.DoesNotExist:
            raise NotFound("Post not found.") from None
        return JsonResponse(serialize_post(post, include_body=True))


class VideoListView(FeatureRequiredMixin, JsonView):
    """Lists published videos in display order."""

    required_feature = "public_ui"

    def get(self, request: HttpRequest) -> JsonResponse:  # noqa: ARG002
        """Return ``{"videos": [...]}``."""
        videos = [
            {
                "id": video.pk,
                "title": video.title,
                "youtube_id": video.youtube_id,
                "url": video.url,
                "description": video.description,
                "thumbnail": video.thumbnail,
            }
            for video in Video.objects.published()
        ]
        return JsonResponse({"videos": videos})


class TrackListView(FeatureRequiredMixin, JsonView):
    """Lists published music in display order."""

    required_feature = "public_ui"

    def get(self, request: HttpRequest) -> JsonResponse:  # noqa: ARG002
        """Return ``{"tracks": [...]}``."""
        tracks = [
            {
                "id": track.pk,
                "title": track.title,
                "artist": track.artist,
                "album": track.album,
                "audio_url": track.audio_url,
                "stream_url": track.stream_url,
                "cover": track.cover,
                "release_date": track.release_date,
            }
            for track in Track.objects.published()
        ]
        return JsonResponse({"tracks": tracks})


class ProductListView(FeatureRequiredMixin, JsonView):
    """Lists published merchandise."""

    required_feature = "merchandise"

    def get(self, request: HttpRequest) -> JsonResponse:  # noqa: ARG002
        """Return ``{"products": [...]}``."""
        return JsonResponse({"products": [serialize_product(p) for p in Product.objects.published()]})


@method_decorator(csrf_exempt, name="dispatch")
class ProductCheckoutView(FeatureRequiredMixin, JsonView):
    """Starts a Stripe checkout for one merchandise item.

    ``POST`` takes ``{"product_id", "name", "email"}`` and answers with the
    ``checkout_url`` to redirect to.
    """

    required_feature = "merchandise"

    def post(self, request: HttpRequest) -> JsonResponse:
        """Create the checkout session."""
        checkout = ProductCheckoutService.create_checkout(parse_request_data(request), base_url=get_base_url(request))
        return JsonResponse({"checkout_url": checkout.checkout_url, "session_id": checkout.session_id})


def serialize_comment(comment: Comment) -> dict[str, object]:
    """Return the public JSON representation of a comment, without the email."""
    return {
        "id": comment.pk,
        "content": comment.content,
        "author": comment.author,
        "created_at": comment.created_at,
    }


@method_decorator(csrf_exempt, name="dispatch")
class CommentView(FeatureRequiredMixin, JsonView):
    """Lists and accepts visitor comments.

    ``GET`` takes ``post_id``, ``video_id`` or ``music_id`` in the query
    string; ``POST`` takes ``{"content", "author", "email"}`` plus the same ids.
    """

    required_feature = "public_ui"

    def get(self, request: HttpRequest) -> JsonResponse:
        """Return ``{"comments": [...]}`` for the requested target."""
        comments = CommentService.list_comments(request.GET.dict())
        return JsonResponse({"comments": [serialize_comment(comment) for comment in comments]})

    def post(self, request: HttpRequest) -> JsonResponse:
        """Store the comment."""
        comment = CommentService.create_comment(parse_request_data(request))
        return JsonResponse(
            {"success": True, "comment": {"id": comment.pk, "created_at": comment.created_at}},
            status=201,
        )


@method_decorator(csrf_exempt, name="dispatch")
class NewsletterView(FeatureRequiredMixin, JsonView):
    """Newsletter sign-up (``POST {"email"}``) and removal (``DELETE ?email=``)."""

    required_feature = "public_ui"

    def post(self, request: HttpRequest) -> JsonResponse:
        """Subscribe the address, answering 201 for a new one and 200 for a returning one."""
        subscription = NewsletterService.subscribe(parse_request_data(request))
        if subscription.created:
            return JsonResponse({"message": "Successfully subscribed!"}, status=201)
        return JsonResponse({"message": "Successfully resubscribed!"})

    def delete(self, request: HttpRequest) -> JsonResponse:
        """Unsubscribe the address given in the query string."""
        NewsletterService.unsubscribe(request.GET.get("email"))
        return JsonResponse({"message": "Successfully unsubscribed"})
