"""Django admin configuration for the content app."""

from django.contrib import admin, messages
from django.db.models import QuerySet
from django.http import HttpRequest

from django_backstage.content.models import Comment, NewsletterSubscriber, Post, Product, ProductPurchase, Track, Video


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    """Admin interface for blog posts."""

    list_display = ("title", "author", "published", "published_at", "deleted_at")
    list_filter = ("published", "deleted_at")
    search_fields = ("title", "slug", "excerpt")
    prepopulated_fields = {"slug": ("title",)}


@admin.register(Video)
class VideoAdmin(admin.ModelAdmin):
    """Admin interface for videos."""

    list_display = ("title", "youtube_id", "published", "order")
    list_filter = ("published",)
    list_editable = ("order",)
    search_fields = ("title", "youtube_id")


@admin.register(Track)
class TrackAdmin(admin.ModelAdmin):
    """Admin interface for music releases."""

    list_display = ("title", "artist", "album", "release_date", "published", "order")
    list_filter = ("published",)
    list_editable = ("order",)
    search_fields = ("title", "artist", "album")


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    """Admin interface for merchandise."""

    list_display = ("title", "category", "price_cents", "published", "order")
    list_filter = ("published", "category")
    search_fields = ("title", "slug")
    prepopulated_fields = {"slug": ("title",)}


@admin.register(ProductPurchase)
class ProductPurchaseAdmin(admin.ModelAdmin):
    """Read-only admin for merchandise purchases recorded from Stripe."""

    list_display = ("product", "customer_name", "customer_email", "amount_cents", "created_at")
    list_filter = ("product",)
    search_fields = ("customer_email", "customer_name", "stripe_session_id")
    readonly_fields = (
        "product",
        "customer_name",
        "customer_email",
        "amount_cents",
        "stripe_session_id",
        "stripe_payment_intent_id",
        "created_at",
    )

    def has_add_permission(self, request: HttpRequest) -> bool:  # noqa: ARG002, D102
        return False

    def has_delete_permission(self, request: HttpRequest, obj: ProductPurchase | None = None) -> bool:  # noqa: ARG002, D102
        return False


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    """Moderation for visitor comments."""

    list_display = ("__str__", "author", "email", "post", "video", "track", "approved", "created_at")
    list_filter = ("approved",)
    search_fields = ("content", "author", "email")
    raw_id_fields = ("post", "video", "track")
    actions = ["approve_comments", "hide_comments"]

    @admin.action(description="Approve selected comments")
    def approve_comments(self, request: HttpRequest, queryset: QuerySet[Comment]) -> None:
        """Show the selected comments on the site."""
        count = queryset.filter(approved=False).update(approved=True)
        self.message_user(request, f"Approved {count} comment(s).", level=messages.SUCCESS)

    @admin.action(description="Hide selected comments")
    def hide_comments(self, request: HttpRequest, queryset: QuerySet[Comment]) -> None:
        """Take the selected comments off the site."""
        count = queryset.filter(approved=True).update(approved=False)
        self.message_user(request, f"Hid {count} comment(s).", level=messages.SUCCESS)


@admin.register(NewsletterSubscriber)
class NewsletterSubscriberAdmin(admin.ModelAdmin):
    """Admin interface for the newsletter list."""

    list_display = ("email", "subscribed", "created_at", "unsubscribed_at")
    list_filter = ("subscribed",)
    search_fields = ("email",)
    readonly_fields = ("created_at", "updated_at", "unsubscribed_at")
