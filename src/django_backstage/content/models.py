"""CMS-managed content models: blog posts, videos, music, merchandise, comments and the newsletter list."""

from django.db import models
from django.utils import timezone


class PublishedQuerySet(models.QuerySet):
    """Query helpers shared by publishable content."""

    def published(self) -> "PublishedQuerySet":
        """Return only rows visible on the public site."""
        queryset = self.filter(published=True)
        if any(f.name == "deleted_at" for f in self.model._meta.get_fields()):
            queryset = queryset.filter(deleted_at__isnull=True)
        return queryset


class Post(models.Model):
    """A blog post."""

    title = models.CharField(max_length=300)
    slug = models.SlugField(max_length=300, unique=True)
    excerpt = models.TextField(blank=True, default="")
    body = models.TextField(blank=True, default="")
    cover = models.URLField(max_length=500, blank=True, default="")
    author = models.CharField(max_length=200, blank=True, default="")
    published = models.BooleanField(default=False)
    published_at = models.DateTimeField(null=True, blank=True)
    deleted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PublishedQuerySet.as_manager()

    class Meta:
        ordering = ["-published_at", "-created_at"]

    def __str__(self) -> str:
        return self.title

    def save(self, *args: object, **kwargs: object) -> None:
        """Stamp ``published_at`` the first time the post is published."""
        if self.published and self.published_at is None:
            self.published_at = timezone.now()
        super().save(*args, **kwargs)

    def soft_delete(self) -> None:
        """Hide the post from the site without losing it."""
        self.deleted_at = timezone.now()
        self.save(update_fields=["deleted_at", "updated_at"])


class Video(models.Model):
    """A YouTube video shown on the videos page."""

    title = models.CharField(max_length=300)
    youtube_id = models.CharField(max_length=32)
    description = models.TextField(blank=True, default="")
    thumbnail = models.URLField(max_length=500, blank=True, default="")
    published = models.BooleanField(default=True)
    order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PublishedQuerySet.as_manager()

    class Meta:
        ordering = ["order", "-created_at"]

    def __str__(self) -> str:
        return self.title

    @property
    def url(self) -> str:
        """Return the public YouTube watch URL."""
        return f"https://www.youtube.com/watch?v={self.youtube_id}"


class Track(models.Model):
    """A music release or single."""

    title = models.CharField(max_length=300)
    artist = models.CharField(max_length=200, blank=True, default="")
    album = models.CharField(max_length=300, blank=True, default="")
    audio_url = models.URLField(max_length=500, blank=True, default="")
    stream_url = models.URLField(max_length=500, blank=True, default="")
    cover = models.URLField(max_length=500, blank=True, default="")
    release_date = models.DateField(null=True, blank=True)
    published = models.BooleanField(default=True)
    order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PublishedQuerySet.as_manager()

    class Meta:
        ordering = ["order", "-release_date"]

    def __str__(self) -> str:
        return f"{self.artist} - {self.title}" if self.artist else self.title


class Product(models.Model):
    """A merchandise item sold through Stripe Checkout."""

    title = models.CharField(max_length=300)
    slug = models.SlugField(max_length=300, unique=True)
    description = models.TextField(blank=True, default="")
    price_cents = models.PositiveIntegerField(help_text="Price in minor currency units (e.g. cents).")
    category = models.CharField(max_length=100, blank=True, default="")
    image = models.URLField(max_length=500, blank=True, default="")
    published = models.BooleanField(default=False)
    order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PublishedQuerySet.as_manager()

    class Meta:
        ordering = ["order", "title"]

    def __str__(self) -> str:
        return self.title


class ProductPurchase(models.Model):
    """A paid merchandise checkout, recorded from the Stripe webhook."""

    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name="purchases",
    )
    customer_name = models.CharField(max_length=200, blank=True, default="")
    customer_email = models.EmailField()
    amount_cents = models.PositiveIntegerField(default=0)
    stripe_session_id = models.CharField(max_length=255, unique=True)
    stripe_payment_intent_id = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.product} for {self.customer_email}"


class NewsletterSubscriber(models.Model):
    """An email address on the newsletter list.

    Unsubscribing keeps the row with ``subscribed=False`` so the address can
    come back later without losing its original sign-up date.
    """

    email = models.EmailField(unique=True)
    subscribed = models.BooleanField(default=True)
    unsubscribed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.email


class CommentQuerySet(models.QuerySet):
    """Query helpers for visitor comments."""

    def approved(self) -> "CommentQuerySet":
        """Return only comments shown on the public site."""
        return self.filter(approved=True)


class Comment(models.Model):
    """A visitor comment on a post, video or track."""

    content = models.TextField(max_length=1000)
    author = models.CharField(max_length=200, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    post = models.ForeignKey(Post, on_delete=models.CASCADE, null=True, blank=True, related_name="comments")
    video = models.ForeignKey(Video, on_delete=models.CASCADE, null=True, blank=True, related_name="comments")
    track = models.ForeignKey(Track, on_delete=models.CASCADE, null=True, blank=True, related_name="comments")
    approved = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = CommentQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(post__isnull=False) | models.Q(video__isnull=False) | models.Q(track__isnull=False)
                ),
                name="content_comment_has_target",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.author or 'Anonymous'}: {self.content[:40]}"
