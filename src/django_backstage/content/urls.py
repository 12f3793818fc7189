"""URL configuration for the content app.

Mount these under the same API prefix as the ticketing URLs::

    urlpatterns = [
        path("api/", include("django_backstage.content.urls")),
    ]
"""

from django.urls import path

from django_backstage.content.views import (
    CommentView,
    NewsletterView,
    PostDetailView,
    PostListView,
    ProductCheckoutView,
    ProductListView,
    TrackListView,
    VideoListView,
)

app_name = "backstage_content"

urlpatterns = [
    path("posts/", PostListView.as_view(), name="post-list"),
    path("posts/<slug:slug>/", PostDetailView.as_view(), name="post-detail"),
    path("videos/", VideoListView.as_view(), name="video-list"),
    path("music/", TrackListView.as_view(), name="track-list"),
    path("merchandise/", ProductListView.as_view(), name="product-list"),
    path("merchandise/checkout/", ProductCheckoutView.as_view(), name="product-checkout"),
    path("comments/", CommentView.as_view(), name="comments"),
    path("newsletter/", NewsletterView.as_view(), name="newsletter"),
]
