"""URL configuration for the ticketing app.

Mount these under an API prefix in the host project::

    urlpatterns = [
        path("api/", include("django_backstage.ticketing.urls")),
    ]
"""

from django.urls import path

from django_backstage.ticketing.views import (
    EventDetailView,
    EventListView,
    RegistrationCancelView,
    RegistrationCollectionView,
    RegistrationDetailView,
    RegistrationExportView,
    RegistrationRetryCheckoutView,
    RegistrationSuccessView,
    RegistrationUpdateView,
)
from django_backstage.ticketing.webhooks import stripe_webhook

app_name = "backstage_ticketing"

urlpatterns = [
    path("events/", EventListView.as_view(), name="event-list"),
    path("events/<slug:slug>/", EventDetailView.as_view(), name="event-detail"),
    path("registrations/", RegistrationCollectionView.as_view(), name="registration-list"),
    path("registrations/success/", RegistrationSuccessView.as_view(), name="registration-success"),
    path("registrations/export.csv", RegistrationExportView.as_view(), name="registration-export"),
    path("registrations/<int:pk>/", RegistrationDetailView.as_view(), name="registration-detail"),
    path("registrations/<int:pk>/update/", RegistrationUpdateView.as_view(), name="registration-update"),
    path("registrations/<int:pk>/cancel/", RegistrationCancelView.as_view(), name="registration-cancel"),
    path(
        "registrations/<int:pk>/retry-checkout/",
        RegistrationRetryCheckoutView.as_view(),
        name="registration-retry-checkout",
    ),
    path("webhooks/stripe/", stripe_webhook, name="stripe-webhook"),
]
