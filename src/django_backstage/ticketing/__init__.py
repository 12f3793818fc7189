"""Event registration and ticket issuance for django-backstage."""
