"""CMS content and merchandise checkout for django-backstage."""
