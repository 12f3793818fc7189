"""Custom signals for the content app.

Signals:
    newsletter_subscribed: Sent when an address joins the newsletter, either
        for the first time or coming back after unsubscribing.
        Sender: The ``NewsletterSubscriber`` class.
        Kwargs:
            subscriber: The ``NewsletterSubscriber`` instance.
            created: ``True`` for a new address, ``False`` for a returning one.
"""

from django.dispatch import Signal

newsletter_subscribed = Signal()
