"""Custom signals for the ticketing app.

Signals:
    registration_completed: Sent when a registration becomes ``completed``,
        either directly (free events) or after a verified payment.
        Sender: The ``Registration`` class.
        Kwargs:
            registration: The ``Registration`` instance that was completed.
"""

from django.dispatch import Signal

registration_completed = Signal()
