"""Custom signals for the checkout app.

Signals:
    order_captured: Sent after an order's payment is captured and its
        tickets are issued.
        Sender: The ``Order`` class.
        Kwargs:
            order: The captured ``Order`` instance.
            tickets: List of issued ``Ticket`` instances.
            account_outcome: One of the ``Order.AccountOutcome`` values.
    preregistration_submitted: Sent after a preregistration is stored.
        Sender: The ``Preregistration`` class.
        Kwargs:
            preregistration: The new ``Preregistration`` instance.
"""

from django.dispatch import Signal

order_captured = Signal()
preregistration_submitted = Signal()
