"""Transactional email for boletera.

Every sender returns ``True`` when the message was handed to the mail
backend and ``False`` otherwise. Delivery problems are logged and never
raised: an email that fails to go out must not undo a payment, a
preregistration, or a ticket link.
"""

import logging
from typing import TYPE_CHECKING

from django.core.mail import send_mail

from boletera.settings import get_config

if TYPE_CHECKING:
    from collections.abc import Sequence

    from django.contrib.auth.models import AbstractBaseUser

    from boletera.checkout.models import Order, Preregistration
    from boletera.tickets.models import Ticket

logger = logging.getLogger(__name__)


def _send(subject: str, body: str, recipient: str) -> bool:
    if not recipient:
        logger.warning("Skipping email %r: no recipient", subject)
        return False
    try:
        send_mail(subject, body, get_config().from_email, [recipient], fail_silently=False)
    except Exception:
        logger.exception("Failed to send email %r to %s", subject, recipient)
        return False
    logger.info("Sent email %r to %s", subject, recipient)
    return True


def _url(path: str) -> str:
    return f"{get_config().app_url.rstrip('/')}{path}"


def send_purchase_confirmation(order: "Order", tickets: "Sequence[Ticket]") -> bool:
    """Confirm a captured purchase and point the buyer at ticket configuration."""
    lines = "\n".join(f"  - {ticket.ticket_type_name} ({ticket.qr_id})" for ticket in tickets)
    body = (
        f"Hi {order.customer_name},\n\n"
        f"Thanks for your purchase for {order.event.name}.\n"
        f"Order: {order.reference}\n"
        f"Total: {order.total} {order.currency}\n\n"
        f"Tickets:\n{lines}\n\n"
        f"Add attendee details here: {_url(f'/my-tickets/{order.reference}')}\n"
    )
    return _send(f"Your tickets for {order.event.name}", body, order.customer_email)


def send_account_recovery(order: "Order") -> bool:
    """Tell a buyer their tickets are safe although the account was not created."""
    body = (
        f"Hi {order.customer_name},\n\n"
        f"Your payment for {order.event.name} (order {order.reference}) went through, "
        "but we could not create your account.\n"
        f"Sign up with this same email address at {_url('/register')} and your tickets "
        "will be attached automatically. You can also reply to this email and our team "
        "will link them for you.\n"
    )
    return _send(f"Action needed for your {order.event.name} tickets", body, order.customer_email)


def send_existing_account_notice(order: "Order") -> bool:
    """Tell a buyer the purchase was added to the account they already had."""
    body = (
        f"Hi {order.customer_name},\n\n"
        f"{order.customer_email} already has an account, so your tickets for "
        f"{order.event.name} (order {order.reference}) were added to it.\n"
        f"Log in at {_url('/login')} to configure your attendees.\n"
    )
    return _send(f"Your {order.event.name} tickets were added to your account", body, order.customer_email)


def send_preregistration_email(preregistration: "Preregistration") -> bool:
    """Thank a visitor for preregistering."""
    event = preregistration.event
    message = event.preregistration_message or "We will let you know as soon as tickets go on sale."
    body = f"Hi {preregistration.name},\n\nThanks for your interest in {event.name}.\n{message}\n"
    return _send(f"You're on the list for {event.name}", body, preregistration.email)


def send_ticket_linked(ticket: "Ticket", user: "AbstractBaseUser") -> bool:
    """Tell a user that support attached a ticket to their account."""
    email = getattr(user, "email", "")
    body = (
        f"Hello,\n\nYour {ticket.ticket_type_name} ticket for {ticket.event.name} "
        "is now attached to your account.\n"
        f"See it at {_url('/my-tickets')}\n"
    )
    return _send(f"Your ticket for {ticket.event.name} is ready", body, email)
