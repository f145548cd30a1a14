"""Account provisioning for buyers.

Decides which account a purchase lands on: the signed-in requester, an
existing account with the buyer's email, a freshly created account, or none.
Account creation failures are reported, never raised, because by the time
provisioning runs the payment has already been captured.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction

from boletera.accounts.tokens import issue_login_token
from boletera.api import validation_message

if TYPE_CHECKING:
    from boletera.checkout.flow import CustomerData

logger = logging.getLogger(__name__)

OUTCOME_NONE = "none"
OUTCOME_CREATED = "created"
OUTCOME_FAILED = "failed"
OUTCOME_EXISTING = "existing"
OUTCOME_LINKED = "linked"


@dataclass(frozen=True, slots=True)
class AccountOutcome:
    """Result of provisioning an account for a buyer.

    Exactly one of ``created``, ``failed``, ``email_existed`` and
    ``linked`` is true, unless the purchase was a guest purchase.
    """

    kind: str
    user: Any = None
    login_token: str = ""
    error: str = ""

    @property
    def created(self) -> bool:
        return self.kind == OUTCOME_CREATED

    @property
    def failed(self) -> bool:
        return self.kind == OUTCOME_FAILED

    @property
    def email_existed(self) -> bool:
        return self.kind == OUTCOME_EXISTING

    @property
    def linked(self) -> bool:
        return self.kind == OUTCOME_LINKED


def normalize_email(email: str) -> str:
    """Trim and lowercase an email address for lookups."""
    return (email or "").strip().lower()


def find_user_by_email(email: str) -> Any | None:
    """Return the oldest account registered with ``email``, if any."""
    normalized = normalize_email(email)
    if not normalized:
        return None
    return get_user_model().objects.filter(email__iexact=normalized).order_by("pk").first()


def email_status(email: str) -> tuple[bool, bool]:
    """Report whether an email has an account and whether it was ever used.

    Returns:
        ``(exists, verified)``. An account counts as verified once it is
        active and has logged in at least once.
    """
    user = find_user_by_email(email)
    if user is None:
        return False, False
    return True, bool(user.is_active and user.last_login)


def _split_name(name: str) -> tuple[str, str]:
    first, _, last = name.strip().partition(" ")
    return first[:150], last.strip()[:150]


def create_account(customer: "CustomerData") -> Any:
    """Create a user for ``customer`` inside a savepoint.

    Raises:
        ValidationError: If the password does not pass the validators.
        DatabaseError: If the user row cannot be written.
    """
    email = customer.normalized_email
    first_name, last_name = _split_name(customer.name)
    user_model = get_user_model()
    candidate = user_model(username=email, email=email, first_name=first_name, last_name=last_name)
    validate_password(customer.password, user=candidate)
    with transaction.atomic():
        return user_model.objects.create_user(
            username=email,
            email=email,
            password=customer.password,
            first_name=first_name,
            last_name=last_name,
        )


def provision_account(customer: "CustomerData", *, requester: Any = None) -> AccountOutcome:
    """Decide which account a captured purchase belongs to.

    Resolution order:

    1. An authenticated requester keeps the purchase (``linked``).
    2. An existing account with the buyer's email gets it
       (``existing``); the buyer must log in themselves.
    3. With ``create_account`` set, a new account is created and a
       one-time login token issued (``created``). A failure yields
       ``failed`` with the reason.
    4. Otherwise the purchase stays a guest purchase (``none``).

    Args:
        customer: Buyer details captured at checkout.
        requester: The user making the request, possibly anonymous.

    Returns:
        The :class:`AccountOutcome`.
    """
    if requester is not None and requester.is_authenticated:
        return AccountOutcome(kind=OUTCOME_LINKED, user=requester)

    existing = find_user_by_email(customer.email)
    if existing is not None:
        logger.info("Purchase email %s already has account %s", customer.normalized_email, existing.pk)
        return AccountOutcome(kind=OUTCOME_EXISTING, user=existing)

    if not customer.create_account:
        return AccountOutcome(kind=OUTCOME_NONE)

    if not customer.password:
        return AccountOutcome(kind=OUTCOME_FAILED, error="A password is required to create an account.")

    try:
        user = create_account(customer)
    except ValidationError as exc:
        logger.warning("Account creation rejected for %s: %s", customer.normalized_email, exc.messages)
        return AccountOutcome(kind=OUTCOME_FAILED, error=validation_message(exc))
    except DatabaseError as exc:
        logger.warning("Account creation failed for %s: %s", customer.normalized_email, exc)
        return AccountOutcome(kind=OUTCOME_FAILED, error="The account could not be created.")

    logger.info("Created account %s for %s", user.pk, customer.normalized_email)
    return AccountOutcome(kind=OUTCOME_CREATED, user=user, login_token=issue_login_token(user))
