"""Checkout flow state machine.

The flow walks a visitor through ``method -> selection -> details ->
payment``. Events that do not accept preregistrations skip the ``method``
step and always purchase. Forward moves are gated by :meth:`FlowState.can_proceed`;
backward moves are always allowed and never discard entered data.

Every transition returns a :class:`Transition`, so callers decide where to
navigate from the value they get back rather than from shared flags.
"""

import enum
import logging
from dataclasses import asdict, dataclass, field, replace
from typing import TYPE_CHECKING, Any

from django.core.exceptions import ValidationError

from boletera.checkout.selection import Selection
from boletera.features import is_feature_enabled

if TYPE_CHECKING:
    from django.http import HttpRequest

    from boletera.events.models import Event

logger = logging.getLogger(__name__)


class FlowStep(enum.StrEnum):
    """Steps of the checkout flow, in order."""

    METHOD = "method"
    SELECTION = "selection"
    DETAILS = "details"
    PAYMENT = "payment"


class PurchaseMethod(enum.StrEnum):
    """How the visitor wants to continue."""

    PURCHASE = "purchase"
    PREREGISTER = "preregister"


STEP_ORDER: tuple[FlowStep, ...] = (FlowStep.METHOD, FlowStep.SELECTION, FlowStep.DETAILS, FlowStep.PAYMENT)

STEP_TITLES = {
    FlowStep.METHOD: "How would you like to continue?",
    FlowStep.SELECTION: "Select your tickets",
    FlowStep.DETAILS: "Your details",
    FlowStep.PAYMENT: "Payment",
}
PREREGISTER_FINAL_TITLE = "Confirm your preregistration"


@dataclass(frozen=True, slots=True)
class CustomerData:
    """Contact and account details captured at the ``details`` step."""

    name: str = ""
    email: str = ""
    phone: str = ""
    company: str = ""
    create_account: bool = False
    password: str = ""
    user_id: int | None = None

    @property
    def normalized_email(self) -> str:
        """Email trimmed and lowercased, as used for account lookups."""
        return self.email.strip().lower()

    @property
    def is_complete(self) -> bool:
        """Whether the required name and email are filled in."""
        return bool(self.name.strip()) and bool(self.email.strip())

    def with_email_check(self, exists: bool) -> "CustomerData":
        """Apply the result of an email existence lookup.

        An email that already belongs to an account cannot create a new
        one, so account creation is switched off and the password dropped.
        """
        if not exists:
            return self
        return replace(self, create_account=False, password="")

    def public_payload(self) -> dict[str, Any]:
        """Serialize without the password."""
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "company": self.company,
            "createAccount": self.create_account,
            "hasPassword": bool(self.password),
            "userId": self.user_id,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any] | None) -> "CustomerData":
        """Build from a client payload using camelCase or snake_case keys.

        Raises:
            ValidationError: If ``data`` is not an object.
        """
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValidationError("Customer data must be an object.")
        user_id = data.get("userId", data.get("user_id"))
        return cls(
            name=str(data.get("name") or "").strip(),
            email=str(data.get("email") or "").strip(),
            phone=str(data.get("phone") or "").strip(),
            company=str(data.get("company") or "").strip(),
            create_account=bool(data.get("createAccount", data.get("create_account", False))),
            password=str(data.get("password") or ""),
            user_id=int(user_id) if user_id not in (None, "") else None,
        )


@dataclass(frozen=True, slots=True)
class Transition:
    """Outcome of a navigation attempt."""

    step: FlowStep
    moved: bool
    reason: str = ""


@dataclass(slots=True)
class FlowState:
    """Mutable state of one visitor's checkout flow for one event."""

    event_slug: str
    allow_preregistration: bool
    step: FlowStep
    method: PurchaseMethod | None = None
    selection: Selection = field(default_factory=Selection)
    customer: CustomerData | None = None

    @classmethod
    def initialize(cls, event: "Event") -> "FlowState":
        """Start a fresh flow for ``event``.

        The flow starts at ``method`` when the event accepts
        preregistrations, otherwise at ``selection`` with the method fixed
        to ``purchase``.
        """
        allow = is_feature_enabled("preregistration", event=event)
        if allow:
            return cls(event_slug=event.slug, allow_preregistration=True, step=FlowStep.METHOD)
        return cls(
            event_slug=event.slug,
            allow_preregistration=False,
            step=FlowStep.SELECTION,
            method=PurchaseMethod.PURCHASE,
        )

    # -- Derived -------------------------------------------------------------

    @property
    def steps(self) -> tuple[FlowStep, ...]:
        """Steps reachable for this event."""
        if self.allow_preregistration:
            return STEP_ORDER
        return STEP_ORDER[1:]

    @property
    def is_preregistration(self) -> bool:
        """Whether the visitor chose to preregister."""
        return self.method == PurchaseMethod.PREREGISTER

    def blocked_reason(self) -> str:
        """Explain why the flow cannot move forward, or ``""`` if it can."""
        if self.step == FlowStep.METHOD:
            return "" if self.method else "Choose whether to buy or preregister."
        if self.step == FlowStep.SELECTION:
            if self.method == PurchaseMethod.PURCHASE and self.selection.is_empty:
                return "Select at least one ticket."
            return ""
        if self.step == FlowStep.DETAILS:
            if self.customer is None or not self.customer.is_complete:
                return "Name and email are required."
            if self.method == PurchaseMethod.PURCHASE and self.selection.is_empty:
                return "Select at least one ticket."
            return ""
        return "This is the last step."

    def can_proceed(self) -> bool:
        """Whether :meth:`go_next` would move forward."""
        return not self.blocked_reason()

    @property
    def can_pay(self) -> bool:
        """Whether the payment button should be enabled."""
        return (
            self.method == PurchaseMethod.PURCHASE
            and not self.selection.is_empty
            and self.customer is not None
            and self.customer.is_complete
        )

    def can_submit_preregistration(self, verified: bool) -> bool:
        """Whether the preregistration submit should be enabled.

        Args:
            verified: Whether the anti-bot challenge has been solved.
        """
        return bool(
            verified and self.is_preregistration and self.customer is not None and self.customer.is_complete,
        )

    def step_info(self) -> dict[str, Any]:
        """Title and position of the current step."""
        title = STEP_TITLES[self.step]
        if self.step == FlowStep.PAYMENT and self.is_preregistration:
            title = PREREGISTER_FINAL_TITLE
        return {
            "step": self.step.value,
            "title": title,
            "number": self.steps.index(self.step) + 1,
            "total": len(self.steps),
        }

    # -- Transitions ---------------------------------------------------------

    def set_method(self, method: PurchaseMethod | str) -> None:
        """Choose between purchasing and preregistering.

        Raises:
            ValidationError: Outside the ``method`` step, for an unknown
                method, or when the event does not accept preregistrations.
        """
        if self.step != FlowStep.METHOD:
            raise ValidationError("The method can only be chosen at the first step.")
        try:
            chosen = PurchaseMethod(method)
        except ValueError as exc:
            raise ValidationError(f"Unknown method: {method!r}") from exc
        if chosen == PurchaseMethod.PREREGISTER and not self.allow_preregistration:
            raise ValidationError("This event does not accept preregistrations.")
        self.method = chosen

    def ensure_editable(self) -> None:
        """Refuse selection changes once the flow reached the last step.

        Raises:
            ValidationError: If the flow is at the ``payment`` step.
        """
        if self.step == FlowStep.PAYMENT:
            raise ValidationError("Go back to change your tickets.")

    def go_next(self) -> Transition:
        """Advance one step when the current step allows it."""
        reason = self.blocked_reason()
        if reason:
            return Transition(step=self.step, moved=False, reason=reason)
        self.step = self.steps[self.steps.index(self.step) + 1]
        logger.debug("Flow for %s advanced to %s", self.event_slug, self.step)
        return Transition(step=self.step, moved=True)

    def go_back(self) -> Transition:
        """Move back one step. Entered data is kept."""
        position = self.steps.index(self.step)
        if position == 0:
            return Transition(step=self.step, moved=False, reason="Already at the first step.")
        self.step = self.steps[position - 1]
        return Transition(step=self.step, moved=True)

    def submit_customer(self, customer: CustomerData) -> Transition:
        """Store customer details and try to advance in one operation.

        Raises:
            ValidationError: Outside the ``details`` step.
        """
        if self.step != FlowStep.DETAILS:
            raise ValidationError("Customer details are entered at the details step.")
        self.customer = customer
        return self.go_next()

    def apply_email_check(self, exists: bool) -> None:
        """Record an email lookup result on the stored customer."""
        if self.customer is not None:
            self.customer = self.customer.with_email_check(exists)

    # -- Serialization -------------------------------------------------------

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the session. The password is never stored."""
        customer = None
        if self.customer is not None:
            customer = asdict(replace(self.customer, password=""))
        return {
            "event_slug": self.event_slug,
            "allow_preregistration": self.allow_preregistration,
            "step": self.step.value,
            "method": self.method.value if self.method else None,
            "selection": self.selection.to_payload(),
            "customer": customer,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "FlowState":
        """Rebuild a state produced by :meth:`to_payload`."""
        customer = data.get("customer")
        return cls(
            event_slug=data["event_slug"],
            allow_preregistration=bool(data["allow_preregistration"]),
            step=FlowStep(data["step"]),
            method=PurchaseMethod(data["method"]) if data.get("method") else None,
            selection=Selection.from_payload(data.get("selection")),
            customer=CustomerData(**customer) if customer else None,
        )

    def public_payload(self) -> dict[str, Any]:
        """Serialize for API responses, with the derived predicates."""
        return {
            "eventSlug": self.event_slug,
            "allowPreregistration": self.allow_preregistration,
            "step": self.step.value,
            "method": self.method.value if self.method else None,
            "selectedTickets": self.selection.to_payload(),
            "totalAmount": str(self.selection.total_amount),
            "totalItems": self.selection.total_items,
            "currency": self.selection.currency,
            "customerData": self.customer.public_payload() if self.customer else None,
            "canProceed": self.can_proceed(),
            "blockedReason": self.blocked_reason(),
            "canPay": self.can_pay,
            "stepInfo": self.step_info(),
        }


class FlowStore:
    """Keeps one :class:`FlowState` per event in the Django session."""

    session_key = "boletera_flow"

    def __init__(self, request: "HttpRequest") -> None:
        self.session = request.session

    def _flows(self) -> dict[str, Any]:
        return self.session.setdefault(self.session_key, {})

    def load(self, event: "Event") -> FlowState:
        """Return the stored flow for ``event`` or start a new one.

        A stored flow is aligned with the event's current preregistration
        setting, so a flow started while preregistration was open falls
        back to purchasing once it closes.
        """
        raw = self._flows().get(event.slug)
        if raw is None:
            return FlowState.initialize(event)
        try:
            state = FlowState.from_payload(raw)
        except (KeyError, TypeError, ValueError):
            logger.warning("Discarding unreadable checkout flow for event %s", event.slug)
            return FlowState.initialize(event)

        allow = is_feature_enabled("preregistration", event=event)
        if not allow and state.allow_preregistration:
            state.method = PurchaseMethod.PURCHASE
            if state.step == FlowStep.METHOD:
                state.step = FlowStep.SELECTION
        state.allow_preregistration = allow
        return state

    def save(self, state: FlowState) -> None:
        """Persist ``state`` in the session."""
        self._flows()[state.event_slug] = state.to_payload()
        self.session.modified = True

    def discard(self, event_slug: str) -> None:
        """Forget the flow for an event, after a successful submission."""
        flows = self._flows()
        if flows.pop(event_slug, None) is not None:
            self.session.modified = True
