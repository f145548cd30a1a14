"""Ticket selection model for the checkout flow.

A :class:`Selection` maps ticket types to requested quantities, priced from
the database at the moment a line is added. Selections are small, held in
the session between requests, and rebuilt from client payloads with
:func:`build_selection` when an order is placed.
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from django.core.exceptions import ValidationError

from boletera.events.models import TicketType
from boletera.settings import get_config

if TYPE_CHECKING:
    from boletera.events.models import Event


@dataclass(frozen=True, slots=True)
class SelectedTicket:
    """One line of a selection: a ticket type and how many of it."""

    ticket_type_id: int
    ticket_type_name: str
    quantity: int
    unit_price: Decimal
    currency: str
    max_quantity: int
    selected_days: tuple[date, ...] = ()

    @property
    def total_price(self) -> Decimal:
        """Line total, always ``quantity * unit_price``."""
        return self.unit_price * self.quantity

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the session and for API responses."""
        return {
            "ticketTypeId": self.ticket_type_id,
            "ticketTypeName": self.ticket_type_name,
            "quantity": self.quantity,
            "unitPrice": str(self.unit_price),
            "totalPrice": str(self.total_price),
            "currency": self.currency,
            "maxQuantity": self.max_quantity,
            "selectedDays": [day.isoformat() for day in self.selected_days],
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "SelectedTicket":
        """Rebuild a line previously produced by :meth:`to_payload`."""
        return cls(
            ticket_type_id=int(data["ticketTypeId"]),
            ticket_type_name=str(data["ticketTypeName"]),
            quantity=int(data["quantity"]),
            unit_price=Decimal(str(data["unitPrice"])),
            currency=str(data["currency"]),
            max_quantity=int(data["maxQuantity"]),
            selected_days=tuple(date.fromisoformat(day) for day in data.get("selectedDays", [])),
        )


@dataclass(slots=True)
class Selection:
    """An ordered set of :class:`SelectedTicket` lines keyed by ticket type.

    Adding a ticket type that is already present replaces its line, and
    setting a quantity of zero or less removes it.
    """

    _lines: dict[int, SelectedTicket] = field(default_factory=dict)

    def __iter__(self) -> Iterator[SelectedTicket]:
        return iter(self._lines.values())

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, ticket_type_id: object) -> bool:
        return ticket_type_id in self._lines

    @property
    def lines(self) -> list[SelectedTicket]:
        """Lines in insertion order."""
        return list(self._lines.values())

    @property
    def is_empty(self) -> bool:
        """Whether no ticket has been selected."""
        return not self._lines

    @property
    def total_amount(self) -> Decimal:
        """Sum of every line total."""
        return sum((line.total_price for line in self._lines.values()), Decimal("0"))

    @property
    def total_items(self) -> int:
        """Number of tickets across all lines."""
        return sum(line.quantity for line in self._lines.values())

    @property
    def currency(self) -> str:
        """Currency shared by all lines, or the configured default when empty."""
        for line in self._lines.values():
            return line.currency
        return get_config().default_currency

    def get(self, ticket_type_id: int) -> SelectedTicket | None:
        """Return the line for a ticket type, if selected."""
        return self._lines.get(ticket_type_id)

    def add_ticket(
        self,
        ticket_type: TicketType,
        quantity: int,
        selected_days: Iterable[date] | None = None,
        *,
        enforce_availability: bool = True,
    ) -> SelectedTicket:
        """Insert or replace the line for ``ticket_type``.

        Args:
            ticket_type: The ticket type being selected.
            quantity: Requested quantity, at least 1.
            selected_days: Days chosen for day-restricted access types.
            enforce_availability: When ``False`` (preregistration interest),
                sale windows and stock are not checked.

        Returns:
            The stored line.

        Raises:
            ValidationError: If the ticket type is not purchasable, the
                quantity is out of range, the currency differs from the
                other lines, or the selected days are not valid.
        """
        if enforce_availability and not ticket_type.is_on_sale:
            raise ValidationError(f"{ticket_type.name} is not available for purchase.")
        max_quantity = ticket_type.max_per_order if enforce_availability else ticket_type.effective_limit
        _check_quantity(ticket_type.name, quantity, max_quantity)

        for existing in self._lines.values():
            if existing.ticket_type_id != ticket_type.pk and existing.currency != ticket_type.currency:
                raise ValidationError("All tickets in an order must share one currency.")

        line = SelectedTicket(
            ticket_type_id=ticket_type.pk,
            ticket_type_name=ticket_type.name,
            quantity=quantity,
            unit_price=ticket_type.price,
            currency=ticket_type.currency,
            max_quantity=max_quantity,
            selected_days=clean_selected_days(ticket_type, selected_days),
        )
        self._lines[ticket_type.pk] = line
        return line

    def update_quantity(self, ticket_type_id: int, quantity: int) -> SelectedTicket | None:
        """Change the quantity of a selected line.

        Returns:
            The updated line, or ``None`` when the line was removed because
            ``quantity`` was zero or less.

        Raises:
            ValidationError: If the ticket type is not selected or the
                quantity exceeds the line's maximum.
        """
        line = self._lines.get(ticket_type_id)
        if line is None:
            raise ValidationError("That ticket type is not in the selection.")
        if quantity <= 0:
            del self._lines[ticket_type_id]
            return None
        _check_quantity(line.ticket_type_name, quantity, line.max_quantity)
        updated = replace(line, quantity=quantity)
        self._lines[ticket_type_id] = updated
        return updated

    def remove(self, ticket_type_id: int) -> None:
        """Drop a line if present."""
        self._lines.pop(ticket_type_id, None)

    def clear(self) -> None:
        """Drop every line."""
        self._lines.clear()

    def to_payload(self) -> list[dict[str, Any]]:
        """Serialize all lines in order."""
        return [line.to_payload() for line in self._lines.values()]

    @classmethod
    def from_payload(cls, data: Iterable[Mapping[str, Any]] | None) -> "Selection":
        """Rebuild a selection previously produced by :meth:`to_payload`."""
        selection = cls()
        for item in data or ():
            line = SelectedTicket.from_payload(item)
            selection._lines[line.ticket_type_id] = line
        return selection


def _check_quantity(name: str, quantity: int, max_quantity: int) -> None:
    if quantity < 1:
        raise ValidationError(f"Quantity for {name} must be at least 1.")
    if quantity > max_quantity:
        raise ValidationError(f"You can select at most {max_quantity} of {name}.")


def clean_selected_days(ticket_type: TicketType, selected_days: Iterable[date] | None) -> tuple[date, ...]:
    """Validate the days chosen for a ticket type.

    ``all_days`` tickets ignore any selection. ``specific_days`` tickets
    need at least one day from the type's selectable days, and
    ``any_single_day`` tickets take at most one event day.

    Returns:
        The sorted, de-duplicated days to store on the line.

    Raises:
        ValidationError: If the selection does not fit the access type.
    """
    days = tuple(sorted(set(selected_days or ())))
    access = ticket_type.access_type
    if access == TicketType.AccessType.ALL_DAYS:
        return ()
    if access == TicketType.AccessType.SPECIFIC_DAYS:
        if not days:
            raise ValidationError(f"Choose at least one day for {ticket_type.name}.")
        allowed = set(ticket_type.selectable_days())
        invalid = [day.isoformat() for day in days if day not in allowed]
        if invalid:
            raise ValidationError(f"{', '.join(invalid)} is not available for {ticket_type.name}.")
        return days
    if len(days) > 1:
        raise ValidationError(f"{ticket_type.name} is valid for a single day only.")
    if days and days[0] not in ticket_type.event.event_days():
        raise ValidationError(f"{days[0].isoformat()} is not an event day.")
    return days


def _pick(data: Mapping[str, Any], *keys: str, default: object = None) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return default


def parse_days(raw: object) -> list[date]:
    """Parse a list of ISO date strings.

    Raises:
        ValidationError: If the value is not a list of valid ISO dates.
    """
    if raw in (None, ""):
        return []
    if not isinstance(raw, list):
        raise ValidationError("Selected days must be a list of dates.")
    try:
        return [date.fromisoformat(str(day)) for day in raw]
    except ValueError as exc:
        raise ValidationError("Selected days must be ISO dates (YYYY-MM-DD).") from exc


def parse_quantity(raw: object) -> int:
    """Coerce a client-sent quantity to ``int``.

    Raises:
        ValidationError: If the value is not an integer.
    """
    if isinstance(raw, bool):
        raise ValidationError("Quantity must be a whole number.")
    try:
        value = Decimal(str(raw))
    except InvalidOperation as exc:
        raise ValidationError("Quantity must be a whole number.") from exc
    if not value.is_finite() or value != value.to_integral_value():
        raise ValidationError("Quantity must be a whole number.")
    return int(value)


def build_selection(
    event: "Event",
    lines: Iterable[Mapping[str, Any]] | None,
    *,
    enforce_availability: bool = True,
) -> Selection:
    """Rebuild and validate a selection from client-sent lines.

    Prices always come from the database; any price the client sends is
    ignored.

    Args:
        event: The event the tickets must belong to.
        lines: Items shaped like ``{"ticketTypeId", "quantity",
            "selectedDays"}`` (snake_case keys are accepted as well).
        enforce_availability: Passed through to :meth:`Selection.add_ticket`.

    Returns:
        The validated selection.

    Raises:
        ValidationError: If a line is malformed or references a ticket type
            of another event.
    """
    items = list(lines or ())
    if any(not isinstance(item, Mapping) for item in items):
        raise ValidationError("Each ticket must be an object.")
    try:
        ids = {int(_pick(item, "ticketTypeId", "ticket_type_id")) for item in items}
    except (TypeError, ValueError) as exc:
        raise ValidationError("Each ticket needs a valid ticketTypeId.") from exc

    ticket_types = {tt.pk: tt for tt in TicketType.objects.filter(event=event, pk__in=ids).select_related("event")}
    selection = Selection()
    for item in items:
        ticket_type = ticket_types.get(int(_pick(item, "ticketTypeId", "ticket_type_id")))
        if ticket_type is None:
            raise ValidationError("Ticket type not found for this event.")
        selection.add_ticket(
            ticket_type,
            parse_quantity(_pick(item, "quantity", default=1)),
            parse_days(_pick(item, "selectedDays", "selected_days")),
            enforce_availability=enforce_availability,
        )
    return selection
