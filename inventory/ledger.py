"""Pure stock ledger arithmetic.

Functions here take a ``LedgerState`` and return a new one; they never touch
the database. ``inventory.services`` loads the state from a locked
``StockItem``, applies one of these, and writes the result back.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional

from common.choices import MovementType, ReversalOutcome
from common.exceptions import InsufficientStock, ValidationError

from .locations import canonical_location_code, canonicalize_quantities


@dataclass
class LedgerState:
    quantity: int = 0
    locations: dict = field(default_factory=dict)
    primary_location: str = ""

    def __post_init__(self):
        self.quantity = int(self.quantity or 0)
        self.locations = canonicalize_quantities(self.locations)
        self.primary_location = canonical_location_code(self.primary_location)

    @classmethod
    def from_item(cls, item) -> "LedgerState":
        return cls(item.quantity, item.location_quantities, item.primary_location)

    def copy(self) -> "LedgerState":
        return LedgerState(self.quantity, dict(self.locations), self.primary_location)

    def at(self, location: str) -> int:
        return int(self.locations.get(canonical_location_code(location), 0))

    def write_to(self, item) -> None:
        item.quantity = self.quantity
        item.location_quantities = dict(self.locations)
        item.primary_location = self.primary_location


def available_at(quantity: int, location_quantities: Optional[Mapping], primary_location: str, location: str) -> int:
    """Quantity that may be taken from ``location``.

    When nothing is stored for the primary location, the residual
    ``quantity - sum(other locations)`` is treated as held there. This covers
    rows whose aggregate was tracked without a per-location breakdown.
    """
    locations = canonicalize_quantities(location_quantities)
    key = canonical_location_code(location)
    stored = int(locations.get(key, 0))
    if stored <= 0 and key and key == canonical_location_code(primary_location):
        others = sum(qty for other, qty in locations.items() if other != key)
        return max(0, int(quantity or 0) - others)
    return max(0, stored)


def location_breakdown(state: LedgerState) -> dict:
    """Per-location quantities with the primary location's residual filled in."""
    breakdown = {key: max(0, qty) for key, qty in state.locations.items()}
    primary = state.primary_location
    if primary and breakdown.get(primary, 0) <= 0:
        inferred = available_at(state.quantity, state.locations, primary, primary)
        if inferred > 0:
            breakdown[primary] = inferred
    return breakdown


def _require_quantity(quantity, *, allow_zero: bool = False) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("Quantity must be an integer", quantity=quantity)
    if quantity < 0 or (quantity == 0 and not allow_zero):
        raise ValidationError("Quantity must be positive", quantity=quantity)
    return quantity


def _require_location(location: str, role: str) -> str:
    key = canonical_location_code(location)
    if not key:
        raise ValidationError(f"{role} is required", field=role)
    return key


def _materialized(state: LedgerState) -> LedgerState:
    """Copy of ``state`` with any inferred primary stock written into the map."""
    result = state.copy()
    result.locations = location_breakdown(state)
    return result


def _take(state: LedgerState, location: str, quantity: int) -> int:
    available = available_at(state.quantity, state.locations, state.primary_location, location)
    if available < quantity:
        raise InsufficientStock(location=location, available=available, requested=quantity)
    return available


def receipt(state: LedgerState, to_location: str, quantity: int) -> LedgerState:
    quantity = _require_quantity(quantity)
    to_key = _require_location(to_location, "to_location")
    result = _materialized(state)
    result.quantity += quantity
    result.locations[to_key] = result.at(to_key) + quantity
    result.primary_location = to_key
    return result


def issue(state: LedgerState, from_location: str, quantity: int) -> LedgerState:
    quantity = _require_quantity(quantity)
    from_key = _require_location(from_location, "from_location")
    available = _take(state, from_key, quantity)
    if state.quantity < quantity:
        raise InsufficientStock(location=from_key, available=state.quantity, requested=quantity)
    result = state.copy()
    result.locations[from_key] = available - quantity
    result.quantity -= quantity
    return result


def transfer(state: LedgerState, from_location: str, to_location: str, quantity: int) -> LedgerState:
    quantity = _require_quantity(quantity)
    from_key = _require_location(from_location, "from_location")
    to_key = _require_location(to_location, "to_location")
    if from_key == to_key:
        raise ValidationError("Transfer source and destination must differ", location=from_key)
    available = _take(state, from_key, quantity)
    result = _materialized(state)
    result.locations[from_key] = available - quantity
    result.locations[to_key] = result.at(to_key) + quantity
    return result


def adjustment(state: LedgerState, to_location: str, quantity: int) -> LedgerState:
    """Set the aggregate and the location to the absolute ``quantity``."""
    quantity = _require_quantity(quantity, allow_zero=True)
    to_key = _require_location(to_location, "to_location")
    result = _materialized(state)
    result.quantity = quantity
    result.locations[to_key] = quantity
    result.primary_location = to_key
    return result


def apply(state: LedgerState, movement_type: str, quantity: int, from_location: str = "", to_location: str = ""):
    if movement_type == MovementType.RECEIPT:
        return receipt(state, to_location, quantity)
    if movement_type == MovementType.ISSUE:
        return issue(state, from_location, quantity)
    if movement_type == MovementType.TRANSFER:
        return transfer(state, from_location, to_location, quantity)
    if movement_type == MovementType.ADJUSTMENT:
        return adjustment(state, to_location, quantity)
    raise ValidationError(f"Unknown movement type {movement_type!r}", movement_type=movement_type)


@dataclass(frozen=True)
class Reversal:
    state: LedgerState
    clamped: bool = False

    @property
    def outcome(self) -> str:
        return ReversalOutcome.CLAMPED if self.clamped else ReversalOutcome.EXACT


def _shift(value: int, delta: int) -> tuple[int, bool]:
    shifted = value + delta
    return (0, True) if shifted < 0 else (shifted, False)


def reverse(
    state: LedgerState,
    *,
    movement_type: str,
    quantity: int,
    from_location: str = "",
    to_location: str = "",
    adjusted_from_quantity: Optional[int] = None,
    adjusted_from_location_quantity: Optional[int] = None,
) -> Reversal:
    """Undo a previously applied movement.

    Values never go below zero; when a value had to be clamped the returned
    ``Reversal`` says so and the caller records it on the movement.
    """
    result = state.copy()
    from_key = canonical_location_code(from_location)
    to_key = canonical_location_code(to_location)
    clamped = []

    if movement_type == MovementType.RECEIPT:
        result.quantity, c1 = _shift(result.quantity, -quantity)
        clamped.append(c1)
        if to_key:
            result.locations[to_key], c2 = _shift(result.at(to_key), -quantity)
            clamped.append(c2)
    elif movement_type == MovementType.ISSUE:
        result.quantity += quantity
        if from_key:
            result.locations[from_key] = result.at(from_key) + quantity
    elif movement_type == MovementType.TRANSFER:
        result.locations[to_key], c1 = _shift(result.at(to_key), -quantity)
        clamped.append(c1)
        result.locations[from_key] = result.at(from_key) + quantity
    elif movement_type == MovementType.ADJUSTMENT:
        if adjusted_from_quantity is not None:
            result.quantity, c1 = _shift(result.quantity, adjusted_from_quantity - quantity)
            clamped.append(c1)
        if to_key and adjusted_from_location_quantity is not None:
            result.locations[to_key], c2 = _shift(result.at(to_key), adjusted_from_location_quantity - quantity)
            clamped.append(c2)
    else:
        raise ValidationError(f"Unknown movement type {movement_type!r}", movement_type=movement_type)

    return Reversal(state=result, clamped=any(clamped))


# EOF
