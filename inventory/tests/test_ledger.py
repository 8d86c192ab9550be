import pytest
from common.exceptions import InsufficientStock, ValidationError
from inventory import ledger
from inventory.ledger import LedgerState


def test_receipt_adds_to_aggregate_and_location():
    state = ledger.receipt(LedgerState(), "Dock (R1)", 5)
    assert state.quantity == 5
    assert state.locations == {"R1": 5}
    assert state.primary_location == "R1"


def test_issue_uses_primary_residual_when_location_unset():
    # Aggregate tracked without a breakdown: all 10 sit at the primary
    state = LedgerState(quantity=10, locations={}, primary_location="A1")
    result = ledger.issue(state, "A1", 4)
    assert result.quantity == 6
    assert result.locations == {"A1": 6}


def test_issue_residual_excludes_other_locations():
    state = LedgerState(quantity=10, locations={"B2": 7}, primary_location="A1")
    assert ledger.available_at(state.quantity, state.locations, state.primary_location, "A1") == 3
    with pytest.raises(InsufficientStock) as exc:
        ledger.issue(state, "A1", 4)
    assert exc.value.detail["shortfall"] == 1


def test_issue_without_stock_at_location():
    state = LedgerState(quantity=5, locations={"A1": 5}, primary_location="A1")
    with pytest.raises(InsufficientStock) as exc:
        ledger.issue(state, "B9", 1)
    assert exc.value.available == 0
    assert exc.value.requested == 1


def test_transfer_moves_between_locations_keeping_aggregate():
    state = LedgerState(quantity=10, locations={"A1": 10}, primary_location="A1")
    result = ledger.transfer(state, "A1", "B2", 3)
    assert result.quantity == 10
    assert result.locations == {"A1": 7, "B2": 3}
    back = ledger.transfer(result, "B2", "A1", 3)
    assert back.locations == {"A1": 10, "B2": 0}
    assert back.quantity == 10


def test_transfer_to_same_location_rejected():
    state = LedgerState(quantity=10, locations={"A1": 10}, primary_location="A1")
    with pytest.raises(ValidationError):
        ledger.transfer(state, "A1", "Aisle (A1)", 1)


def test_adjustment_sets_absolute_quantity():
    state = LedgerState(quantity=10, locations={"A1": 10}, primary_location="A1")
    result = ledger.adjustment(state, "C3", 4)
    assert result.quantity == 4
    assert result.locations["C3"] == 4
    assert result.primary_location == "C3"
    zero = ledger.adjustment(state, "A1", 0)
    assert zero.quantity == 0


@pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
def test_receipt_rejects_bad_quantity(quantity):
    with pytest.raises(ValidationError):
        ledger.receipt(LedgerState(), "A1", quantity)


def test_apply_leaves_input_state_untouched():
    state = LedgerState(quantity=3, locations={"A1": 3}, primary_location="A1")
    ledger.apply(state, "issue", 2, from_location="A1")
    assert state.quantity == 3
    assert state.locations == {"A1": 3}


def test_state_canonicalizes_labels():
    state = LedgerState(quantity=5, locations={"Shelf (A1)": 2, "A1": 3, "": 9}, primary_location=" Shelf (A1) ")
    assert state.locations == {"A1": 5}
    assert state.primary_location == "A1"


def test_reverse_receipt_is_exact_when_stock_remains():
    applied = ledger.receipt(LedgerState(), "A1", 5)
    result = ledger.reverse(applied, movement_type="receipt", quantity=5, to_location="A1")
    assert not result.clamped
    assert result.outcome == "exact"
    assert result.state.quantity == 0
    assert result.state.locations["A1"] == 0


def test_reverse_receipt_clamps_after_stock_was_issued():
    state = LedgerState(quantity=2, locations={"A1": 2}, primary_location="A1")
    result = ledger.reverse(state, movement_type="receipt", quantity=5, to_location="A1")
    assert result.clamped
    assert result.outcome == "clamped"
    assert result.state.quantity == 0
    assert result.state.locations["A1"] == 0


def test_reverse_issue_restores_stock():
    state = LedgerState(quantity=10, locations={"A1": 10}, primary_location="A1")
    issued = ledger.issue(state, "A1", 4)
    result = ledger.reverse(issued, movement_type="issue", quantity=4, from_location="A1")
    assert result.state.quantity == 10
    assert result.state.locations["A1"] == 10


def test_reverse_adjustment_applies_recorded_delta():
    before = LedgerState(quantity=10, locations={"A1": 6, "B2": 4}, primary_location="A1")
    after = ledger.adjustment(before, "A1", 2)
    result = ledger.reverse(
        after,
        movement_type="adjustment",
        quantity=2,
        to_location="A1",
        adjusted_from_quantity=10,
        adjusted_from_location_quantity=6,
    )
    assert result.state.quantity == 10
    assert result.state.locations["A1"] == 6
    assert not result.clamped


def test_location_breakdown_fills_primary_residual():
    state = LedgerState(quantity=10, locations={"B2": 4}, primary_location="A1")
    assert ledger.location_breakdown(state) == {"A1": 6, "B2": 4}


def test_receipt_elsewhere_keeps_inferred_primary_stock_reachable():
    legacy = LedgerState(quantity=10, locations={}, primary_location="MAIN")
    state = ledger.receipt(legacy, "B2", 5)
    assert state.quantity == 15
    assert state.locations == {"MAIN": 10, "B2": 5}
    assert state.primary_location == "B2"
    assert sum(ledger.location_breakdown(state).values()) == state.quantity

    state = ledger.issue(state, "MAIN", 10)
    assert state.quantity == 5
    assert state.locations == {"MAIN": 0, "B2": 5}


def test_transfer_into_inferred_primary_adds_to_residual():
    legacy = LedgerState(quantity=10, locations={"B2": 4}, primary_location="MAIN")
    moved = ledger.transfer(legacy, "B2", "MAIN", 1)
    assert moved.locations == {"MAIN": 7, "B2": 3}


# EOF
