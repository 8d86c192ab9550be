import random

import pytest
from catalog.tests.factories import ProductFactory
from common.exceptions import (
    InsufficientStock,
    InvalidStateTransition,
    NotFoundError,
    TransactionAbortError,
    ValidationError,
)
from inventory.models import InventoryRecord, StockItem, StockMovement
from inventory.services import (
    complete_batch,
    complete_movement,
    create_movement,
    create_movements_bulk,
    delete_batch,
    delete_movement,
    sync_inventory,
)
from inventory.tests.factories import StaffUserFactory, StockItemFactory


def _stocked(quantity=10, location="A1", **kwargs):
    return StockItemFactory(
        quantity=quantity, location_quantities={location: quantity}, primary_location=location, **kwargs
    )


@pytest.mark.django_db
def test_receipt_numbers_movement_and_updates_stock():
    item = StockItemFactory()
    staff = StaffUserFactory()
    m = create_movement(stock_item_id=item.id, movement_type="receipt", quantity=5, to_location="Dock (R1)", actor=staff)
    item.refresh_from_db()
    assert item.quantity == 5
    assert item.location_quantities == {"R1": 5}
    assert item.primary_location == "R1"
    assert m.number == f"{m.id:06d}"
    assert m.batch_key == m.number
    assert m.status == StockMovement.STATUS_COMPLETED
    assert m.completed_at is not None
    assert m.created_by == staff


@pytest.mark.django_db
def test_issue_beyond_location_stock_is_rejected():
    item = _stocked(3)
    with pytest.raises(InsufficientStock) as exc:
        create_movement(stock_item_id=item.id, movement_type="issue", quantity=5, from_location="A1")
    assert exc.value.detail["stock_item"] == item.id
    item.refresh_from_db()
    assert item.quantity == 3
    assert not StockMovement.objects.filter(stock_item=item).exists()


@pytest.mark.django_db
def test_movement_validation():
    item = _stocked()
    with pytest.raises(ValidationError):
        create_movement(stock_item_id=item.id, movement_type="transfer", quantity=1, to_location="B2")
    with pytest.raises(ValidationError):
        create_movement(stock_item_id=item.id, movement_type="receipt", quantity=0, to_location="B2")
    with pytest.raises(ValidationError):
        create_movement(stock_item_id=item.id, movement_type="teleport", quantity=1, to_location="B2")
    with pytest.raises(NotFoundError):
        create_movement(stock_item_id=999999, movement_type="receipt", quantity=1, to_location="B2")


@pytest.mark.django_db
def test_inactive_item_rejects_movements():
    item = _stocked(is_active=False)
    with pytest.raises(ValidationError):
        create_movement(stock_item_id=item.id, movement_type="receipt", quantity=1, to_location="A1")


@pytest.mark.django_db
def test_transfer_round_trip_restores_locations():
    item = _stocked(10)
    create_movement(stock_item_id=item.id, movement_type="transfer", quantity=4, from_location="A1", to_location="B2")
    item.refresh_from_db()
    assert item.location_quantities == {"A1": 6, "B2": 4}
    create_movement(stock_item_id=item.id, movement_type="transfer", quantity=4, from_location="B2", to_location="A1")
    item.refresh_from_db()
    assert item.quantity == 10
    assert item.location_quantities["A1"] == 10
    assert item.location_quantities["B2"] == 0


@pytest.mark.django_db
def test_draft_movement_does_not_touch_stock_until_completed():
    item = _stocked(10)
    staff = StaffUserFactory()
    draft = create_movement(
        stock_item_id=item.id, movement_type="issue", quantity=4, from_location="A1", status="draft"
    )
    item.refresh_from_db()
    assert item.quantity == 10
    completed = complete_movement(movement_id=draft.id, actor=staff)
    assert completed.status == StockMovement.STATUS_COMPLETED
    item.refresh_from_db()
    assert item.quantity == 6
    with pytest.raises(InvalidStateTransition):
        complete_movement(movement_id=draft.id, actor=staff)


@pytest.mark.django_db
def test_batch_completion_is_all_or_nothing():
    items = [_stocked(10) for _ in range(5)]
    quantities = [1, 1, 50, 1, 1]
    for item, qty in zip(items, quantities):
        create_movement(
            stock_item_id=item.id,
            movement_type="issue",
            quantity=qty,
            from_location="A1",
            status="draft",
            batch_key="B-TEST",
        )

    with pytest.raises(TransactionAbortError) as exc:
        complete_batch(batch_key="B-TEST")
    assert exc.value.detail["cause"] == "InsufficientStock"
    assert exc.value.detail["batch_key"] == "B-TEST"
    assert exc.value.detail["stock_item"] == items[2].id

    for item in items:
        item.refresh_from_db()
        assert item.quantity == 10
        assert item.location_quantities == {"A1": 10}
    statuses = set(StockMovement.objects.filter(batch_key="B-TEST").values_list("status", flat=True))
    assert statuses == {StockMovement.STATUS_DRAFT}


@pytest.mark.django_db
def test_complete_batch_applies_every_draft():
    first = _stocked(10)
    second = _stocked(5, location="B2")
    create_movement(
        stock_item_id=first.id, movement_type="issue", quantity=2, from_location="A1", status="draft", batch_key="B-OK"
    )
    create_movement(
        stock_item_id=second.id, movement_type="receipt", quantity=3, to_location="B2", status="draft", batch_key="B-OK"
    )
    completed = complete_batch(batch_key="B-OK")
    assert len(completed) == 2
    first.refresh_from_db()
    second.refresh_from_db()
    assert first.quantity == 8
    assert second.quantity == 8
    with pytest.raises(NotFoundError):
        complete_batch(batch_key="B-OK")


@pytest.mark.django_db
def test_bulk_create_rolls_back_on_failure():
    item = _stocked(5)
    rows = [
        {"stock_item_id": item.id, "movement_type": "issue", "quantity": 2, "from_location": "A1"},
        {"stock_item_id": item.id, "movement_type": "issue", "quantity": 9, "from_location": "A1"},
    ]
    with pytest.raises(TransactionAbortError) as exc:
        create_movements_bulk(movements=rows)
    assert exc.value.detail["index"] == 1
    item.refresh_from_db()
    assert item.quantity == 5
    assert StockMovement.objects.count() == 0


@pytest.mark.django_db
def test_bulk_create_shares_batch_key():
    item = _stocked(5)
    rows = [
        {"stock_item_id": item.id, "movement_type": "receipt", "quantity": 2, "to_location": "A1"},
        {"stock_item_id": item.id, "movement_type": "transfer", "quantity": 3, "from_location": "A1", "to_location": "B2"},
    ]
    created = create_movements_bulk(movements=rows, batch_key="B-SHARED")
    assert {m.batch_key for m in created} == {"B-SHARED"}
    item.refresh_from_db()
    assert item.quantity == 7
    assert item.location_quantities == {"A1": 4, "B2": 3}


@pytest.mark.django_db
def test_delete_reverses_completed_movement():
    item = StockItemFactory()
    staff = StaffUserFactory()
    create_movement(stock_item_id=item.id, movement_type="receipt", quantity=5, to_location="A1")
    issue = create_movement(stock_item_id=item.id, movement_type="issue", quantity=2, from_location="A1")

    deleted = delete_movement(movement_id=issue.id, actor=staff, reason="Keyed twice")
    assert deleted.deleted
    assert deleted.deleted_by == staff
    assert deleted.delete_reason == "Keyed twice"
    assert deleted.reversal_outcome == "exact"
    item.refresh_from_db()
    assert item.quantity == 5
    assert item.location_quantities == {"A1": 5}

    with pytest.raises(InvalidStateTransition):
        delete_movement(movement_id=issue.id, actor=staff)


@pytest.mark.django_db
def test_deleting_draft_leaves_stock_alone():
    item = _stocked(10)
    draft = create_movement(stock_item_id=item.id, movement_type="issue", quantity=4, from_location="A1", status="draft")
    delete_movement(movement_id=draft.id)
    item.refresh_from_db()
    assert item.quantity == 10
    draft.refresh_from_db()
    assert draft.reversal_outcome == ""


@pytest.mark.django_db
def test_reversal_clamps_at_zero_and_records_it():
    item = StockItemFactory()
    receipt = create_movement(stock_item_id=item.id, movement_type="receipt", quantity=5, to_location="A1")
    create_movement(stock_item_id=item.id, movement_type="issue", quantity=4, from_location="A1")

    deleted = delete_movement(movement_id=receipt.id)
    assert deleted.reversal_outcome == "clamped"
    item.refresh_from_db()
    assert item.quantity == 0
    assert item.location_quantities["A1"] == 0


@pytest.mark.django_db
def test_adjustment_reversal_restores_previous_values():
    item = _stocked(10)
    adj = create_movement(stock_item_id=item.id, movement_type="adjustment", quantity=3, to_location="A1")
    assert adj.adjusted_from_quantity == 10
    assert adj.adjusted_from_location_quantity == 10
    item.refresh_from_db()
    assert item.quantity == 3
    delete_movement(movement_id=adj.id)
    item.refresh_from_db()
    assert item.quantity == 10
    assert item.location_quantities["A1"] == 10


@pytest.mark.django_db
def test_delete_batch_reverses_newest_first():
    item = StockItemFactory()
    rows = [
        {"stock_item_id": item.id, "movement_type": "receipt", "quantity": 6, "to_location": "A1"},
        {"stock_item_id": item.id, "movement_type": "issue", "quantity": 6, "from_location": "A1"},
    ]
    create_movements_bulk(movements=rows, batch_key="B-UNDO")
    deleted = delete_batch(batch_key="B-UNDO")
    assert len(deleted) == 2
    assert {m.reversal_outcome for m in deleted} == {"exact"}
    item.refresh_from_db()
    assert item.quantity == 0
    with pytest.raises(NotFoundError):
        delete_batch(batch_key="B-UNDO")


@pytest.mark.django_db
def test_transfer_merges_duplicate_items_at_destination():
    product = ProductFactory()
    item = _stocked(5, product=product)
    duplicate = _stocked(3, location="B2", product=product)

    create_movement(stock_item_id=item.id, movement_type="transfer", quantity=2, from_location="A1", to_location="B2")

    item.refresh_from_db()
    duplicate.refresh_from_db()
    assert item.quantity == 8
    assert item.location_quantities == {"A1": 3, "B2": 5}
    assert duplicate.quantity == 0
    assert duplicate.is_active is False
    assert StockItem.objects.filter(product=product, is_active=True).count() == 1


@pytest.mark.django_db
def test_random_movements_never_go_negative():
    rng = random.Random(7)
    item = StockItemFactory()
    locations = ["A1", "B2", "C3"]
    for _ in range(60):
        kind = rng.choice(["receipt", "issue", "transfer", "adjustment"])
        src, dst = rng.sample(locations, 2)
        qty = rng.randint(1, 8)
        try:
            create_movement(
                stock_item_id=item.id,
                movement_type=kind,
                quantity=qty,
                from_location=src,
                to_location=dst,
            )
        except InsufficientStock:
            pass
        item.refresh_from_db()
        assert item.quantity >= 0
        assert all(v >= 0 for v in item.location_quantities.values())

@pytest.mark.django_db
def test_legacy_aggregate_survives_receipt_at_another_location():
    item = StockItemFactory(quantity=10, location_quantities={}, primary_location="MAIN")

    create_movement(stock_item_id=item.id, movement_type="receipt", quantity=5, to_location="B2")
    sync_inventory()

    item.refresh_from_db()
    assert item.quantity == 15
    assert item.primary_location == "B2"
    records = {r.location.code: r.quantity for r in InventoryRecord.objects.filter(stock_item=item)}
    assert records == {"MAIN": 10, "B2": 5}
    assert sum(records.values()) == item.quantity

    create_movement(stock_item_id=item.id, movement_type="issue", quantity=10, from_location="MAIN")
    item.refresh_from_db()
    assert item.quantity == 5
    assert item.location_quantities == {"MAIN": 0, "B2": 5}


@pytest.mark.django_db
def test_deleting_movement_of_merged_item_reverses_on_survivor():
    product = ProductFactory()
    item = _stocked(10, product=product)
    duplicate = StockItemFactory(product=product)
    receipt = create_movement(stock_item_id=duplicate.id, movement_type="receipt", quantity=4, to_location="B2")

    create_movement(stock_item_id=item.id, movement_type="transfer", quantity=3, from_location="A1", to_location="B2")
    duplicate.refresh_from_db()
    assert duplicate.merged_into_id == item.id

    deleted = delete_movement(movement_id=receipt.id)

    item.refresh_from_db()
    duplicate.refresh_from_db()
    assert deleted.reversal_outcome == "exact"
    assert item.quantity == 10
    assert item.location_quantities == {"A1": 7, "B2": 3}
    assert duplicate.quantity == 0


@pytest.mark.django_db
def test_deleting_batch_of_merged_item_reverses_on_survivor():
    product = ProductFactory()
    item = _stocked(10, product=product)
    duplicate = StockItemFactory(product=product)
    create_movement(
        stock_item_id=duplicate.id, movement_type="receipt", quantity=4, to_location="B2", batch_key="B-DUP"
    )
    create_movement(stock_item_id=item.id, movement_type="transfer", quantity=3, from_location="A1", to_location="B2")

    deleted = delete_batch(batch_key="B-DUP")

    item.refresh_from_db()
    assert [m.reversal_outcome for m in deleted] == ["exact"]
    assert item.quantity == 10
    assert item.location_quantities["B2"] == 3


# EOF
