import pytest
from django.core.management import call_command
from inventory.models import InventoryRecord, Location
from inventory.services import sync_inventory
from inventory.tests.factories import LocationFactory, StockItemFactory


@pytest.mark.django_db
def test_sync_creates_records_and_placeholder_locations():
    LocationFactory(code="A1", zone="B")
    item = StockItemFactory(quantity=10, location_quantities={"Shelf (A1)": 6}, primary_location="P9")

    stats = sync_inventory()

    assert stats == {"items": 1, "created": 2, "updated": 0, "unchanged": 0, "locations_created": 1}
    records = {r.location.code: r.quantity for r in InventoryRecord.objects.filter(stock_item=item)}
    # P9 holds the residual 10 - 6
    assert records == {"A1": 6, "P9": 4}
    placeholder = Location.objects.get(code="P9")
    assert (placeholder.zone, placeholder.level, placeholder.section, placeholder.capacity) == ("A", 1, 1, 1000)
    assert placeholder.name == "P9"


@pytest.mark.django_db
def test_sync_is_idempotent():
    StockItemFactory(quantity=5, location_quantities={"A1": 5}, primary_location="A1")
    sync_inventory()
    before = list(InventoryRecord.objects.values_list("id", "quantity", "updated_at").order_by("id"))

    stats = sync_inventory()

    assert stats["created"] == 0
    assert stats["updated"] == 0
    assert stats["unchanged"] == 1
    after = list(InventoryRecord.objects.values_list("id", "quantity", "updated_at").order_by("id"))
    assert before == after


@pytest.mark.django_db
def test_sync_updates_changed_quantities_and_skips_inactive_items():
    item = StockItemFactory(quantity=5, location_quantities={"A1": 5}, primary_location="A1")
    StockItemFactory(quantity=3, location_quantities={"Z9": 3}, primary_location="Z9", is_active=False)
    sync_inventory()
    item.location_quantities = {"A1": 2}
    item.quantity = 2
    item.save()

    stats = sync_inventory()

    assert stats["updated"] == 1
    assert InventoryRecord.objects.get(stock_item=item).quantity == 2
    assert not Location.objects.filter(code="Z9").exists()


@pytest.mark.django_db
def test_sync_command(capsys):
    StockItemFactory(quantity=1, location_quantities={"A1": 1}, primary_location="A1")
    call_command("sync_inventory")
    out = capsys.readouterr().out
    assert "Inventory synced: 1 items, 1 created" in out


# EOF
