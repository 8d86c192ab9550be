from decimal import Decimal

import pytest
from catalog.tests.factories import CategoryFactory, ProductFactory
from inventory.tests.factories import InventoryRecordFactory, LocationFactory, StockItemFactory


@pytest.fixture
def stocked_record(db):
    """Product with 10 units at A1 (zone A) in both the ledger and the records."""

    location = LocationFactory(code="A1", zone="A")
    product = ProductFactory(
        unit_cost=Decimal("2.50"), abc_class="A", category=CategoryFactory(name="Tools", slug="tools")
    )
    item = StockItemFactory(product=product, quantity=10, location_quantities={"A1": 10}, primary_location="A1")
    return InventoryRecordFactory(stock_item=item, location=location, quantity=10)
