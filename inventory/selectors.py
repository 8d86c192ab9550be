"""Selectors for inventory domain (multi-location)."""

from typing import Optional

from common.exceptions import NotFoundError
from django.db.models import QuerySet

from .ledger import LedgerState, available_at
from .locations import canonical_location_code
from .models import InventoryRecord, Location, StockItem, StockMovement


def get_stock_item(stock_item_id: int) -> StockItem:
    try:
        return StockItem.objects.select_related("product").get(id=stock_item_id)
    except StockItem.DoesNotExist:
        raise NotFoundError("StockItem not found", stock_item=stock_item_id)


def available_quantity_at(stock_item_id: int, location: str) -> int:
    """Quantity an issue or transfer could take from ``location`` right now."""

    item = get_stock_item(stock_item_id)
    return available_at(item.quantity, item.location_quantities, item.primary_location, location)


def stock_breakdown(item: StockItem) -> dict:
    state = LedgerState.from_item(item)
    return {
        "quantity": state.quantity,
        "primary_location": state.primary_location,
        "locations": state.locations,
    }


def list_stock_items(
    *,
    product_id=None,
    sku: Optional[str] = None,
    location: Optional[str] = None,
    include_inactive: bool = False,
) -> QuerySet[StockItem]:
    qs = StockItem.objects.select_related("product").order_by("-updated_at", "id")
    if not include_inactive:
        qs = qs.filter(is_active=True)
    if product_id:
        qs = qs.filter(product_id=product_id)
    if sku:
        qs = qs.filter(product__sku__iexact=sku)
    if location:
        code = canonical_location_code(location)
        # JSON key lookups are not portable across backends; filter in Python
        ids = []
        for item in qs.select_related(None).only("id", "quantity", "location_quantities", "primary_location"):
            state = LedgerState.from_item(item)
            if code in state.locations or state.primary_location == code:
                ids.append(item.id)
        qs = qs.filter(id__in=ids)
    return qs


def get_movement(movement_id: int) -> StockMovement:
    try:
        return StockMovement.objects.select_related("stock_item", "created_by", "deleted_by").get(id=movement_id)
    except StockMovement.DoesNotExist:
        raise NotFoundError("Movement not found", movement=movement_id)


def list_movements(
    *,
    stock_item=None,
    product_id=None,
    actor_id=None,
    movement_type: Optional[str] = None,
    status: Optional[str] = None,
    batch_key: Optional[str] = None,
    created_after=None,
    created_before=None,
) -> QuerySet[StockMovement]:
    """Live (not deleted) movements, newest first, with optional filters."""

    qs = StockMovement.objects.filter(deleted=False).select_related("stock_item").order_by("-created_at", "-id")
    if stock_item:
        qs = qs.filter(stock_item_id=stock_item)
    if product_id:
        qs = qs.filter(stock_item__product_id=product_id)
    if actor_id:
        qs = qs.filter(created_by_id=actor_id)
    if movement_type:
        qs = qs.filter(movement_type=movement_type)
    if status:
        qs = qs.filter(status=status)
    if batch_key:
        qs = qs.filter(batch_key=batch_key)
    if created_after:
        qs = qs.filter(created_at__gte=created_after)
    if created_before:
        qs = qs.filter(created_at__lte=created_before)
    return qs


def list_deleted_movements(limit: int = 100):
    return list(
        StockMovement.objects.filter(deleted=True)
        .select_related("stock_item", "deleted_by")
        .order_by("-deleted_at", "-id")[:limit]
    )


def list_locations(*, zone: Optional[str] = None, include_inactive: bool = False) -> QuerySet[Location]:
    qs = Location.objects.all()
    if not include_inactive:
        qs = qs.filter(is_active=True)
    if zone:
        qs = qs.filter(zone=zone.strip().upper())
    return qs


def list_records(*, stock_item=None, location: Optional[str] = None, zone: Optional[str] = None):
    qs = InventoryRecord.objects.select_related("stock_item", "location").order_by("location__code", "id")
    if stock_item:
        qs = qs.filter(stock_item_id=stock_item)
    if location:
        qs = qs.filter(location__code=canonical_location_code(location))
    if zone:
        qs = qs.filter(location__zone=zone.strip().upper())
    return qs


# EOF
