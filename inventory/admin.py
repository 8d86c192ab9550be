"""Admin registrations for inventory app."""

from django.contrib import admin

from .models import InventoryRecord, Location, StockItem, StockMovement


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "zone", "level", "section", "capacity", "current_occupancy", "is_active")
    list_filter = ("zone", "is_active")
    search_fields = ("code", "name")


@admin.register(StockItem)
class StockItemAdmin(admin.ModelAdmin):
    list_display = ("id", "product", "quantity", "primary_location", "is_active", "updated_at")
    list_filter = ("is_active",)
    search_fields = ("product__sku", "product__title")
    # Stock changes must go through movements
    readonly_fields = ("quantity", "location_quantities", "primary_location", "merged_into")


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = (
        "number",
        "stock_item",
        "movement_type",
        "quantity",
        "from_location",
        "to_location",
        "status",
        "batch_key",
        "deleted",
        "created_at",
    )
    list_filter = ("movement_type", "status", "deleted", "reversal_outcome")
    search_fields = ("number", "batch_key", "stock_item__product__sku", "reference")

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(InventoryRecord)
class InventoryRecordAdmin(admin.ModelAdmin):
    list_display = ("stock_item", "location", "lot", "quantity", "reserved", "last_counted_at", "last_movement_at")
    list_filter = ("location__zone",)
    search_fields = ("stock_item__product__sku", "location__code", "lot")


# EOF
