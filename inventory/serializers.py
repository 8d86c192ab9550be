"""Serializers for inventory domain.

Read serializers for locations, stock items, movements and inventory
records, plus write serializers that validate movement input before it
reaches ``inventory.services``.
"""

from common.choices import MovementStatus, MovementType
from rest_framework import serializers

from .locations import canonical_location_code
from .models import InventoryRecord, Location, StockItem, StockMovement


class LocationSerializer(serializers.ModelSerializer):
    utilization = serializers.FloatField(read_only=True)

    class Meta:
        model = Location
        fields = [
            "id",
            "code",
            "name",
            "description",
            "zone",
            "level",
            "section",
            "capacity",
            "current_occupancy",
            "utilization",
            "is_active",
            "updated_at",
        ]
        read_only_fields = ["id", "utilization", "updated_at"]

    def validate_code(self, value: str) -> str:
        code = canonical_location_code(value)
        if not code:
            raise serializers.ValidationError("Location code is required.")
        qs = Location.objects.filter(code=code)
        if self.instance is not None:
            qs = qs.exclude(id=self.instance.id)
        if qs.exists():
            raise serializers.ValidationError("A location with this code already exists.")
        return code


class StockItemSerializer(serializers.ModelSerializer):
    """Read-only representation of stock for a product.

    Exposes the product SKU/title and the per-location breakdown.
    """

    sku = serializers.CharField(source="product.sku", read_only=True)
    title = serializers.CharField(source="product.title", read_only=True)

    class Meta:
        model = StockItem
        fields = [
            "id",
            "product",
            "sku",
            "title",
            "quantity",
            "location_quantities",
            "primary_location",
            "is_active",
            "merged_into",
            "updated_at",
        ]
        read_only_fields = fields


class StockMovementSerializer(serializers.ModelSerializer):
    """Read-only representation of stock movements."""

    class Meta:
        model = StockMovement
        fields = [
            "id",
            "number",
            "stock_item",
            "movement_type",
            "quantity",
            "from_location",
            "to_location",
            "status",
            "batch_key",
            "reason",
            "reference",
            "created_by",
            "created_at",
            "completed_at",
            "deleted",
            "deleted_at",
            "deleted_by",
            "delete_reason",
            "reversal_outcome",
        ]
        read_only_fields = fields


class MovementWriteSerializer(serializers.Serializer):
    """Input for one movement; type-specific location rules are enforced here."""

    stock_item_id = serializers.IntegerField()
    movement_type = serializers.ChoiceField(choices=MovementType.choices)
    quantity = serializers.IntegerField(min_value=0)
    from_location = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    to_location = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    status = serializers.ChoiceField(choices=MovementStatus.choices, default=MovementStatus.COMPLETED)
    batch_key = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    reason = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")
    reference = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")

    def validate(self, attrs):
        movement_type = attrs["movement_type"]
        if attrs["quantity"] == 0 and movement_type != MovementType.ADJUSTMENT:
            raise serializers.ValidationError({"quantity": "Quantity must be positive."})
        if movement_type in (MovementType.ISSUE, MovementType.TRANSFER) and not attrs.get("from_location"):
            raise serializers.ValidationError({"from_location": "Required for issues and transfers."})
        if movement_type != MovementType.ISSUE and not attrs.get("to_location"):
            raise serializers.ValidationError({"to_location": "Required for receipts, transfers and adjustments."})
        return attrs


class BulkMovementSerializer(serializers.Serializer):
    batch_key = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    movements = MovementWriteSerializer(many=True, allow_empty=False)


class MovementDeleteSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")


class InventoryRecordSerializer(serializers.ModelSerializer):
    location_code = serializers.CharField(source="location.code", read_only=True)
    zone = serializers.CharField(source="location.zone", read_only=True)

    class Meta:
        model = InventoryRecord
        fields = [
            "id",
            "stock_item",
            "location",
            "location_code",
            "zone",
            "lot",
            "quantity",
            "reserved",
            "expiry_date",
            "last_counted_at",
            "last_movement_at",
        ]
        read_only_fields = fields


# EOF
