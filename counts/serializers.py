"""Serializers for count sessions.

Staff see the frozen system quantity and differences; everyone else gets
the blind variants, which leave those fields out entirely.
"""

from common.choices import CountSessionType
from rest_framework import serializers

from .models import CountLine, CountSession


class CountSessionSerializer(serializers.ModelSerializer):
    assigned_users = serializers.PrimaryKeyRelatedField(many=True, read_only=True)

    class Meta:
        model = CountSession
        fields = [
            "id",
            "code",
            "session_type",
            "status",
            "scope",
            "description",
            "created_by",
            "assigned_users",
            "started_at",
            "completed_at",
            "approved_by",
            "total_lines",
            "counted_lines",
            "discrepancy_lines",
            "total_value_gap",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BlindCountSessionSerializer(CountSessionSerializer):
    class Meta(CountSessionSerializer.Meta):
        fields = [f for f in CountSessionSerializer.Meta.fields if f not in ("discrepancy_lines", "total_value_gap")]
        read_only_fields = fields


class CountSessionCreateSerializer(serializers.Serializer):
    session_type = serializers.ChoiceField(choices=CountSessionType.choices, default=CountSessionType.CYCLE)
    scope = serializers.DictField(required=False, default=dict)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    assigned_user_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)


class CountLineSerializer(serializers.ModelSerializer):
    sku = serializers.CharField(source="stock_item.product.sku", read_only=True)
    title = serializers.CharField(source="stock_item.product.title", read_only=True)
    location_code = serializers.CharField(source="location.code", read_only=True)
    zone = serializers.CharField(source="location.zone", read_only=True)

    class Meta:
        model = CountLine
        fields = [
            "id",
            "stock_item",
            "sku",
            "title",
            "location",
            "location_code",
            "zone",
            "lot",
            "system_qty",
            "counted_qty",
            "diff_qty",
            "is_discrepancy",
            "counted_by",
            "counted_at",
            "notes",
            "recount_required",
        ]
        read_only_fields = fields


class BlindCountLineSerializer(CountLineSerializer):
    class Meta(CountLineSerializer.Meta):
        fields = [f for f in CountLineSerializer.Meta.fields if f not in ("system_qty", "diff_qty", "is_discrepancy")]
        read_only_fields = fields


class CountEntrySerializer(serializers.Serializer):
    line_id = serializers.IntegerField(required=False)
    stock_item_id = serializers.IntegerField(required=False)
    location = serializers.CharField(max_length=64, required=False)
    lot = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    counted_qty = serializers.IntegerField(min_value=0)
    notes = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if not attrs.get("line_id") and not (attrs.get("stock_item_id") and attrs.get("location")):
            raise serializers.ValidationError("Provide line_id, or stock_item_id and location.")
        return attrs


class CountEntryBatchSerializer(serializers.Serializer):
    lines = CountEntrySerializer(many=True, allow_empty=False)


class RecountSerializer(serializers.Serializer):
    notes = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


# EOF
