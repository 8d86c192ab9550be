"""Inventory API: locations, stock, movements, records and sync."""

from common.choices import MovementStatus, MovementType
from common.exceptions import InventoryError, error_response
from django_filters import rest_framework as filters
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, inline_serializer
from rest_framework import generics, permissions, status
from rest_framework import serializers as rf_serializers
from rest_framework.response import Response
from rest_framework.views import APIView

from . import selectors, services
from .models import StockMovement
from .serializers import (
    BulkMovementSerializer,
    InventoryRecordSerializer,
    LocationSerializer,
    MovementDeleteSerializer,
    MovementWriteSerializer,
    StockItemSerializer,
    StockMovementSerializer,
)

ErrorSerializer = inline_serializer(name="InventoryError", fields={"detail": rf_serializers.CharField()})


class InventoryHealthView(APIView):
    permission_classes = [permissions.AllowAny]
    throttle_classes = []

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Inventory health",
        description="Simple healthcheck endpoint for the inventory app",
        examples=[OpenApiExample("Health OK", value={"status": "ok", "app": "inventory"})],
    )
    def get(self, request):
        return Response({"status": "ok", "app": "inventory"})


class LocationListCreateView(generics.ListCreateAPIView):
    """List locations for any authenticated user; staff may create them."""

    serializer_class = LocationSerializer
    throttle_scope = "inventory"

    def get_permissions(self):
        if self.request.method == "POST":
            return [permissions.IsAdminUser()]
        return [permissions.IsAuthenticated()]

    def get_queryset(self):
        return selectors.list_locations(zone=self.request.query_params.get("zone"))

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List locations",
        parameters=[OpenApiParameter(name="zone", description="Zone code", required=False, type=str)],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @extend_schema(tags=["Inventory Endpoints"], summary="Create location (staff)")
    def post(self, request, *args, **kwargs):
        return super().post(request, *args, **kwargs)


class LocationDetailView(generics.RetrieveUpdateAPIView):
    serializer_class = LocationSerializer
    permission_classes = [permissions.IsAdminUser]
    throttle_scope = "inventory_write"
    queryset = selectors.list_locations(include_inactive=True)


class StockItemListView(generics.ListAPIView):
    permission_classes = [permissions.IsAdminUser]
    serializer_class = StockItemSerializer
    throttle_scope = "inventory"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List stock items (staff)",
        description="List stock per product with per-location breakdown. Filters: product_id, sku, location.",
        examples=[
            OpenApiExample(
                "Stock Items",
                value={
                    "results": [
                        {
                            "id": 1,
                            "product": 10,
                            "sku": "SKU-00001",
                            "title": "Steel shelf bracket",
                            "quantity": 12,
                            "location_quantities": {"A1": 5, "B2": 7},
                            "primary_location": "B2",
                            "is_active": True,
                            "updated_at": "2025-01-01T12:00:00Z",
                        }
                    ]
                },
            )
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        params = self.request.query_params
        return selectors.list_stock_items(
            product_id=params.get("product_id"),
            sku=params.get("sku"),
            location=params.get("location"),
        )


class MovementFilterSet(filters.FilterSet):
    stock_item = filters.NumberFilter(field_name="stock_item_id")
    product_id = filters.NumberFilter(field_name="stock_item__product_id")
    user_id = filters.NumberFilter(field_name="created_by_id")
    movement_type = filters.ChoiceFilter(field_name="movement_type", choices=MovementType.choices)
    status = filters.ChoiceFilter(field_name="status", choices=MovementStatus.choices)
    batch_key = filters.CharFilter(field_name="batch_key")
    created_after = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    created_before = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = StockMovement
        fields = ["stock_item", "product_id", "user_id", "movement_type", "status", "batch_key"]


class MovementListCreateView(generics.ListAPIView):
    """List live movements or record a new one. Staff only; counters see stock through blind sessions."""

    permission_classes = [permissions.IsAdminUser]
    serializer_class = StockMovementSerializer
    throttle_scope = "inventory"
    filterset_class = MovementFilterSet
    filter_backends = [filters.DjangoFilterBackend]

    def get_queryset(self):
        return selectors.list_movements()

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List stock movements (staff)",
        description=(
            "List live movements. Filters: stock_item, product_id, user_id, movement_type, status, "
            "batch_key, created_after / created_before (ISO)."
        ),
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Create stock movement (staff)",
        description=(
            "Records a receipt, issue, transfer or adjustment. Completed movements update stock "
            "immediately; drafts wait for completion of their batch."
        ),
        request=MovementWriteSerializer,
        responses={201: StockMovementSerializer, 400: ErrorSerializer, 404: ErrorSerializer},
        examples=[
            OpenApiExample(
                "Transfer",
                value={
                    "stock_item_id": 1,
                    "movement_type": "transfer",
                    "quantity": 3,
                    "from_location": "A1",
                    "to_location": "B2",
                },
                request_only=True,
            )
        ],
    )
    def post(self, request):
        serializer = MovementWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            movement = services.create_movement(actor=request.user, **serializer.validated_data)
        except InventoryError as exc:
            return error_response(exc)
        return Response(StockMovementSerializer(movement).data, status=status.HTTP_201_CREATED)


class MovementBulkCreateView(APIView):
    permission_classes = [permissions.IsAdminUser]
    throttle_scope = "inventory_write"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Create movements in bulk",
        description="Creates all movements as one batch; if any row fails nothing is recorded.",
        request=BulkMovementSerializer,
        responses={201: StockMovementSerializer(many=True), 400: ErrorSerializer, 409: ErrorSerializer},
    )
    def post(self, request):
        serializer = BulkMovementSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            movements = services.create_movements_bulk(
                movements=serializer.validated_data["movements"],
                batch_key=serializer.validated_data["batch_key"],
                actor=request.user,
            )
        except InventoryError as exc:
            return error_response(exc)
        return Response(StockMovementSerializer(movements, many=True).data, status=status.HTTP_201_CREATED)


class MovementDetailView(APIView):
    permission_classes = [permissions.IsAdminUser]
    throttle_scope = "inventory"

    @extend_schema(
        tags=["Inventory Endpoints"], summary="Get stock movement (staff)", responses={200: StockMovementSerializer}
    )
    def get(self, request, movement_id: int):
        try:
            movement = selectors.get_movement(movement_id)
        except InventoryError as exc:
            return error_response(exc)
        return Response(StockMovementSerializer(movement).data)

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Delete stock movement (staff)",
        description="Soft-deletes the movement and reverses its stock effect when it was completed.",
        request=MovementDeleteSerializer,
        responses={200: StockMovementSerializer, 404: ErrorSerializer, 409: ErrorSerializer},
    )
    def delete(self, request, movement_id: int):
        serializer = MovementDeleteSerializer(data=request.data or {})
        serializer.is_valid(raise_exception=True)
        try:
            movement = services.delete_movement(
                movement_id=movement_id,
                actor=request.user,
                reason=serializer.validated_data["reason"] or "Manual deletion",
            )
        except InventoryError as exc:
            return error_response(exc)
        return Response(StockMovementSerializer(movement).data)


class MovementCompleteView(APIView):
    permission_classes = [permissions.IsAdminUser]
    throttle_scope = "inventory_write"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Complete draft movement (staff)",
        description="Completes the draft and every other draft sharing its batch key, atomically.",
        request=None,
        responses={200: StockMovementSerializer, 404: ErrorSerializer, 409: ErrorSerializer},
    )
    def post(self, request, movement_id: int):
        try:
            movement = services.complete_movement(movement_id=movement_id, actor=request.user)
        except InventoryError as exc:
            return error_response(exc)
        return Response(StockMovementSerializer(movement).data)


class DeletedMovementListView(APIView):
    permission_classes = [permissions.IsAdminUser]
    throttle_scope = "inventory"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List deleted movements (staff)",
        responses={200: StockMovementSerializer(many=True)},
    )
    def get(self, request):
        return Response(StockMovementSerializer(selectors.list_deleted_movements(), many=True).data)


class BatchView(APIView):
    permission_classes = [permissions.IsAdminUser]
    throttle_scope = "inventory_write"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Delete batch (staff)",
        description="Soft-deletes every live movement in the batch, reversing completed ones.",
        request=MovementDeleteSerializer,
        responses={
            200: inline_serializer(
                name="BatchDeleted",
                fields={"batch_key": rf_serializers.CharField(), "deleted": rf_serializers.IntegerField()},
            ),
            404: ErrorSerializer,
        },
    )
    def delete(self, request, batch_key: str):
        serializer = MovementDeleteSerializer(data=request.data or {})
        serializer.is_valid(raise_exception=True)
        try:
            movements = services.delete_batch(
                batch_key=batch_key,
                actor=request.user,
                reason=serializer.validated_data["reason"] or "Batch deletion",
            )
        except InventoryError as exc:
            return error_response(exc)
        return Response({"batch_key": batch_key, "deleted": len(movements)})


class BatchCompleteView(APIView):
    permission_classes = [permissions.IsAdminUser]
    throttle_scope = "inventory_write"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Complete batch (staff)",
        description="Applies every draft in the batch or none of them.",
        request=None,
        responses={
            200: inline_serializer(
                name="BatchCompleted",
                fields={"batch_key": rf_serializers.CharField(), "completed": rf_serializers.IntegerField()},
            ),
            404: ErrorSerializer,
            409: ErrorSerializer,
        },
        examples=[
            OpenApiExample(
                "Aborted",
                value={
                    "detail": "Batch B-1 was not completed",
                    "error": {
                        "type": "TransactionAbortError",
                        "cause": "InsufficientStock",
                        "location": "A1",
                        "available": 2,
                        "requested": 5,
                        "shortfall": 3,
                        "stock_item": 7,
                    },
                },
                response_only=True,
                status_codes=["409"],
            )
        ],
    )
    def post(self, request, batch_key: str):
        try:
            movements = services.complete_batch(batch_key=batch_key, actor=request.user)
        except InventoryError as exc:
            return error_response(exc)
        return Response({"batch_key": batch_key, "completed": len(movements)})


class InventoryRecordListView(generics.ListAPIView):
    permission_classes = [permissions.IsAdminUser]
    serializer_class = InventoryRecordSerializer
    throttle_scope = "inventory"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List inventory records (staff)",
        description="Per-location baseline used by counts. Filters: stock_item, location, zone.",
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        params = self.request.query_params
        return selectors.list_records(
            stock_item=params.get("stock_item"),
            location=params.get("location"),
            zone=params.get("zone"),
        )


class InventorySyncView(APIView):
    permission_classes = [permissions.IsAdminUser]
    throttle_scope = "inventory_write"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Sync inventory records (staff)",
        description="Upserts inventory records from the stock ledger. Safe to re-run.",
        request=None,
        examples=[
            OpenApiExample(
                "Synced",
                value={"items": 3, "created": 4, "updated": 0, "unchanged": 1, "locations_created": 2},
                response_only=True,
            )
        ],
    )
    def post(self, request):
        return Response(services.sync_inventory())


# EOF
