from django.urls import path

from .views import (
    BatchCompleteView,
    BatchView,
    DeletedMovementListView,
    InventoryHealthView,
    InventoryRecordListView,
    InventorySyncView,
    LocationDetailView,
    LocationListCreateView,
    MovementBulkCreateView,
    MovementCompleteView,
    MovementDetailView,
    MovementListCreateView,
    StockItemListView,
)

urlpatterns = [
    path("health/", InventoryHealthView.as_view(), name="inventory-health"),
    path("locations/", LocationListCreateView.as_view(), name="location-list"),
    path("locations/<int:pk>/", LocationDetailView.as_view(), name="location-detail"),
    path("stock-items/", StockItemListView.as_view(), name="stock-item-list"),
    path("movements/", MovementListCreateView.as_view(), name="movement-list"),
    path("movements/bulk/", MovementBulkCreateView.as_view(), name="movement-bulk"),
    path("movements/deleted/", DeletedMovementListView.as_view(), name="movement-deleted"),
    path("movements/<int:movement_id>/", MovementDetailView.as_view(), name="movement-detail"),
    path("movements/<int:movement_id>/complete/", MovementCompleteView.as_view(), name="movement-complete"),
    path("movements/batches/<str:batch_key>/", BatchView.as_view(), name="movement-batch"),
    path("movements/batches/<str:batch_key>/complete/", BatchCompleteView.as_view(), name="movement-batch-complete"),
    path("records/", InventoryRecordListView.as_view(), name="record-list"),
    path("sync/", InventorySyncView.as_view(), name="inventory-sync"),
]

# EOF
