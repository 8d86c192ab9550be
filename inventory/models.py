"""Inventory models (multi-location).

Stock is tracked per ``StockItem`` as an aggregate quantity plus a
per-location breakdown keyed by canonical location code. Every change is
recorded as a ``StockMovement``; ``InventoryRecord`` is the normalized
per-location baseline that count sessions freeze from.
"""

from common.choices import MovementStatus, MovementType, ReversalOutcome
from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Location(TimeStampedModel):
    """Physical storage location addressed by its canonical ``code``."""

    code = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=120)
    description = models.CharField(max_length=255, blank=True)
    zone = models.CharField(max_length=16, db_index=True)
    level = models.PositiveIntegerField(default=1)
    section = models.PositiveIntegerField(default=1)
    # Capacity and occupancy are informational; the ledger never enforces them
    capacity = models.PositiveIntegerField(default=0)
    current_occupancy = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["zone", "level", "section", "code"]
        constraints = [
            models.CheckConstraint(name="location_level_positive", condition=models.Q(level__gte=1)),
            models.CheckConstraint(name="location_section_positive", condition=models.Q(section__gte=1)),
        ]
        indexes = [
            models.Index(fields=["zone", "level", "section"]),
        ]

    def save(self, *args, **kwargs):
        from .locations import canonical_location_code

        self.code = canonical_location_code(self.code)
        if self.zone:
            self.zone = self.zone.strip().upper()
        super().save(*args, **kwargs)

    @property
    def utilization(self) -> float:
        return (self.current_occupancy / self.capacity) * 100 if self.capacity > 0 else 0.0

    def __str__(self) -> str:  # pragma: no cover
        return self.code


class StockItem(TimeStampedModel):
    """Aggregate and per-location on-hand quantity for a product.

    ``quantity`` need not equal the sum of ``location_quantities`` for legacy
    rows; see ``inventory.ledger.available_at`` for how the gap is read.
    Mutate only through ``inventory.services``.
    """

    product = models.ForeignKey("catalog.Product", related_name="stock_items", on_delete=models.CASCADE)
    quantity = models.IntegerField(default=0)
    location_quantities = models.JSONField(default=dict, blank=True)
    primary_location = models.CharField(max_length=64, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    # Set when a transfer folded this row into another item of the same product
    merged_into = models.ForeignKey(
        "self", null=True, blank=True, related_name="merged_items", on_delete=models.SET_NULL
    )

    class Meta:
        ordering = ["-updated_at", "id"]
        constraints = [
            models.CheckConstraint(name="stock_non_negative", condition=models.Q(quantity__gte=0)),
        ]
        indexes = [
            models.Index(fields=["product", "is_active"]),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"StockItem<{self.product_id}> q={self.quantity} @{self.primary_location or '-'}"


class StockMovement(TimeStampedModel):
    TYPE_RECEIPT = MovementType.RECEIPT
    TYPE_ISSUE = MovementType.ISSUE
    TYPE_TRANSFER = MovementType.TRANSFER
    TYPE_ADJUSTMENT = MovementType.ADJUSTMENT
    TYPE_CHOICES = MovementType.choices

    STATUS_DRAFT = MovementStatus.DRAFT
    STATUS_COMPLETED = MovementStatus.COMPLETED
    STATUS_CHOICES = MovementStatus.choices

    number = models.CharField(max_length=16, unique=True, null=True, blank=True)
    stock_item = models.ForeignKey(StockItem, on_delete=models.CASCADE, related_name="movements")
    movement_type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    # Positive for receipt/issue/transfer; the new absolute value for adjustment
    quantity = models.IntegerField()
    from_location = models.CharField(max_length=64, blank=True)
    to_location = models.CharField(max_length=64, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_COMPLETED, db_index=True)
    batch_key = models.CharField(max_length=64, blank=True, db_index=True)
    reason = models.CharField(max_length=200, blank=True)
    reference = models.CharField(max_length=120, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        related_name="stock_movements",
        on_delete=models.SET_NULL,
    )
    completed_at = models.DateTimeField(null=True, blank=True)

    # Pre-application values, recorded for adjustments so they can be reversed
    adjusted_from_quantity = models.IntegerField(null=True, blank=True)
    adjusted_from_location_quantity = models.IntegerField(null=True, blank=True)

    deleted = models.BooleanField(default=False, db_index=True)
    deleted_at = models.DateTimeField(null=True, blank=True)
    deleted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        related_name="deleted_stock_movements",
        on_delete=models.SET_NULL,
    )
    delete_reason = models.CharField(max_length=200, blank=True)
    reversal_outcome = models.CharField(max_length=16, choices=ReversalOutcome.choices, blank=True, default="")

    class Meta:
        ordering = ["-created_at", "id"]
        constraints = [
            models.CheckConstraint(
                name="movement_quantity_valid",
                condition=models.Q(quantity__gt=0) | models.Q(movement_type=MovementType.ADJUSTMENT, quantity__gte=0),
            ),
        ]
        indexes = [
            models.Index(fields=["stock_item", "created_at"]),
            models.Index(fields=["movement_type", "created_at"]),
            models.Index(fields=["batch_key", "status"]),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.movement_type} {self.quantity} for {self.stock_item_id} [{self.status}]"


class InventoryRecord(TimeStampedModel):
    """Per (stock item, location, lot) quantity baseline used by counting."""

    stock_item = models.ForeignKey(StockItem, on_delete=models.CASCADE, related_name="records")
    location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name="records")
    lot = models.CharField(max_length=64, blank=True, default="")
    quantity = models.IntegerField(default=0)
    reserved = models.IntegerField(default=0)
    expiry_date = models.DateField(null=True, blank=True)
    last_counted_at = models.DateTimeField(null=True, blank=True)
    last_movement_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["location__code", "id"]
        constraints = [
            models.UniqueConstraint(fields=["stock_item", "location", "lot"], name="unique_record_item_location_lot"),
            models.CheckConstraint(name="record_quantity_non_negative", condition=models.Q(quantity__gte=0)),
            models.CheckConstraint(name="record_reserved_non_negative", condition=models.Q(reserved__gte=0)),
        ]
        indexes = [
            models.Index(fields=["location"]),
            models.Index(fields=["stock_item"]),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Record<{self.stock_item_id}@{self.location_id}:{self.lot or '-'}> q={self.quantity}"


# EOF
