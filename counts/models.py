"""Count sessions and lines.

A session freezes ``InventoryRecord`` quantities into lines at creation;
counters fill in ``counted_qty`` and approval reconciles the ledger.
"""

from common.choices import CountSessionStatus, CountSessionType
from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class CountSession(TimeStampedModel):
    STATUS_PLANNED = CountSessionStatus.PLANNED
    STATUS_ACTIVE = CountSessionStatus.ACTIVE
    STATUS_COUNTING = CountSessionStatus.COUNTING
    STATUS_REVIEW = CountSessionStatus.REVIEW
    STATUS_APPROVED = CountSessionStatus.APPROVED
    STATUS_CANCELLED = CountSessionStatus.CANCELLED

    code = models.CharField(max_length=32, unique=True)
    session_type = models.CharField(max_length=16, choices=CountSessionType.choices, default=CountSessionType.CYCLE)
    status = models.CharField(
        max_length=16, choices=CountSessionStatus.choices, default=CountSessionStatus.PLANNED, db_index=True
    )
    # {"zones": [...], "location_codes": [...], "categories": [...], "abc_classes": [...]}
    scope = models.JSONField(default=dict, blank=True)
    description = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="count_sessions",
    )
    assigned_users = models.ManyToManyField(settings.AUTH_USER_MODEL, blank=True, related_name="assigned_count_sessions")
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="approved_count_sessions",
    )

    # Maintained incrementally by counts.services
    total_lines = models.PositiveIntegerField(default=0)
    counted_lines = models.PositiveIntegerField(default=0)
    discrepancy_lines = models.PositiveIntegerField(default=0)
    total_value_gap = models.DecimalField(max_digits=14, decimal_places=2, default=0)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["status", "created_at"]),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code} [{self.status}]"

    @property
    def is_open_for_counting(self) -> bool:
        return self.status in (self.STATUS_ACTIVE, self.STATUS_COUNTING)


class CountLine(TimeStampedModel):
    session = models.ForeignKey(CountSession, on_delete=models.CASCADE, related_name="lines")
    stock_item = models.ForeignKey("inventory.StockItem", on_delete=models.PROTECT, related_name="count_lines")
    location = models.ForeignKey("inventory.Location", on_delete=models.PROTECT, related_name="count_lines")
    lot = models.CharField(max_length=64, blank=True, default="")
    # Frozen at session creation
    system_qty = models.IntegerField()
    counted_qty = models.IntegerField(null=True, blank=True)
    diff_qty = models.IntegerField(null=True, blank=True)
    is_discrepancy = models.BooleanField(default=False)
    counted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="count_lines",
    )
    counted_at = models.DateTimeField(null=True, blank=True)
    notes = models.CharField(max_length=255, blank=True)
    recount_required = models.BooleanField(default=False)

    class Meta:
        ordering = ["location__code", "id"]
        constraints = [
            models.UniqueConstraint(fields=["session", "stock_item", "location", "lot"], name="unique_count_line"),
            models.CheckConstraint(
                name="count_line_counted_non_negative",
                condition=models.Q(counted_qty__isnull=True) | models.Q(counted_qty__gte=0),
            ),
        ]
        indexes = [
            models.Index(fields=["session", "is_discrepancy"]),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Line<{self.session_id}:{self.stock_item_id}@{self.location_id}> {self.counted_qty}/{self.system_qty}"


# EOF
