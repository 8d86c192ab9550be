"""Shared enumerations and choices used across apps."""

from django.db import models


class AbcClass(models.TextChoices):
    """Inventory classification by value/velocity (A: high, C: low)."""

    A = "A", "A"
    B = "B", "B"
    C = "C", "C"


class MovementType(models.TextChoices):
    RECEIPT = "receipt", "Receipt"
    ISSUE = "issue", "Issue"
    TRANSFER = "transfer", "Transfer"
    ADJUSTMENT = "adjustment", "Adjustment"


class MovementStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    COMPLETED = "completed", "Completed"


class ReversalOutcome(models.TextChoices):
    """How a deleted movement's stock effect was undone."""

    NONE = "", "Not applied"
    EXACT = "exact", "Exact"
    CLAMPED = "clamped", "Clamped at zero"


class CountSessionType(models.TextChoices):
    CYCLE = "cycle", "Cycle"
    FULL = "full", "Full"
    SPOT = "spot", "Spot"


class CountSessionStatus(models.TextChoices):
    """Lifecycle statuses for count sessions."""

    PLANNED = "planned", "Planned"
    ACTIVE = "active", "Active"
    COUNTING = "counting", "Counting"
    REVIEW = "review", "Review"
    APPROVED = "approved", "Approved"
    CANCELLED = "cancelled", "Cancelled"
