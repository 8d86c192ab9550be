"""Catalog app models.

The product directory consumed by the inventory core: categories and
products with the attributes count scoping relies on (category, ABC class).
"""

from common.choices import AbcClass
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Category(TimeStampedModel):
    """Flat product categorization, addressed by slug."""

    name = models.CharField(max_length=120)
    slug = models.SlugField(max_length=140, unique=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "categories"

    def __str__(self) -> str:  # pragma: no cover
        return self.name


class Product(TimeStampedModel):
    """Logical product; stock is tracked by ``inventory.StockItem``."""

    ABC_CHOICES = AbcClass.choices

    title = models.CharField(max_length=200)
    sku = models.CharField(max_length=64, unique=True)
    brand = models.CharField(max_length=120, blank=True)
    model = models.CharField(max_length=120, blank=True)
    category = models.ForeignKey(
        Category,
        null=True,
        blank=True,
        related_name="products",
        on_delete=models.SET_NULL,
    )
    abc_class = models.CharField(max_length=1, choices=ABC_CHOICES, default=AbcClass.C, db_index=True)
    # Informational only; feeds the value gap statistic of count sessions
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        ordering = ["title"]
        constraints = [
            models.CheckConstraint(
                name="product_unit_cost_non_negative",
                condition=models.Q(unit_cost__gte=0) | models.Q(unit_cost__isnull=True),
            ),
        ]
        indexes = [
            models.Index(fields=["category", "abc_class"]),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.title} [{self.sku}]"
