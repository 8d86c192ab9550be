"""Count session scope as a small query builder.

A scope is a JSON object with optional lists::

    {"zones": ["A"], "location_codes": ["A1"], "categories": ["tools"], "abc_classes": ["A"]}

Each non-empty list becomes one filter. Location filters (zones, location
codes) narrow which InventoryRecords qualify by location; product filters
(categories by slug, ABC classes) narrow by the record's product. Every
filter is AND-ed with the others, so two location filters intersect, two
product filters intersect, and the location and product sides intersect.
Empty lists and missing keys mean "no filter".
"""

from dataclasses import dataclass
from typing import Mapping, Optional

from common.choices import AbcClass
from common.exceptions import ValidationError
from django.db.models import Q, QuerySet
from inventory.locations import canonical_location_code


@dataclass(frozen=True)
class ScopeFilter:
    key: str
    target: str  # "location" or "product"
    lookup: str

    def clean(self, values: list) -> tuple:
        return tuple(str(v).strip() for v in values if str(v).strip())

    def to_q(self, values: tuple) -> Q:
        return Q(**{f"{self.lookup}__in": values})


class ZoneFilter(ScopeFilter):
    def clean(self, values):
        return tuple(v.upper() for v in super().clean(values))


class LocationCodeFilter(ScopeFilter):
    def clean(self, values):
        return tuple(code for code in (canonical_location_code(v) for v in values) if code)


class AbcClassFilter(ScopeFilter):
    def clean(self, values):
        cleaned = tuple(v.upper() for v in super().clean(values))
        unknown = sorted(set(cleaned) - set(AbcClass.values))
        if unknown:
            raise ValidationError(f"Unknown ABC class: {', '.join(unknown)}", field="abc_classes", values=unknown)
        return cleaned


FILTERS = {
    f.key: f
    for f in (
        ZoneFilter("zones", "location", "location__zone"),
        LocationCodeFilter("location_codes", "location", "location__code"),
        ScopeFilter("categories", "product", "stock_item__product__category__slug"),
        AbcClassFilter("abc_classes", "product", "stock_item__product__abc_class"),
    )
}


@dataclass(frozen=True)
class Scope:
    """Validated scope: filter key -> cleaned values (non-empty only)."""

    filters: tuple = ()

    @classmethod
    def parse(cls, raw: Optional[Mapping]) -> "Scope":
        if raw is None:
            return cls()
        if not isinstance(raw, Mapping):
            raise ValidationError("Scope must be an object", field="scope")
        unknown = sorted(set(raw) - set(FILTERS))
        if unknown:
            raise ValidationError(f"Unknown scope keys: {', '.join(unknown)}", field="scope", keys=unknown)
        parsed = []
        for key, scope_filter in FILTERS.items():
            values = raw.get(key)
            if values in (None, []):
                continue
            if not isinstance(values, (list, tuple)):
                raise ValidationError(f"Scope {key} must be a list", field=key)
            values = list(values)
            cleaned = scope_filter.clean(values)
            if values and not cleaned:
                raise ValidationError(f"Scope {key} has no usable values", field=key)
            parsed.append((key, cleaned))
        return cls(tuple(parsed))

    def as_dict(self) -> dict:
        return {key: list(values) for key, values in self.filters}

    def to_q(self, target: Optional[str] = None) -> Q:
        q = Q()
        for key, values in self.filters:
            scope_filter = FILTERS[key]
            if target is None or scope_filter.target == target:
                q &= scope_filter.to_q(values)
        return q

    def apply(self, records: QuerySet) -> QuerySet:
        """Narrow an InventoryRecord queryset to this scope."""
        return records.filter(self.to_q("location")).filter(self.to_q("product"))


# EOF
