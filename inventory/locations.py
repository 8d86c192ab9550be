"""Location key canonicalization and lookup.

Labels such as ``"Warehouse A (A1)"`` and ``"A1"`` address the same
location: the canonical key is the text inside the first pair of
parentheses, or the whole label, trimmed.
"""

import re
from typing import Mapping, Optional

from django.conf import settings

_PARENS = re.compile(r"\(([^)]+)\)")


def canonical_location_code(label) -> str:
    text = str(label or "").strip()
    if not text:
        return ""
    match = _PARENS.search(text)
    return (match.group(1) if match else text).strip()


def canonicalize_quantities(quantities: Optional[Mapping]) -> dict[str, int]:
    """Return a new map with canonical keys; colliding keys are summed.

    Blank keys are dropped.
    """
    result: dict[str, int] = {}
    for key, qty in (quantities or {}).items():
        canon = canonical_location_code(key)
        if not canon:
            continue
        result[canon] = result.get(canon, 0) + int(qty or 0)
    return result


def merge_quantities(first: Optional[Mapping], second: Optional[Mapping]) -> dict[str, int]:
    merged = canonicalize_quantities(first)
    for key, qty in canonicalize_quantities(second).items():
        merged[key] = merged.get(key, 0) + qty
    return merged


def placeholder_location_defaults(code: str) -> dict:
    defaults = dict(getattr(settings, "INVENTORY_PLACEHOLDER_LOCATION", {}))
    defaults.setdefault("zone", "A")
    defaults.setdefault("level", 1)
    defaults.setdefault("section", 1)
    defaults.setdefault("capacity", 1000)
    defaults["name"] = code
    return defaults


def resolve_location(label, *, create: bool = False):
    """Return the Location for ``label`` by canonical code.

    With ``create=True`` a minimal placeholder is created when missing;
    otherwise ``NotFoundError`` is raised.
    """
    from common.exceptions import NotFoundError, ValidationError

    from .models import Location

    code = canonical_location_code(label)
    if not code:
        raise ValidationError("Location code is required")
    if create:
        location, _ = Location.objects.get_or_create(code=code, defaults=placeholder_location_defaults(code))
        return location
    try:
        return Location.objects.get(code=code)
    except Location.DoesNotExist:
        raise NotFoundError(f"Location {code} not found", location=code)


# EOF
