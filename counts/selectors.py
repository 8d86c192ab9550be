"""Selectors for count sessions and lines."""

from typing import Optional

from common.exceptions import NotFoundError, ValidationError
from django.db.models import QuerySet

from .models import CountLine, CountSession

LINE_STATES = ("counted", "uncounted", "discrepancy", "recount")


def get_session(session_id: int) -> CountSession:
    try:
        return CountSession.objects.select_related("created_by", "approved_by").get(id=session_id)
    except CountSession.DoesNotExist:
        raise NotFoundError("Count session not found", session=session_id)


def list_sessions(*, status: Optional[str] = None, session_type: Optional[str] = None) -> QuerySet[CountSession]:
    qs = CountSession.objects.order_by("-created_at", "-id")
    if status:
        qs = qs.filter(status=status)
    if session_type:
        qs = qs.filter(session_type=session_type)
    return qs


def list_lines(session: CountSession, *, state: Optional[str] = None) -> QuerySet[CountLine]:
    """Lines of ``session`` optionally narrowed to one of ``LINE_STATES``."""

    qs = session.lines.select_related("stock_item__product", "location").order_by("location__code", "id")
    if not state:
        return qs
    if state not in LINE_STATES:
        raise ValidationError(f"Unknown line filter {state!r}", status=state)
    if state == "counted":
        return qs.filter(counted_qty__isnull=False)
    if state == "uncounted":
        return qs.filter(counted_qty__isnull=True)
    if state == "discrepancy":
        return qs.filter(is_discrepancy=True)
    return qs.filter(recount_required=True)


# EOF
