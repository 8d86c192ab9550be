"""Count session workflow: create, enter counts, submit, approve, cancel.

Sessions move ``active -> counting -> review -> approved``; ``cancelled`` is
reachable from any non-terminal status. Approval reconciles the ledger by
posting one Receipt or Issue per discrepant line through
``inventory.services`` so the movement log stays complete.
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional

from common.choices import CountSessionType, MovementType
from common.exceptions import (
    InvalidStateTransition,
    InventoryError,
    NotFoundError,
    PermissionDeniedError,
    TransactionAbortError,
    ValidationError,
)
from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone
from inventory.locations import canonical_location_code
from inventory.models import InventoryRecord
from inventory.services import lock_stock_items, post_movement

from .models import CountLine, CountSession
from .scope import Scope

logger = logging.getLogger("avthrift.counts")

_OPEN = {CountSession.STATUS_ACTIVE, CountSession.STATUS_COUNTING}
_TERMINAL = {CountSession.STATUS_APPROVED, CountSession.STATUS_CANCELLED}

# Attempts at a fresh code when a concurrent create took the same one
_CODE_ATTEMPTS = 5


def next_session_code(now=None) -> str:
    """Next ``<PREFIX>-YYYYMM-NNN`` code; numbering restarts every month."""

    now = now or timezone.now()
    prefix = f"{getattr(settings, 'COUNT_SESSION_CODE_PREFIX', 'CNT')}-{now:%Y%m}-"
    numbers = [
        int(code[len(prefix) :])
        for code in CountSession.objects.filter(code__startswith=prefix).values_list("code", flat=True)
        if code[len(prefix) :].isdigit()
    ]
    return f"{prefix}{max(numbers, default=0) + 1:03d}"


def _create_with_code(now, **fields) -> CountSession:
    for attempt in range(1, _CODE_ATTEMPTS + 1):
        code = next_session_code(now)
        try:
            with transaction.atomic():
                return CountSession.objects.create(code=code, **fields)
        except IntegrityError:
            logger.warning(
                "counts.session_code_taken",
                extra={"event": "counts.session_code_taken", "code": code, "attempt": attempt},
            )
    raise TransactionAbortError("Could not allocate a session code; retry the request", code=code)


def _lock_session(session_id: int) -> CountSession:
    try:
        return CountSession.objects.select_for_update().get(id=session_id)
    except CountSession.DoesNotExist:
        raise NotFoundError("Count session not found", session=session_id)


def _value_gap(line: CountLine) -> Decimal:
    if line.diff_qty is None:
        return Decimal("0")
    unit_cost = line.stock_item.product.unit_cost
    return Decimal(line.diff_qty) * (unit_cost or Decimal("0"))


@transaction.atomic
def create_session(
    *,
    session_type: str = CountSessionType.CYCLE,
    scope: Optional[dict] = None,
    description: str = "",
    assigned_user_ids: Iterable[int] = (),
    actor=None,
) -> CountSession:
    """Open a session and freeze one line per InventoryRecord in scope."""

    if session_type not in CountSessionType.values:
        raise ValidationError(f"Unknown session type {session_type!r}", session_type=session_type)
    parsed = Scope.parse(scope)

    assigned_user_ids = set(assigned_user_ids or ())
    assignees = list(get_user_model().objects.filter(id__in=assigned_user_ids))
    missing = assigned_user_ids - {u.id for u in assignees}
    if missing:
        raise NotFoundError("User not found", user=sorted(missing)[0])

    now = timezone.now()
    session = _create_with_code(
        now,
        session_type=session_type,
        status=CountSession.STATUS_ACTIVE,
        scope=parsed.as_dict(),
        description=description,
        created_by=actor if getattr(actor, "id", None) else None,
        started_at=now,
    )
    if assignees:
        session.assigned_users.set(assignees)

    records = parsed.apply(InventoryRecord.objects.filter(stock_item__is_active=True)).order_by("location__code", "id")
    lines = CountLine.objects.bulk_create(
        [
            CountLine(
                session=session,
                stock_item_id=record.stock_item_id,
                location_id=record.location_id,
                lot=record.lot,
                system_qty=record.quantity,
            )
            for record in records
        ]
    )
    session.total_lines = len(lines)
    session.save(update_fields=["total_lines", "updated_at"])
    logger.info(
        "counts.session_created",
        extra={
            "event": "counts.session_created",
            "session": session.code,
            "session_type": session.session_type,
            "scope": session.scope,
            "lines": session.total_lines,
            "user_id": getattr(actor, "id", None),
        },
    )
    return session


def _find_line(session: CountSession, entry: dict) -> CountLine:
    qs = CountLine.objects.select_for_update().select_related("stock_item__product").filter(session=session)
    line_id = entry.get("line_id")
    try:
        if line_id:
            return qs.get(id=line_id)
        return qs.get(
            stock_item_id=entry.get("stock_item_id"),
            location__code=canonical_location_code(entry.get("location")),
            lot=entry.get("lot") or "",
        )
    except CountLine.DoesNotExist:
        raise NotFoundError(
            "Count line not found",
            line=line_id,
            stock_item=entry.get("stock_item_id"),
            location=entry.get("location"),
        )


def _check_assignment(session: CountSession, actor) -> None:
    if actor is None or getattr(actor, "is_staff", False):
        return
    assigned = set(session.assigned_users.values_list("id", flat=True))
    if assigned and actor.id not in assigned:
        raise PermissionDeniedError("You are not assigned to this count", session=session.code)


@transaction.atomic
def enter_counts(*, session_id: int, entries: list, actor=None) -> list:
    """Record counted quantities for one or more lines.

    Lines are found by ``line_id`` or by ``stock_item_id`` + ``location``
    (+ ``lot``). Differences are computed against the frozen
    ``system_qty``. A later entry for the same line overwrites the earlier
    one. Session statistics are adjusted by each line's change.
    """

    session = _lock_session(session_id)
    if session.status not in _OPEN:
        raise InvalidStateTransition(
            f"Session {session.code} is not open for counting", session=session.code, status=session.status
        )
    _check_assignment(session, actor)
    if not entries:
        raise ValidationError("At least one count entry is required")

    now = timezone.now()
    updated = []
    for index, entry in enumerate(entries):
        counted = entry.get("counted_qty")
        if isinstance(counted, bool) or not isinstance(counted, int) or counted < 0:
            raise ValidationError("Counted quantity must be a non-negative integer", index=index, counted_qty=counted)
        line = _find_line(session, entry)

        was_counted = line.counted_qty is not None
        was_discrepancy = line.is_discrepancy
        old_gap = _value_gap(line)

        line.counted_qty = counted
        line.diff_qty = counted - line.system_qty
        line.is_discrepancy = line.diff_qty != 0
        line.counted_by = actor if getattr(actor, "id", None) else None
        line.counted_at = now
        line.recount_required = False
        if entry.get("notes"):
            line.notes = entry["notes"]
        line.save(
            update_fields=[
                "counted_qty",
                "diff_qty",
                "is_discrepancy",
                "counted_by",
                "counted_at",
                "recount_required",
                "notes",
                "updated_at",
            ]
        )

        session.counted_lines += 0 if was_counted else 1
        session.discrepancy_lines += int(line.is_discrepancy) - int(was_discrepancy)
        session.total_value_gap += _value_gap(line) - old_gap
        updated.append(line)

    if session.status == CountSession.STATUS_ACTIVE:
        session.status = CountSession.STATUS_COUNTING
    session.save(update_fields=["status", "counted_lines", "discrepancy_lines", "total_value_gap", "updated_at"])
    logger.info(
        "counts.lines_counted",
        extra={
            "event": "counts.lines_counted",
            "session": session.code,
            "lines": len(updated),
            "counted_lines": session.counted_lines,
            "user_id": getattr(actor, "id", None),
        },
    )
    return updated


@transaction.atomic
def submit_session(*, session_id: int, actor=None) -> CountSession:
    """Send a fully counted session to review."""

    session = _lock_session(session_id)
    if session.status not in _OPEN:
        raise InvalidStateTransition(
            f"Session {session.code} cannot be submitted from {session.status}",
            session=session.code,
            status=session.status,
        )
    _check_assignment(session, actor)
    uncounted = session.lines.filter(counted_qty__isnull=True).count()
    if uncounted:
        raise InvalidStateTransition(
            f"{uncounted} line(s) are still uncounted", session=session.code, uncounted=uncounted
        )
    recount = session.lines.filter(recount_required=True).count()
    if recount:
        raise InvalidStateTransition(f"{recount} line(s) need a recount", session=session.code, recount=recount)
    session.status = CountSession.STATUS_REVIEW
    session.save(update_fields=["status", "updated_at"])
    logger.info(
        "counts.session_submitted",
        extra={"event": "counts.session_submitted", "session": session.code, "user_id": getattr(actor, "id", None)},
    )
    return session


def _reconcile_line(session: CountSession, line: CountLine, item, *, actor, now) -> None:
    if not item.is_active:
        raise ValidationError("StockItem is inactive", stock_item=item.id)
    code = line.location.code
    quantity = abs(line.diff_qty)
    reason = f"Count {session.code}"
    if line.diff_qty > 0:
        post_movement(
            item=item,
            movement_type=MovementType.RECEIPT,
            quantity=quantity,
            to_location=code,
            reason=reason,
            reference=session.code,
            actor=actor,
        )
    else:
        post_movement(
            item=item,
            movement_type=MovementType.ISSUE,
            quantity=quantity,
            from_location=code,
            reason=reason,
            reference=session.code,
            actor=actor,
        )
    record, _ = InventoryRecord.objects.select_for_update().get_or_create(
        stock_item=item, location=line.location, lot=line.lot, defaults={"quantity": line.counted_qty}
    )
    record.quantity = line.counted_qty
    record.last_counted_at = now
    record.last_movement_at = now
    record.save(update_fields=["quantity", "last_counted_at", "last_movement_at", "updated_at"])


@transaction.atomic
def approve_session(*, session_id: int, actor=None) -> CountSession:
    """Apply every discrepancy to the ledger and close the session.

    All corrective movements and record updates commit together; any
    failure rolls back the whole approval and leaves the session in review.
    """

    session = _lock_session(session_id)
    if session.status != CountSession.STATUS_REVIEW:
        raise InvalidStateTransition(
            f"Session {session.code} cannot be approved from {session.status}",
            session=session.code,
            status=session.status,
        )

    lines = list(session.lines.select_related("location").order_by("stock_item_id", "id"))
    discrepant = [line for line in lines if line.is_discrepancy]
    items = lock_stock_items({line.stock_item_id for line in discrepant})
    now = timezone.now()
    for line in discrepant:
        item = items[line.stock_item_id]
        try:
            _reconcile_line(session, line, item, actor=actor, now=now)
        except InventoryError as exc:
            logger.warning(
                "counts.approval_aborted",
                extra={
                    "event": "counts.approval_aborted",
                    "session": session.code,
                    "line": line.id,
                    "stock_item_id": item.id,
                    "reason": exc.message,
                },
            )
            raise TransactionAbortError(
                f"Approval of {session.code} was rolled back",
                cause=exc,
                session=session.code,
                line=line.id,
                stock_item=item.id,
            )

    counted = [line for line in lines if not line.is_discrepancy]
    for line in counted:
        InventoryRecord.objects.filter(stock_item_id=line.stock_item_id, location_id=line.location_id, lot=line.lot).update(
            last_counted_at=now
        )

    session.status = CountSession.STATUS_APPROVED
    session.approved_by = actor if getattr(actor, "id", None) else None
    session.completed_at = now
    session.discrepancy_lines = len(discrepant)
    session.save(update_fields=["status", "approved_by", "completed_at", "discrepancy_lines", "updated_at"])
    logger.info(
        "counts.session_approved",
        extra={
            "event": "counts.session_approved",
            "session": session.code,
            "adjustments": len(discrepant),
            "value_gap": str(session.total_value_gap),
            "user_id": getattr(actor, "id", None),
        },
    )
    return session


@transaction.atomic
def cancel_session(*, session_id: int, actor=None) -> CountSession:
    session = _lock_session(session_id)
    if session.status in _TERMINAL:
        raise InvalidStateTransition(
            f"Session {session.code} is already {session.status}", session=session.code, status=session.status
        )
    session.status = CountSession.STATUS_CANCELLED
    session.completed_at = timezone.now()
    session.save(update_fields=["status", "completed_at", "updated_at"])
    logger.info(
        "counts.session_cancelled",
        extra={"event": "counts.session_cancelled", "session": session.code, "user_id": getattr(actor, "id", None)},
    )
    return session


@transaction.atomic
def flag_recount(*, session_id: int, line_id: int, notes: str = "", actor=None) -> CountLine:
    """Ask for a line to be counted again.

    Flagging a line of a session in review reopens it for counting.
    """

    session = _lock_session(session_id)
    if session.status not in _OPEN | {CountSession.STATUS_REVIEW}:
        raise InvalidStateTransition(
            f"Session {session.code} is {session.status}", session=session.code, status=session.status
        )
    line = _find_line(session, {"line_id": line_id})
    line.recount_required = True
    if notes:
        line.notes = notes
    line.save(update_fields=["recount_required", "notes", "updated_at"])
    if session.status == CountSession.STATUS_REVIEW:
        session.status = CountSession.STATUS_COUNTING
        session.save(update_fields=["status", "updated_at"])
    logger.info(
        "counts.recount_requested",
        extra={
            "event": "counts.recount_requested",
            "session": session.code,
            "line": line.id,
            "user_id": getattr(actor, "id", None),
        },
    )
    return line


# EOF
