"""Inventory services (multi-location): transactional stock movements.

Every function that changes stock runs in one ``transaction.atomic`` block,
locks the affected ``StockItem`` rows with ``select_for_update`` (in id
order), applies ``inventory.ledger`` arithmetic, and records the change as a
``StockMovement``.
"""

import logging
import uuid
from typing import Iterable, Optional

from common.choices import MovementStatus, MovementType
from common.exceptions import (
    InsufficientStock,
    InvalidStateTransition,
    InventoryError,
    NotFoundError,
    TransactionAbortError,
    ValidationError,
)
from django.db import transaction
from django.utils import timezone

from . import ledger
from .ledger import LedgerState
from .locations import canonical_location_code, merge_quantities, placeholder_location_defaults
from .models import InventoryRecord, Location, StockItem, StockMovement

logger = logging.getLogger("avthrift.inventory")

# Movement types that need a source / destination location
_NEEDS_FROM = {StockMovement.TYPE_ISSUE, StockMovement.TYPE_TRANSFER}
_NEEDS_TO = {StockMovement.TYPE_RECEIPT, StockMovement.TYPE_TRANSFER, StockMovement.TYPE_ADJUSTMENT}


def _lock_item(stock_item_id: int) -> StockItem:
    try:
        return StockItem.objects.select_for_update().get(id=stock_item_id)
    except StockItem.DoesNotExist:
        raise NotFoundError("StockItem not found", stock_item=stock_item_id)


def lock_stock_items(ids: Iterable[int]) -> dict:
    """Lock the given StockItems (id order) and return them by id."""
    ids = set(ids)
    items = {item.id: item for item in StockItem.objects.select_for_update().filter(id__in=ids).order_by("id")}
    missing = ids - set(items)
    if missing:
        raise NotFoundError("StockItem not found", stock_item=sorted(missing)[0])
    return items


def _refresh(item: StockItem) -> None:
    # An earlier transfer in the same batch may have merged this row away
    item.refresh_from_db(fields=["quantity", "location_quantities", "primary_location", "is_active"])


def validate_movement(*, movement_type: str, quantity, from_location: str = "", to_location: str = ""):
    """Check type, quantity and required locations; return canonical keys."""

    if movement_type not in MovementType.values:
        raise ValidationError(f"Unknown movement type {movement_type!r}", movement_type=movement_type)
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("Quantity must be an integer", quantity=quantity)
    if quantity < 0 or (quantity == 0 and movement_type != StockMovement.TYPE_ADJUSTMENT):
        raise ValidationError("Quantity must be positive", quantity=quantity)
    from_key = canonical_location_code(from_location)
    to_key = canonical_location_code(to_location)
    if movement_type in _NEEDS_FROM and not from_key:
        raise ValidationError("from_location is required for issues and transfers", field="from_location")
    if movement_type in _NEEDS_TO and not to_key:
        raise ValidationError("to_location is required for receipts, transfers and adjustments", field="to_location")
    if movement_type == StockMovement.TYPE_TRANSFER and from_key == to_key:
        raise ValidationError("Transfer source and destination must differ", location=from_key)
    if movement_type == StockMovement.TYPE_RECEIPT:
        from_key = ""
    if movement_type == StockMovement.TYPE_ISSUE:
        to_key = ""
    return from_key, to_key


def _fold_records(source: StockItem, target: StockItem) -> None:
    for record in InventoryRecord.objects.select_for_update().filter(stock_item=source).order_by("id"):
        existing = (
            InventoryRecord.objects.select_for_update()
            .filter(stock_item=target, location_id=record.location_id, lot=record.lot)
            .first()
        )
        if existing is None:
            record.stock_item = target
            record.save(update_fields=["stock_item", "updated_at"])
            continue
        existing.quantity = int(existing.quantity) + int(record.quantity)
        existing.reserved = int(existing.reserved) + int(record.reserved)
        existing.save(update_fields=["quantity", "reserved", "updated_at"])
        record.delete()


def _merge_duplicates(item: StockItem, to_location: str) -> list:
    """Fold other active items of the same product holding stock at ``to_location``."""

    merged = []
    duplicates = (
        StockItem.objects.select_for_update()
        .filter(product_id=item.product_id, is_active=True)
        .exclude(id=item.id)
        .order_by("id")
    )
    for duplicate in duplicates:
        other = LedgerState.from_item(duplicate)
        holds_stock = other.at(to_location) > 0 or (other.primary_location == to_location and other.quantity > 0)
        if not holds_stock:
            continue
        current = LedgerState.from_item(item)
        current.locations = merge_quantities(current.locations, ledger.location_breakdown(other))
        current.quantity += other.quantity
        current.write_to(item)
        _fold_records(duplicate, item)
        duplicate.quantity = 0
        duplicate.location_quantities = {}
        duplicate.is_active = False
        duplicate.merged_into = item
        duplicate.save(update_fields=["quantity", "location_quantities", "is_active", "merged_into", "updated_at"])
        merged.append(duplicate.id)
    if merged:
        item.save(update_fields=["quantity", "location_quantities", "primary_location", "updated_at"])
        logger.info(
            "inventory.duplicates_merged",
            extra={"event": "inventory.duplicates_merged", "stock_item_id": item.id, "merged_ids": merged},
        )
    return merged


def _apply_to_item(item: StockItem, movement: StockMovement) -> None:
    """Apply ``movement`` to the locked ``item`` and persist both."""

    state = LedgerState.from_item(item)
    try:
        updated = ledger.apply(
            state,
            movement.movement_type,
            int(movement.quantity),
            movement.from_location,
            movement.to_location,
        )
    except InsufficientStock as exc:
        exc.detail["stock_item"] = item.id
        raise
    if movement.movement_type == StockMovement.TYPE_ADJUSTMENT:
        movement.adjusted_from_quantity = state.quantity
        movement.adjusted_from_location_quantity = ledger.available_at(
            state.quantity, state.locations, state.primary_location, movement.to_location
        )
    updated.write_to(item)
    item.save(update_fields=["quantity", "location_quantities", "primary_location", "updated_at"])
    if movement.movement_type == StockMovement.TYPE_TRANSFER:
        _merge_duplicates(item, movement.to_location)
    movement.status = StockMovement.STATUS_COMPLETED
    movement.completed_at = timezone.now()


def _assign_number(movement: StockMovement, batch_key: str = "") -> None:
    movement.number = f"{int(movement.id):06d}"
    movement.batch_key = batch_key or movement.number
    movement.save(update_fields=["number", "batch_key"])


def post_movement(
    *,
    item: StockItem,
    movement_type: str,
    quantity: int,
    from_location: str = "",
    to_location: str = "",
    status: str = StockMovement.STATUS_COMPLETED,
    batch_key: str = "",
    reason: str = "",
    reference: str = "",
    actor=None,
) -> StockMovement:
    """Record a movement against an already locked ``item``.

    Must run inside a transaction that holds ``select_for_update`` on
    ``item``. Completed movements are applied to the ledger immediately.
    """

    from_key, to_key = validate_movement(
        movement_type=movement_type, quantity=quantity, from_location=from_location, to_location=to_location
    )
    if status not in MovementStatus.values:
        raise ValidationError(f"Unknown movement status {status!r}", status=status)
    movement = StockMovement(
        stock_item=item,
        movement_type=movement_type,
        quantity=quantity,
        from_location=from_key,
        to_location=to_key,
        status=StockMovement.STATUS_DRAFT,
        reason=reason,
        reference=reference,
        created_by=actor if getattr(actor, "id", None) else None,
    )
    if status == StockMovement.STATUS_COMPLETED:
        _apply_to_item(item, movement)
    movement.save()
    _assign_number(movement, batch_key)
    logger.info(
        "inventory.movement_recorded",
        extra={
            "event": "inventory.movement_recorded",
            "movement": movement.number,
            "stock_item_id": item.id,
            "movement_type": movement.movement_type,
            "quantity": movement.quantity,
            "status": movement.status,
            "batch_key": movement.batch_key,
            "user_id": getattr(actor, "id", None),
        },
    )
    return movement


@transaction.atomic
def create_movement(
    *,
    stock_item_id: int,
    movement_type: str,
    quantity: int,
    from_location: str = "",
    to_location: str = "",
    status: str = StockMovement.STATUS_COMPLETED,
    batch_key: str = "",
    reason: str = "",
    reference: str = "",
    actor=None,
) -> StockMovement:
    """Create one movement; completed movements update stock right away.

    Without ``batch_key`` the movement forms its own single-member batch.
    """

    validate_movement(movement_type=movement_type, quantity=quantity, from_location=from_location, to_location=to_location)
    item = _lock_item(stock_item_id)
    if not item.is_active:
        raise ValidationError("StockItem is inactive", stock_item=item.id)
    return post_movement(
        item=item,
        movement_type=movement_type,
        quantity=quantity,
        from_location=from_location,
        to_location=to_location,
        status=status,
        batch_key=batch_key,
        reason=reason,
        reference=reference,
        actor=actor,
    )


def new_batch_key() -> str:
    return f"B-{uuid.uuid4().hex[:12].upper()}"


@transaction.atomic
def create_movements_bulk(*, movements: list, batch_key: str = "", actor=None) -> list:
    """Create several movements as one batch; any failure rolls back all of them.

    Rows without their own ``batch_key`` share ``batch_key`` (generated when
    not given).
    """

    if not movements:
        raise ValidationError("At least one movement is required")
    shared_key = batch_key or new_batch_key()
    for index, row in enumerate(movements):
        try:
            validate_movement(
                movement_type=row.get("movement_type"),
                quantity=row.get("quantity"),
                from_location=row.get("from_location", ""),
                to_location=row.get("to_location", ""),
            )
        except ValidationError as exc:
            exc.detail["index"] = index
            raise
    items = lock_stock_items(row["stock_item_id"] for row in movements)

    created = []
    for index, row in enumerate(movements):
        item = items[row["stock_item_id"]]
        _refresh(item)
        try:
            if not item.is_active:
                raise ValidationError("StockItem is inactive", stock_item=item.id)
            movement = post_movement(
                item=item,
                movement_type=row["movement_type"],
                quantity=row["quantity"],
                from_location=row.get("from_location", ""),
                to_location=row.get("to_location", ""),
                status=row.get("status") or StockMovement.STATUS_COMPLETED,
                batch_key=row.get("batch_key") or shared_key,
                reason=row.get("reason", ""),
                reference=row.get("reference", ""),
                actor=actor,
            )
        except InventoryError as exc:
            raise TransactionAbortError(
                f"Bulk movement {index} failed; no movements were recorded",
                cause=exc,
                index=index,
                stock_item=item.id,
            )
        created.append(movement)
    return created


@transaction.atomic
def complete_batch(*, batch_key: str, actor=None) -> list:
    """Complete every draft movement in ``batch_key`` or none of them."""

    drafts = list(
        StockMovement.objects.select_for_update()
        .filter(batch_key=batch_key, status=StockMovement.STATUS_DRAFT, deleted=False)
        .order_by("id")
    )
    if not drafts:
        raise NotFoundError("No draft movements in this batch", batch_key=batch_key)
    items = lock_stock_items(m.stock_item_id for m in drafts)
    for movement in drafts:
        item = items[movement.stock_item_id]
        _refresh(item)
        try:
            if not item.is_active:
                raise ValidationError("StockItem is inactive", stock_item=item.id)
            _apply_to_item(item, movement)
        except InventoryError as exc:
            logger.warning(
                "inventory.batch_aborted",
                extra={
                    "event": "inventory.batch_aborted",
                    "batch_key": batch_key,
                    "movement": movement.number,
                    "stock_item_id": item.id,
                    "reason": exc.message,
                },
            )
            raise TransactionAbortError(
                f"Batch {batch_key} was not completed",
                cause=exc,
                batch_key=batch_key,
                movement=movement.number,
                stock_item=item.id,
            )
        movement.save(
            update_fields=[
                "status",
                "completed_at",
                "adjusted_from_quantity",
                "adjusted_from_location_quantity",
                "updated_at",
            ]
        )
    logger.info(
        "inventory.batch_completed",
        extra={
            "event": "inventory.batch_completed",
            "batch_key": batch_key,
            "count": len(drafts),
            "user_id": getattr(actor, "id", None),
        },
    )
    return drafts


def complete_movement(*, movement_id: int, actor=None) -> StockMovement:
    """Complete a draft movement together with the rest of its batch."""

    try:
        movement = StockMovement.objects.get(id=movement_id)
    except StockMovement.DoesNotExist:
        raise NotFoundError("Movement not found", movement=movement_id)
    if movement.deleted:
        raise InvalidStateTransition("Deleted movements cannot be completed", movement=movement.number)
    if movement.status != StockMovement.STATUS_DRAFT:
        raise InvalidStateTransition("Only draft movements can be completed", movement=movement.number)
    complete_batch(batch_key=movement.batch_key, actor=actor)
    movement.refresh_from_db()
    return movement


def _surviving_item_id(stock_item_id: int) -> int:
    """Follow ``merged_into`` links to the item that now holds the stock."""

    seen = {stock_item_id}
    current = stock_item_id
    while True:
        target = StockItem.objects.filter(id=current).values_list("merged_into_id", flat=True).first()
        if target is None or target in seen:
            return current
        seen.add(target)
        current = target


def _reverse_and_mark(movement: StockMovement, item: Optional[StockItem], *, actor, reason: str) -> None:
    if movement.status == StockMovement.STATUS_COMPLETED and item is not None:
        result = ledger.reverse(
            LedgerState.from_item(item),
            movement_type=movement.movement_type,
            quantity=int(movement.quantity),
            from_location=movement.from_location,
            to_location=movement.to_location,
            adjusted_from_quantity=movement.adjusted_from_quantity,
            adjusted_from_location_quantity=movement.adjusted_from_location_quantity,
        )
        result.state.write_to(item)
        item.save(update_fields=["quantity", "location_quantities", "primary_location", "updated_at"])
        movement.reversal_outcome = result.outcome
        if result.clamped:
            logger.warning(
                "inventory.reversal_clamped",
                extra={
                    "event": "inventory.reversal_clamped",
                    "movement": movement.number,
                    "stock_item_id": item.id,
                    "movement_type": movement.movement_type,
                    "quantity": movement.quantity,
                },
            )
    movement.deleted = True
    movement.deleted_at = timezone.now()
    movement.deleted_by = actor if getattr(actor, "id", None) else None
    movement.delete_reason = reason
    movement.save(
        update_fields=["deleted", "deleted_at", "deleted_by", "delete_reason", "reversal_outcome", "updated_at"]
    )


@transaction.atomic
def delete_movement(*, movement_id: int, actor=None, reason: str = "Manual deletion") -> StockMovement:
    """Soft-delete one movement, reversing its stock effect if it was completed."""

    try:
        movement = StockMovement.objects.select_for_update().get(id=movement_id)
    except StockMovement.DoesNotExist:
        raise NotFoundError("Movement not found", movement=movement_id)
    if movement.deleted:
        raise InvalidStateTransition("Movement is already deleted", movement=movement.number)
    item = _lock_item(_surviving_item_id(movement.stock_item_id))
    _reverse_and_mark(movement, item, actor=actor, reason=reason)
    logger.info(
        "inventory.movement_deleted",
        extra={
            "event": "inventory.movement_deleted",
            "movement": movement.number,
            "reversal": movement.reversal_outcome,
            "user_id": getattr(actor, "id", None),
        },
    )
    return movement


@transaction.atomic
def delete_batch(*, batch_key: str, actor=None, reason: str = "Batch deletion") -> list:
    """Soft-delete every live movement in a batch, newest first."""

    movements = list(
        StockMovement.objects.select_for_update().filter(batch_key=batch_key, deleted=False).order_by("-id")
    )
    if not movements:
        raise NotFoundError("No movements in this batch", batch_key=batch_key)
    survivors = {m.stock_item_id: _surviving_item_id(m.stock_item_id) for m in movements}
    items = lock_stock_items(survivors.values())
    for movement in movements:
        _reverse_and_mark(movement, items[survivors[movement.stock_item_id]], actor=actor, reason=reason)
    logger.info(
        "inventory.batch_deleted",
        extra={
            "event": "inventory.batch_deleted",
            "batch_key": batch_key,
            "count": len(movements),
            "clamped": sum(1 for m in movements if m.reversal_outcome == "clamped"),
            "user_id": getattr(actor, "id", None),
        },
    )
    return movements


def _sync_item(stock_item_id: int, *, now, locations: dict, stats: dict) -> None:
    item = StockItem.objects.select_for_update().filter(id=stock_item_id, is_active=True).first()
    if item is None:
        return
    stats["items"] += 1
    for code, qty in ledger.location_breakdown(LedgerState.from_item(item)).items():
        if code not in locations:
            locations[code], loc_created = Location.objects.get_or_create(
                code=code, defaults=placeholder_location_defaults(code)
            )
            stats["locations_created"] += int(loc_created)
        record, created = InventoryRecord.objects.select_for_update().get_or_create(
            stock_item=item,
            location=locations[code],
            lot="",
            defaults={"quantity": qty, "last_movement_at": now},
        )
        if created:
            stats["created"] += 1
        elif record.quantity != qty:
            record.quantity = qty
            record.last_movement_at = now
            record.save(update_fields=["quantity", "last_movement_at", "updated_at"])
            stats["updated"] += 1
        else:
            stats["unchanged"] += 1


def sync_inventory() -> dict:
    """Upsert one InventoryRecord per (active item, location) from the ledger.

    Each item is synced in its own transaction so locks stay short.
    Idempotent: records are matched by natural key and only rewritten when
    the quantity changed. Missing locations are created as placeholders.
    """

    now = timezone.now()
    stats = {"items": 0, "created": 0, "updated": 0, "unchanged": 0, "locations_created": 0}
    locations = {}
    for stock_item_id in StockItem.objects.filter(is_active=True).order_by("id").values_list("id", flat=True):
        with transaction.atomic():
            _sync_item(stock_item_id, now=now, locations=locations, stats=stats)
    logger.info("inventory.synced", extra={"event": "inventory.synced", **stats})
    return stats


# EOF
